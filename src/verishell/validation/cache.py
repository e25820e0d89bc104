"""
Short-lived cache of validation results.

Entries are keyed by probe kind and parameters (``"file:/tmp/x"``,
``"port:localhost:8080"``) and live for a fixed TTL. The cache is an
explicit object: whoever wires up a pipeline owns one, and two validators
only share results when they share a cache instance.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from verishell._types import ValidationResult
from verishell.config import CACHE_TTL_MILLIS

logger = logging.getLogger(__name__)


class ValidationCache:
    """
    TTL cache for ValidationResult objects.

    Each entry is an immutable ``(stored_at, result)`` tuple that is replaced
    whole on every write, so concurrent writers can only ever race to a
    complete entry (last writer wins).

    Args:
        clock: Monotonic clock returning seconds. Injectable for tests.
    """

    ttl_millis = CACHE_TTL_MILLIS

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, ValidationResult]] = {}

    def get(self, key: str) -> ValidationResult | None:
        """Return the live entry for key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        age_millis = (self._clock() - stored_at) * 1000
        if age_millis > self.ttl_millis:
            # Only drop the entry we looked at; a fresher one may have landed.
            if self._entries.get(key) is entry:
                del self._entries[key]
            return None
        return result

    def put(self, key: str, result: ValidationResult) -> None:
        self._entries[key] = (self._clock(), result)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None
