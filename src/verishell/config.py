"""
Pipeline configuration.

Values are resolved from explicit arguments first, then ``VERISHELL_*``
environment variables, then the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from verishell._types import IsolationConfig
from verishell.errors import ConfigurationError

DEFAULT_MAX_TIME_MILLIS = 60_000
DEFAULT_MAX_MEMORY_BYTES = 512 * 1024 * 1024
DEFAULT_MAX_CPU_PERCENT = 80.0
DEFAULT_PROBE_TIMEOUT_MILLIS = 5_000

# Fixed in this version; not part of PipelineConfig.
CACHE_TTL_MILLIS = 5_000
PERFORMANCE_THRESHOLD_MILLIS = 100

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration surface for one wired-up pipeline."""

    max_time_millis: int = DEFAULT_MAX_TIME_MILLIS
    max_memory_bytes: int = DEFAULT_MAX_MEMORY_BYTES
    max_cpu_percent: float = DEFAULT_MAX_CPU_PERCENT
    allowed_paths: frozenset[str] = field(default_factory=frozenset)
    allowed_networks: frozenset[str] = field(default_factory=frozenset)
    probe_timeout_millis: int = DEFAULT_PROBE_TIMEOUT_MILLIS
    confirm_destructive: bool = False
    """Must be True to run any command flagged destructive, even under 'warn'."""

    def __post_init__(self) -> None:
        if self.probe_timeout_millis <= 0:
            raise ConfigurationError(
                f"probe_timeout_millis must be positive, got {self.probe_timeout_millis}"
            )
        # Validates the resource limits.
        self.isolation_config()

    def isolation_config(self) -> IsolationConfig:
        """Build the IsolationConfig used for one execution."""
        return IsolationConfig(
            max_cpu_percent=self.max_cpu_percent,
            max_memory_bytes=self.max_memory_bytes,
            max_time_millis=self.max_time_millis,
            allowed_paths=frozenset(self.allowed_paths),
            allowed_networks=frozenset(self.allowed_networks),
        )

    @classmethod
    def from_env(cls, **overrides: object) -> PipelineConfig:
        """
        Create a config from ``VERISHELL_*`` environment variables.

        Recognized variables: VERISHELL_MAX_TIME_MS, VERISHELL_MAX_MEMORY_BYTES,
        VERISHELL_MAX_CPU_PERCENT, VERISHELL_PROBE_TIMEOUT_MS and
        VERISHELL_CONFIRM_DESTRUCTIVE. Keyword overrides win over the
        environment.
        """
        values: dict[str, object] = {}

        if (raw := os.getenv("VERISHELL_MAX_TIME_MS")) is not None:
            values["max_time_millis"] = _parse_int("VERISHELL_MAX_TIME_MS", raw)
        if (raw := os.getenv("VERISHELL_MAX_MEMORY_BYTES")) is not None:
            values["max_memory_bytes"] = _parse_int("VERISHELL_MAX_MEMORY_BYTES", raw)
        if (raw := os.getenv("VERISHELL_MAX_CPU_PERCENT")) is not None:
            try:
                values["max_cpu_percent"] = float(raw)
            except ValueError:
                raise ConfigurationError(
                    f"VERISHELL_MAX_CPU_PERCENT must be a number, got {raw!r}"
                ) from None
        if (raw := os.getenv("VERISHELL_PROBE_TIMEOUT_MS")) is not None:
            values["probe_timeout_millis"] = _parse_int("VERISHELL_PROBE_TIMEOUT_MS", raw)
        if (raw := os.getenv("VERISHELL_CONFIRM_DESTRUCTIVE")) is not None:
            values["confirm_destructive"] = _parse_bool("VERISHELL_CONFIRM_DESTRUCTIVE", raw)

        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")
