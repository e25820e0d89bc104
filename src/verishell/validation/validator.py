"""
Outcome validator.

Checks real system state (files, ports, HTTP endpoints, containers, host
processes) after a tool has run, so that success is decided by evidence
rather than by the tool's own report.

Every probe returns a ValidationResult and never raises. Results of real
probes are cached for a short TTL; see ``verishell.validation.cache``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import psutil

from verishell._types import ErrorKind, ValidationResult, utc_timestamp
from verishell.config import DEFAULT_PROBE_TIMEOUT_MILLIS, PERFORMANCE_THRESHOLD_MILLIS
from verishell.validation.cache import ValidationCache

logger = logging.getLogger(__name__)

PORT_TIMEOUT_CONFIDENCE = 90
HOST_PROCESS_CONFIDENCE = 90

Probe = Callable[[], Awaitable["_Finding"]]
ValidationThunk = Callable[[], Awaitable[ValidationResult]]


@dataclass(frozen=True, slots=True)
class _Finding:
    passed: bool
    evidence: str
    confidence: int = 100
    error: str | None = None
    error_kind: ErrorKind | None = None


class OutcomeValidator:
    """
    Runs live probes against the system and reports evidence.

    Example:
        >>> validator = OutcomeValidator()
        >>> result = await validator.check_file("/etc/hosts")
        >>> result.passed, result.evidence
        (True, "File '/etc/hosts' exists and is readable")
    """

    def __init__(
        self,
        cache: ValidationCache | None = None,
        *,
        probe_timeout_millis: int = DEFAULT_PROBE_TIMEOUT_MILLIS,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the validator.

        Args:
            cache: Result cache. A private cache is created by default.
            probe_timeout_millis: Timeout applied to each probe.
            http_transport: Transport for endpoint probes (for example
                ``httpx.MockTransport`` in tests).
        """
        self._cache = cache if cache is not None else ValidationCache()
        self._timeout_millis = probe_timeout_millis
        self._http_transport = http_transport

    @property
    def cache(self) -> ValidationCache:
        return self._cache

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    async def check_process(self, name: str) -> ValidationResult:
        """Check that a Docker container matching ``name`` is running."""

        async def probe() -> _Finding:
            try:
                proc = await asyncio.create_subprocess_exec(
                    "docker", "ps",
                    "--filter", f"name={name}",
                    "--format", "{{.Names}}",
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                return _Finding(
                    passed=False,
                    evidence=f"Failed to check Docker container '{name}'",
                    confidence=0,
                    error=str(exc),
                    error_kind=ErrorKind.PROBE_FAILURE,
                )

            try:
                stdout, stderr = await proc.communicate()
            except asyncio.CancelledError:
                proc.kill()
                await proc.wait()
                raise

            if proc.returncode != 0:
                return _Finding(
                    passed=False,
                    evidence=f"Failed to check Docker container '{name}'",
                    confidence=0,
                    error=stderr.decode(errors="replace").strip() or f"docker exited {proc.returncode}",
                    error_kind=ErrorKind.PROBE_FAILURE,
                )

            running = [line for line in stdout.decode(errors="replace").splitlines() if line.strip()]
            if not running:
                return _Finding(
                    passed=False,
                    evidence=f"Container '{name}' is not running",
                    error="Container not found in running containers",
                )
            return _Finding(True, f"Container '{name}' is running")

        return await self._run_cached(f"process:{name}", f"Container '{name}'", probe)

    async def check_port(self, port: int, host: str = "localhost") -> ValidationResult:
        """Check that something accepts TCP connections on host:port."""

        async def probe() -> _Finding:
            try:
                _, writer = await asyncio.wait_for(
                    asyncio.open_connection(host, port),
                    timeout=self._timeout_millis / 1000,
                )
            except asyncio.TimeoutError:
                return _Finding(
                    passed=False,
                    evidence=f"Port {port} on {host} is not listening (timeout)",
                    confidence=PORT_TIMEOUT_CONFIDENCE,
                    error="Connection timeout",
                    error_kind=ErrorKind.PROBE_TIMEOUT,
                )
            except OSError as exc:
                return _Finding(
                    passed=False,
                    evidence=f"Port {port} on {host} is not listening",
                    error=str(exc),
                )

            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
            return _Finding(True, f"Port {port} on {host} is listening")

        # The probe applies its own timeout so it can report it with reduced confidence.
        return await self._run_cached(
            f"port:{host}:{port}", f"Port {port} on {host}", probe, enforce_timeout=False
        )

    async def check_endpoint(self, url: str, expected_status: int = 200) -> ValidationResult:
        """Check that an HTTP GET on ``url`` answers with ``expected_status``."""

        async def probe() -> _Finding:
            try:
                async with httpx.AsyncClient(
                    transport=self._http_transport,
                    timeout=self._timeout_millis / 1000,
                ) as client:
                    response = await client.get(url)
            except httpx.TimeoutException as exc:
                return _Finding(
                    passed=False,
                    evidence=f"Failed to reach API endpoint {url} (timeout)",
                    error=str(exc) or "Request timeout",
                    error_kind=ErrorKind.PROBE_TIMEOUT,
                )
            except httpx.HTTPError as exc:
                return _Finding(
                    passed=False,
                    evidence=f"Failed to reach API endpoint {url}",
                    error=str(exc) or type(exc).__name__,
                    error_kind=ErrorKind.PROBE_FAILURE,
                )

            if response.status_code == expected_status:
                return _Finding(
                    True, f"API endpoint {url} responded with status {response.status_code}"
                )
            return _Finding(
                passed=False,
                evidence=(
                    f"API endpoint {url} responded with status {response.status_code}, "
                    f"expected {expected_status}"
                ),
                error=f"Unexpected status {response.status_code}",
            )

        return await self._run_cached(
            f"endpoint:{url}:{expected_status}", f"API endpoint {url}", probe
        )

    async def check_file(self, path: str | os.PathLike[str]) -> ValidationResult:
        """Check that ``path`` exists and is readable."""
        target = os.fspath(path)

        async def probe() -> _Finding:
            readable = await asyncio.to_thread(_is_readable, Path(target))
            if readable:
                return _Finding(True, f"File '{target}' exists and is readable")
            return _Finding(
                passed=False,
                evidence=f"File '{target}' does not exist or is not readable",
                error="File not found or not readable",
            )

        return await self._run_cached(f"file:{target}", f"File '{target}'", probe)

    async def check_host_process(self, name: str) -> ValidationResult:
        """
        Check the local process table for a process called ``name``.

        Matching is by executable name only, so results carry confidence 90.
        """

        async def probe() -> _Finding:
            pids = await asyncio.to_thread(_find_processes, name)
            if pids:
                return _Finding(
                    True,
                    f"Process '{name}' is running (pid {', '.join(map(str, pids))})",
                    confidence=HOST_PROCESS_CONFIDENCE,
                )
            return _Finding(
                passed=False,
                evidence=f"Process '{name}' is not running",
                confidence=HOST_PROCESS_CONFIDENCE,
                error=f"No process named '{name}' found",
            )

        return await self._run_cached(f"host_process:{name}", f"Process '{name}'", probe)

    async def run_custom(
        self,
        predicate: Callable[[], bool | Awaitable[bool]],
        *,
        description: str | None = None,
    ) -> ValidationResult:
        """
        Run a caller-supplied predicate as a check. Never cached.

        Args:
            predicate: Zero-argument callable returning a bool or an
                awaitable of one.
            description: Name used in the evidence. Defaults to the
                predicate's ``__name__``.
        """
        label = description or getattr(predicate, "__name__", "custom check")

        async def probe() -> _Finding:
            value = predicate()
            if inspect.isawaitable(value):
                value = await value
            if value:
                return _Finding(True, f"Custom validation '{label}' passed")
            return _Finding(False, f"Custom validation '{label}' failed")

        return await self._run(f"Custom validation '{label}'", probe)

    async def run_parallel(self, thunks: Iterable[ValidationThunk]) -> list[ValidationResult]:
        """Run several checks concurrently; results keep the input order."""
        thunks = list(thunks)
        outcomes = await asyncio.gather(*(thunk() for thunk in thunks), return_exceptions=True)

        results: list[ValidationResult] = []
        for thunk, outcome in zip(thunks, outcomes):
            if isinstance(outcome, ValidationResult):
                results.append(outcome)
                continue
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            label = getattr(thunk, "__name__", "check")
            logger.debug(f"Validation thunk {label} raised: {outcome!r}")
            results.append(
                ValidationResult(
                    passed=False,
                    evidence=f"Validation '{label}' raised an error",
                    confidence=0,
                    duration_millis=0,
                    timestamp=utc_timestamp(),
                    error=str(outcome) or type(outcome).__name__,
                    error_kind=ErrorKind.PROBE_FAILURE,
                )
            )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_cached(
        self,
        key: str,
        target: str,
        probe: Probe,
        *,
        enforce_timeout: bool = True,
    ) -> ValidationResult:
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Validation cache hit for {key}")
            return cached

        result = await self._run(target, probe, enforce_timeout=enforce_timeout)
        self._cache.put(key, result)
        return result

    async def _run(
        self,
        target: str,
        probe: Probe,
        *,
        enforce_timeout: bool = True,
    ) -> ValidationResult:
        start = time.monotonic()
        try:
            if enforce_timeout:
                finding = await asyncio.wait_for(probe(), timeout=self._timeout_millis / 1000)
            else:
                finding = await probe()
        except asyncio.TimeoutError:
            finding = _Finding(
                passed=False,
                evidence=f"{target}: validation timed out after {self._timeout_millis}ms",
                confidence=0,
                error="Validation timeout",
                error_kind=ErrorKind.PROBE_TIMEOUT,
            )
        except Exception as exc:
            logger.debug(f"Probe for {target} raised: {exc!r}")
            finding = _Finding(
                passed=False,
                evidence=f"{target}: validation threw an error",
                confidence=0,
                error=str(exc) or type(exc).__name__,
                error_kind=ErrorKind.PROBE_FAILURE,
            )

        duration_millis = int((time.monotonic() - start) * 1000)
        if finding.passed and duration_millis > PERFORMANCE_THRESHOLD_MILLIS:
            logger.warning(
                f"Slow validation: {target} took {duration_millis}ms "
                f"(threshold {PERFORMANCE_THRESHOLD_MILLIS}ms)"
            )

        return ValidationResult(
            passed=finding.passed,
            evidence=finding.evidence,
            confidence=finding.confidence,
            duration_millis=duration_millis,
            timestamp=utc_timestamp(),
            error=finding.error,
            error_kind=finding.error_kind,
        )


def _is_readable(path: Path) -> bool:
    return path.exists() and os.access(path, os.R_OK)


def _find_processes(name: str) -> list[int]:
    wanted = name.lower()
    pids: list[int] = []
    for proc in psutil.process_iter(["name"]):
        proc_name: Any = proc.info.get("name")
        if isinstance(proc_name, str) and proc_name.lower() == wanted:
            pids.append(proc.pid)
    return pids
