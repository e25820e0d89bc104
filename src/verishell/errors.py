"""
Exception hierarchy.

Expected failures (unsafe command, timeout, missing file, unreachable
endpoint) are reported through result objects tagged with ``ErrorKind``.
These exceptions are reserved for misuse of the API.
"""

from __future__ import annotations


class VerishellError(Exception):
    """Base class for all verishell errors."""


class ConfigurationError(VerishellError, ValueError):
    """Raised when a configuration value is invalid."""


class InvalidHandleError(VerishellError, KeyError):
    """Raised when an isolation context handle is unknown or destroyed."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Invalid context handle: {handle}")

    def __str__(self) -> str:
        return self.args[0]


class ContextBusyError(VerishellError, RuntimeError):
    """Raised when a second execution is started on a busy context."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Context {handle} already has an execution in flight")


class CommandError(VerishellError):
    """Raised when a command exits with non-zero status."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        self.exit_code = exit_code
        super().__init__(message)


class TimeLimitExceeded(VerishellError, TimeoutError):
    """Recorded on an ExecutionResult whose work overran its time budget."""


class MemoryLimitExceeded(VerishellError, MemoryError):
    """Recorded on an ExecutionResult whose work overran its memory budget."""


class ExecutionCancelled(VerishellError):
    """Recorded on an ExecutionResult whose context was destroyed mid-flight."""
