"""
Abstract base class for shell front doors.

Every entry point that spawns processes on behalf of an agent implements
this interface and must consult the safety analyzer before spawning.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from verishell._types import CommandOutcome


class Shell(ABC):
    """
    Abstract base for safety-gated command execution.

    Provides a consistent interface for running commands and releasing
    resources, usable as an async context manager.
    """

    @abstractmethod
    async def execute(self, command: str, *, timeout: float | None = None) -> CommandOutcome:
        """
        Analyze and, if permitted, execute a shell command.

        Args:
            command: The shell command to execute.
            timeout: Maximum seconds before the command is killed. Defaults
                to the configured time budget.

        Returns:
            CommandOutcome with output, exit code and the safety analysis.
            Refused commands are reported with ``blocked=True``, not raised.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Clean up resources.

        Idempotent - safe to call multiple times.
        """
        ...

    async def __aenter__(self) -> Shell:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager, cleaning up resources."""
        await self.close()
