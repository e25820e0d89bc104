"""
Local subprocess-based shell front door.

Every command is classified by the SafetyAnalyzer before a process is
spawned; permitted commands run through the IsolationExecutor so they share
its time and memory accounting.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import signal
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from verishell._types import (
    ApprovalCallback,
    CommandOutcome,
    CommandResult,
    ErrorKind,
    IsolationConfig,
    Recommendation,
    SafetyAnalysis,
)
from verishell.config import PipelineConfig
from verishell.sandbox._base import Shell
from verishell.sandbox.isolation import IsolationExecutor
from verishell.security.analyzer import SafetyAnalyzer

logger = logging.getLogger(__name__)

REFUSED_EXIT_CODE = -1


def _decode_and_truncate(data: bytes, max_output_bytes: int) -> tuple[str, bool]:
    """Decode bytes and truncate if too large."""
    text = data.decode("utf-8", errors="replace")
    if len(text) > max_output_bytes:
        truncated_count = len(text) - max_output_bytes
        text = text[:max_output_bytes]
        text += f"\n\n[Truncated: {truncated_count} characters removed]"
        return text, True
    return text, False


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


async def run_subprocess(
    command: str,
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    max_output_bytes: int = 30_000,
) -> CommandResult:
    """
    Spawn a shell command and collect its output.

    The process runs in its own session so that cancelling the awaiting task
    kills the whole process group, not just the shell.
    """
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )

    try:
        stdout_bytes, stderr_bytes = await proc.communicate()
    except asyncio.CancelledError:
        _kill_group(proc)
        await proc.wait()  # Ensure process is reaped
        raise

    stdout, stdout_truncated = _decode_and_truncate(stdout_bytes, max_output_bytes)
    stderr, stderr_truncated = _decode_and_truncate(stderr_bytes, max_output_bytes)

    return CommandResult(
        stdout=stdout,
        stderr=stderr,
        exit_code=proc.returncode or 0,
        truncated=stdout_truncated or stderr_truncated,
    )


class LocalShell(Shell):
    """
    Subprocess-based front door for agent shell commands.

    Safety features:
    - Every command is analyzed before anything is spawned
    - 'block' commands are refused unless an approval callback approves them;
      the refusal carries the analyzer's safer alternative
    - Destructive commands (file or database destruction) additionally need
      ``confirm_destructive`` in the config, even when only warned about
    - 'warn' commands run, with their violations logged
    - Time and memory ceilings enforced by the IsolationExecutor
    - Output truncation to prevent memory exhaustion

    Example:
        >>> shell = LocalShell(cwd="./my_project")
        >>> outcome = await shell.execute("ls -la")
        >>> print(outcome.stdout)
    """

    def __init__(
        self,
        cwd: Path | str,
        *,
        analyzer: SafetyAnalyzer | None = None,
        executor: IsolationExecutor | None = None,
        config: PipelineConfig | None = None,
        approval_callback: ApprovalCallback | None = None,
        env: dict[str, str] | None = None,
        max_output_bytes: int = 30_000,
    ) -> None:
        """
        Initialize a local shell.

        Args:
            cwd: Working directory for command execution.
            analyzer: Safety analyzer. Defaults to the standard rule set.
            executor: Resource-bounded executor. A private one by default.
            config: Pipeline configuration (time/memory budget,
                confirm_destructive).
            approval_callback: Asked whether a blocked command may run anyway.
            env: Environment variables for subprocesses.
            max_output_bytes: Maximum bytes for stdout/stderr before truncation.
        """
        self._cwd = Path(cwd).resolve()
        self._analyzer = analyzer or SafetyAnalyzer.standard()
        self._owns_executor = executor is None
        self._executor = executor or IsolationExecutor()
        self._config = config or PipelineConfig()
        self._approval_callback = approval_callback
        self._env = env
        self._max_output_bytes = max_output_bytes
        self._closed = False

    @property
    def cwd(self) -> Path:
        return self._cwd

    async def execute(self, command: str, *, timeout: float | None = None) -> CommandOutcome:
        """
        Analyze a command and execute it if the analysis permits.

        Args:
            command: The shell command to execute.
            timeout: Maximum seconds to wait before killing the process.

        Returns:
            CommandOutcome. Refused commands have ``blocked=True`` and exit
            code -1; timeouts exit with 124.

        Raises:
            RuntimeError: If the shell has been closed.
        """
        if self._closed:
            raise RuntimeError("Shell has been closed")

        analysis = self._analyzer.analyze(command)

        if self._analyzer.is_destructive(analysis) and not self._config.confirm_destructive:
            message = f"Destructive command requires confirm_destructive: {analysis.describe()}"
            if analysis.alternative:
                message += f"\nSuggested alternative: {analysis.alternative}"
            return self._refuse(analysis, message)

        if analysis.recommendation is Recommendation.BLOCK:
            if self._approval_callback is None:
                return self._refuse(
                    analysis,
                    f"Command blocked by safety analysis: {analysis.describe()}\n"
                    f"Suggested alternative: {analysis.alternative}",
                )
            if not await self._approval_callback(analysis):
                return self._refuse(
                    analysis,
                    f"Command blocked by safety analysis: {analysis.describe()}",
                    approval_requested=True,
                )
            logger.warning(f"Blocked command approved by callback: {analysis.describe()}")
        elif analysis.recommendation is Recommendation.WARN:
            logger.warning(f"Safety warning for command: {analysis.describe()}")

        isolation = self._config.isolation_config()
        if timeout is not None:
            isolation = _with_time_budget(self._config, timeout)

        work = functools.partial(
            run_subprocess,
            command,
            cwd=self._cwd,
            env=self._env,
            max_output_bytes=self._max_output_bytes,
        )
        result = await self._executor.run(work, isolation)

        truncated = isinstance(result.result, CommandResult) and result.result.truncated
        return CommandOutcome(
            success=result.success,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            analysis=analysis,
            approval_requested=analysis.recommendation is Recommendation.BLOCK,
            truncated=truncated,
            error_kind=result.error_kind,
        )

    async def close(self) -> None:
        """
        Release resources.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        if self._owns_executor:
            await self._executor.close()

    def _refuse(
        self,
        analysis: SafetyAnalysis,
        message: str,
        *,
        approval_requested: bool = False,
    ) -> CommandOutcome:
        logger.warning(message.splitlines()[0])
        return CommandOutcome(
            success=False,
            stdout="",
            stderr=message,
            exit_code=REFUSED_EXIT_CODE,
            analysis=analysis,
            blocked=True,
            approval_requested=approval_requested,
            error_kind=ErrorKind.SAFETY_REJECTION,
        )


def _with_time_budget(config: PipelineConfig, timeout: float) -> IsolationConfig:
    millis = max(1, int(timeout * 1000))
    return replace(config.isolation_config(), max_time_millis=millis)
