"""
Main entry point: create_toolkit factory function.

Wires one analyzer, executor, validator (with its cache) and orchestrator
together and hands them to agents as a single toolkit.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from verishell._types import (
    ApprovalCallback,
    CommandOutcome,
    CommandResult,
    SafetyAnalysis,
    ToolHandler,
    ToolResult,
)
from verishell.activity import ActivityLog
from verishell.config import PipelineConfig
from verishell.orchestrator import ToolOrchestrator
from verishell.sandbox.isolation import IsolationExecutor
from verishell.sandbox.local import LocalShell, run_subprocess
from verishell.security.analyzer import SafetyAnalyzer
from verishell.validation.cache import ValidationCache
from verishell.validation.validator import OutcomeValidator

SHELL_TOOL_NAME = "shell_command"


@dataclass
class Toolkit:
    """
    Toolkit returned by create_toolkit(), containing tools for AI agents.

    Attributes:
        shell: Safety-gated front door for raw shell commands.
        orchestrator: Plan-execute-verify wrapper for named tools.
        analyzer: The safety analyzer shared by both.
        config: The configuration in effect.
        tool_prompt: Short description of the tools for the LLM.
    """

    shell: LocalShell
    orchestrator: ToolOrchestrator
    analyzer: SafetyAnalyzer
    config: PipelineConfig
    tool_prompt: str
    _executor: IsolationExecutor

    async def bash(self, command: str, *, timeout: float | None = None) -> CommandOutcome:
        """Analyze and, if permitted, execute a shell command."""
        return await self.shell.execute(command, timeout=timeout)

    async def execute_tool(self, tool_name: str, args: Mapping[str, Any] | None = None) -> ToolResult:
        """Run a named tool through the plan-execute-verify cycle."""
        return await self.orchestrator.execute_tool(tool_name, args)

    def register_tool(self, name: str, handler: ToolHandler) -> None:
        self.orchestrator.register_tool(name, handler)

    def analyze(self, command: str) -> SafetyAnalysis:
        """Classify a command without running it."""
        return self.analyzer.analyze(command)

    async def close(self) -> None:
        """Clean up shell and executor resources."""
        await self.shell.close()
        await self.orchestrator.close()
        await self._executor.close()

    async def __aenter__(self) -> Toolkit:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def create_toolkit(
    *,
    cwd: Path | str | None = None,
    config: PipelineConfig | None = None,
    analyzer: SafetyAnalyzer | None = None,
    approval_callback: ApprovalCallback | None = None,
    activity_log: ActivityLog | None = None,
    env: dict[str, str] | None = None,
    max_output_bytes: int = 30_000,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> Toolkit:
    """
    Create a safety-gated, verified toolkit for AI agents.

    This is the main entry point for verishell. Every piece of the pipeline
    is created once and shared, so the shell front door and the orchestrator
    apply the same rules, budget and validation cache.

    Args:
        cwd: Working directory for shell commands. Defaults to the current
             working directory.
        config: Pipeline configuration. Defaults to ``PipelineConfig.from_env()``.
        analyzer: Safety analyzer. Defaults to the standard rule set.
        approval_callback: Asked whether a blocked command may run anyway.
        activity_log: Sink receiving one record per orchestrated tool call.
        env: Environment variables for subprocesses.
        max_output_bytes: Maximum bytes for stdout/stderr before truncation.
        http_transport: Transport for endpoint probes.

    Returns:
        Toolkit with bash, execute_tool and analyze methods. A
        ``shell_command`` tool is pre-registered on the orchestrator.

    Example:
        >>> async with create_toolkit(cwd="./my_project") as toolkit:
        ...     outcome = await toolkit.bash("ls -la")
        ...     print(outcome.stdout)
    """
    working_dir = Path(cwd).resolve() if cwd else Path.cwd()
    pipeline_config = config or PipelineConfig.from_env()
    safety = analyzer or SafetyAnalyzer.standard()

    executor = IsolationExecutor()
    validator = OutcomeValidator(
        ValidationCache(),
        probe_timeout_millis=pipeline_config.probe_timeout_millis,
        http_transport=http_transport,
    )
    shell = LocalShell(
        working_dir,
        analyzer=safety,
        executor=executor,
        config=pipeline_config,
        approval_callback=approval_callback,
        env=env,
        max_output_bytes=max_output_bytes,
    )
    orchestrator = ToolOrchestrator(
        analyzer=safety,
        executor=executor,
        validator=validator,
        config=pipeline_config,
        activity_log=activity_log,
        approval_callback=approval_callback,
    )

    async def shell_command(args: dict[str, Any]) -> CommandResult:
        return await run_subprocess(
            str(args["command"]),
            cwd=working_dir,
            env=env,
            max_output_bytes=max_output_bytes,
        )

    orchestrator.register_tool(SHELL_TOOL_NAME, shell_command)

    return Toolkit(
        shell=shell,
        orchestrator=orchestrator,
        analyzer=safety,
        config=pipeline_config,
        tool_prompt=_tool_prompt(working_dir, pipeline_config),
        _executor=executor,
    )


def _tool_prompt(cwd: Path, config: PipelineConfig) -> str:
    lines = [
        f"Commands run in {cwd} with a {config.max_time_millis}ms time limit.",
        "Every command is checked for file deletion, database modification, "
        "credential exposure and network exposure before it runs.",
        "Blocked commands are refused with a safer alternative; use it instead.",
    ]
    if not config.confirm_destructive:
        lines.append("Destructive commands (rm, DROP, DELETE) are refused.")
    return "\n".join(lines)
