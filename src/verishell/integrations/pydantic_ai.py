"""
PydanticAI integration for verishell.

Provides helpers to create PydanticAI-compatible tools.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

try:
    from pydantic_ai import RunContext, Tool
except ImportError:
    raise ImportError(
        "PydanticAI integration requires 'pydantic-ai'. "
        "Install with `pip install verishell[pydantic-ai]`"
    )

from verishell.integrations._common import format_outcome, format_tool_result

if TYPE_CHECKING:
    from verishell.api import Toolkit


def create_shell_tool(toolkit: Toolkit, *, timeout: float | None = None) -> Callable:
    """
    Create a PydanticAI tool function for safety-gated shell execution.

    Example:
        >>> from pydantic_ai import Agent
        >>> shell_tool = create_shell_tool(create_toolkit(cwd="./project"))
        >>> agent = Agent("openai:gpt-4", tools=[shell_tool])
    """

    async def shell_tool(
        ctx: RunContext,
        command: str,
    ) -> str:
        """
        Execute a shell command.
        Commands flagged as dangerous are refused with a safer alternative.
        """
        return format_outcome(await toolkit.bash(command, timeout=timeout))

    return shell_tool


def create_pydantic_ai_tools(toolkit: Toolkit) -> list[Tool[Any]]:
    """Create the shell and verified-tool tools for a PydanticAI Agent."""

    async def execute_tool(ctx: RunContext, tool_name: str, args: dict[str, Any]) -> str:
        """Run a registered tool by name and report verified evidence."""
        return format_tool_result(await toolkit.execute_tool(tool_name, args))

    return [
        Tool(create_shell_tool(toolkit), takes_ctx=True, name="bash"),
        Tool(execute_tool, takes_ctx=True),
    ]
