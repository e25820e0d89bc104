"""LangChain integration for verishell."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from verishell.integrations._common import format_outcome, format_tool_result

if TYPE_CHECKING:
    from verishell.api import Toolkit

HAS_LANGCHAIN = False
_StructuredTool: Any = None

try:
    import langchain_core.tools

    _StructuredTool = langchain_core.tools.StructuredTool
    HAS_LANGCHAIN = True
except ImportError:
    pass


def create_langchain_tools(toolkit: Toolkit) -> dict[str, Any]:
    """
    Create LangChain tools from a Toolkit.

    Args:
        toolkit: The toolkit to wrap.

    Returns:
        Dictionary of LangChain StructuredTool instances.

    Raises:
        ImportError: If langchain-core is not installed.

    Example:
        >>> toolkit = create_toolkit(cwd=".")
        >>> tools = create_langchain_tools(toolkit)
        >>> agent = create_react_agent(llm, list(tools.values()))
    """
    if not HAS_LANGCHAIN:
        raise ImportError(
            "LangChain integration requires langchain-core. "
            "Install with: pip install verishell[langchain]"
        )

    async def run_bash(command: str) -> str:
        """Execute a bash command after safety analysis."""
        return format_outcome(await toolkit.bash(command))

    async def run_tool(tool_name: str, args: dict[str, Any]) -> str:
        """Run a named tool and verify its outcome."""
        return format_tool_result(await toolkit.execute_tool(tool_name, args))

    def analyze_command(command: str) -> str:
        """Classify a command without running it."""
        analysis = toolkit.analyze(command)
        if analysis.safe:
            return "allow: no violations"
        text = f"{analysis.recommendation.value}: {analysis.describe()}"
        if analysis.alternative:
            text += f"\nSuggested alternative: {analysis.alternative}"
        return text

    bash_tool = _StructuredTool.from_function(
        coroutine=run_bash,
        name="bash",
        description=f"Execute bash commands. {toolkit.tool_prompt}",
    )

    tool_tool = _StructuredTool.from_function(
        coroutine=run_tool,
        name="execute_tool",
        description="Run a registered tool by name and report verified evidence.",
    )

    analyze_tool = _StructuredTool.from_function(
        func=analyze_command,
        name="analyze_command",
        description="Check whether a shell command would be allowed, warned about, or blocked.",
    )

    return {
        "bash": bash_tool,
        "execute_tool": tool_tool,
        "analyze_command": analyze_tool,
    }
