"""Tests for framework integrations."""

from __future__ import annotations

import pytest

from verishell import (
    CommandOutcome,
    Recommendation,
    SafetyAnalysis,
    Severity,
    Toolkit,
    ToolOrchestrator,
)
from verishell.integrations._common import format_outcome, format_tool_result

_SAFE = SafetyAnalysis(
    safe=True, violations=(), risk_level=Severity.LOW, recommendation=Recommendation.ALLOW
)


class TestFormatting:
    """Tests for the text handed back to agents."""

    def test_success_returns_stdout(self) -> None:
        outcome = CommandOutcome(
            success=True, stdout="ok\n", stderr="", exit_code=0, analysis=_SAFE
        )
        assert format_outcome(outcome) == "ok\n"

    def test_failure_includes_exit_code(self) -> None:
        outcome = CommandOutcome(
            success=False, stdout="", stderr="boom", exit_code=2, analysis=_SAFE
        )
        assert format_outcome(outcome) == "Error (exit 2): boom"

    def test_blocked(self) -> None:
        outcome = CommandOutcome(
            success=False,
            stdout="",
            stderr="Command blocked",
            exit_code=-1,
            analysis=_SAFE,
            blocked=True,
        )
        assert format_outcome(outcome).startswith("Blocked:")

    async def test_tool_result(self) -> None:
        async with ToolOrchestrator() as orchestrator:
            result = await orchestrator.execute_tool("write_file", {"path": "/definitely/missing"})
        text = format_tool_result(result)
        assert text.startswith("Failed (confidence 100)")
        assert "Rolled back: Revert changes made by write_file" in text


class TestLangChain:
    """Tests for the LangChain tools."""

    async def test_creates_tools(self, toolkit: Toolkit) -> None:
        """Should expose bash, execute_tool and analyze_command."""
        pytest.importorskip("langchain_core")
        from verishell.integrations.langchain import create_langchain_tools

        tools = create_langchain_tools(toolkit)
        assert set(tools) == {"bash", "execute_tool", "analyze_command"}
        assert "command" in tools["bash"].args

    async def test_bash_tool_runs(self, toolkit: Toolkit) -> None:
        pytest.importorskip("langchain_core")
        from verishell.integrations.langchain import create_langchain_tools

        tools = create_langchain_tools(toolkit)
        assert (await tools["bash"].ainvoke({"command": "echo hi"})).strip() == "hi"
        refused = await tools["bash"].ainvoke({"command": "rm -rf /"})
        assert refused.startswith("Blocked:")

    async def test_analyze_tool(self, toolkit: Toolkit) -> None:
        pytest.importorskip("langchain_core")
        from verishell.integrations.langchain import create_langchain_tools

        tools = create_langchain_tools(toolkit)
        text = tools["analyze_command"].invoke({"command": "rm -rf /"})
        assert text.startswith("block:")
        assert "rm -ri /" in text

    def test_missing_dependency(self, toolkit: Toolkit, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should raise ImportError with an install hint."""
        from verishell.integrations import langchain

        monkeypatch.setattr(langchain, "HAS_LANGCHAIN", False)
        with pytest.raises(ImportError, match="verishell\\[langchain\\]"):
            langchain.create_langchain_tools(toolkit)


class TestPydanticAI:
    """Tests for the PydanticAI tools."""

    async def test_shell_tool(self, toolkit: Toolkit) -> None:
        pytest.importorskip("pydantic_ai")
        from verishell.integrations.pydantic_ai import create_shell_tool

        shell_tool = create_shell_tool(toolkit)
        assert (await shell_tool(None, "echo hi")).strip() == "hi"  # type: ignore[arg-type]

    async def test_tools_list(self, toolkit: Toolkit) -> None:
        pytest.importorskip("pydantic_ai")
        from verishell.integrations.pydantic_ai import create_pydantic_ai_tools

        tools = create_pydantic_ai_tools(toolkit)
        assert [tool.name for tool in tools] == ["bash", "execute_tool"]
