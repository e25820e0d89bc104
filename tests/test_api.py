"""Tests for the create_toolkit API."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest

from verishell import (
    CommandResult,
    ErrorKind,
    MemoryActivityLog,
    PipelineConfig,
    Recommendation,
    Toolkit,
    create_toolkit,
)


class TestCreateToolkit:
    """Tests for the create_toolkit factory function."""

    async def test_creates_toolkit(self, temp_dir: Path) -> None:
        """Should create a working toolkit."""
        toolkit = create_toolkit(cwd=temp_dir)
        try:
            outcome = await toolkit.bash("echo 'hello'")
            assert "hello" in outcome.stdout
        finally:
            await toolkit.close()

    async def test_defaults_to_current_directory(self) -> None:
        """Should default to current working directory."""
        toolkit = create_toolkit()
        try:
            outcome = await toolkit.bash("pwd")
            assert outcome.exit_code == 0
            assert toolkit.shell.cwd == Path.cwd().resolve()
        finally:
            await toolkit.close()

    async def test_config_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without an explicit config, VERISHELL_* variables should apply."""
        monkeypatch.setenv("VERISHELL_MAX_TIME_MS", "1234")
        toolkit = create_toolkit()
        try:
            assert toolkit.config.max_time_millis == 1234
            assert "1234ms" in toolkit.tool_prompt
        finally:
            await toolkit.close()

    async def test_generates_tool_prompt(self, toolkit: Toolkit, temp_dir: Path) -> None:
        """Should describe the working directory and the safety rules."""
        assert str(temp_dir.resolve()) in toolkit.tool_prompt
        assert "refused" in toolkit.tool_prompt

    async def test_context_manager(self, temp_dir: Path) -> None:
        """Should work as async context manager."""
        async with create_toolkit(cwd=temp_dir) as toolkit:
            outcome = await toolkit.bash("echo 'context manager'")
            assert "context manager" in outcome.stdout


class TestToolkitShell:
    """Tests for the bash entry point."""

    async def test_blocks_dangerous_commands(self, toolkit: Toolkit, temp_dir: Path) -> None:
        """Should refuse rm -rf and leave files alone."""
        outcome = await toolkit.bash("rm -rf test.txt")
        assert outcome.blocked is True
        assert (temp_dir / "test.txt").exists()

    async def test_analyze_without_running(self, toolkit: Toolkit) -> None:
        analysis = toolkit.analyze("DROP TABLE users;")
        assert analysis.recommendation is Recommendation.BLOCK

    async def test_approval_callback_shared(self, temp_dir: Path) -> None:
        """The approval callback should reach the shell front door."""

        async def approve(analysis: Any) -> bool:
            return True

        async with create_toolkit(cwd=temp_dir, approval_callback=approve) as toolkit:
            outcome = await toolkit.bash("echo secret='s3'")
            assert outcome.success is True


class TestToolkitTools:
    """Tests for orchestrated tools."""

    async def test_shell_command_tool(self, toolkit: Toolkit) -> None:
        """The pre-registered shell tool should run and verify."""
        result = await toolkit.execute_tool("shell_command", {"command": "echo hi"})
        assert result.success is True
        assert isinstance(result.output, CommandResult)
        assert result.output.stdout.strip() == "hi"

    async def test_shell_command_failure(self, toolkit: Toolkit) -> None:
        """A failing command should fail the tool."""
        result = await toolkit.execute_tool("shell_command", {"command": "exit 3"})
        assert result.success is False
        assert result.error_kind is ErrorKind.EXECUTION_ERROR
        assert result.execution is not None
        assert result.execution.exit_code == 3

    async def test_shell_command_refused(self, toolkit: Toolkit, temp_dir: Path) -> None:
        """The orchestrated shell tool should apply the same safety gate."""
        result = await toolkit.execute_tool("shell_command", {"command": "rm -rf test.txt"})
        assert result.success is False
        assert result.error_kind is ErrorKind.SAFETY_REJECTION
        assert (temp_dir / "test.txt").exists()

    async def test_registered_file_tool(
        self, toolkit: Toolkit, activity: MemoryActivityLog, temp_dir: Path
    ) -> None:
        """Registered tools should be verified and recorded."""

        async def write_file(args: dict[str, Any]) -> None:
            Path(args["path"]).write_text("data")

        toolkit.register_tool("write_file", write_file)
        result = await toolkit.execute_tool("write_file", {"path": str(temp_dir / "new.txt")})
        assert result.success is True
        assert activity.records[-1].tool_name == "write_file"

    async def test_endpoint_tool_uses_transport(self, temp_dir: Path) -> None:
        """Endpoint checks should go through the configured transport."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        async with create_toolkit(
            cwd=temp_dir, config=PipelineConfig(), http_transport=transport
        ) as toolkit:
            result = await toolkit.execute_tool("deploy_api", {"url": "http://svc.test/health"})
        assert result.success is True
        assert "http://svc.test/health" in result.verification.evidence
