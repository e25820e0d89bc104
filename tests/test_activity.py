"""Tests for activity sinks."""

from __future__ import annotations

import json
from pathlib import Path

from verishell import JsonlActivityLog, MemoryActivityLog, ToolOrchestrator


class TestJsonlActivityLog:
    """Tests for the JSON Lines sink."""

    async def test_writes_one_line_per_call(self, temp_dir: Path) -> None:
        """Each invocation should append one JSON object."""
        log = JsonlActivityLog(temp_dir / "logs" / "activity.jsonl")
        orchestrator = ToolOrchestrator(activity_log=log)
        try:
            await orchestrator.execute_tool("noop", {"a": 1})
            await orchestrator.execute_tool("shell", {"command": "rm -rf /"})
        finally:
            await orchestrator.close()

        lines = log.path.read_text().splitlines()
        assert len(lines) == 2
        first, second = (json.loads(line) for line in lines)
        assert first["tool_name"] == "noop"
        assert first["success"] is True
        assert first["plan"]["args"] == {"a": 1}
        assert second["success"] is False
        assert second["error_kind"] == "safety_rejection"
        assert second["verification"]["passed"] is False

    async def test_appends_to_existing_file(self, temp_dir: Path) -> None:
        """Records written from the event loop should be appended, never truncate."""
        log = JsonlActivityLog(temp_dir / "activity.jsonl")
        log.path.write_text('{"tool_name": "earlier"}\n')
        async with ToolOrchestrator(activity_log=log) as orchestrator:
            await orchestrator.execute_tool("noop", {})

        lines = log.path.read_text().splitlines()
        assert [json.loads(line)["tool_name"] for line in lines] == ["earlier", "noop"]

    def test_default_for_workspace(self, temp_dir: Path) -> None:
        log = JsonlActivityLog.default_for_workspace(temp_dir)
        assert log.path == (temp_dir / ".verishell" / "activity.jsonl").resolve()
        assert log.path.parent.is_dir()


class TestMemoryActivityLog:
    async def test_collects_records(self) -> None:
        log = MemoryActivityLog()
        async with ToolOrchestrator(activity_log=log) as orchestrator:
            result = await orchestrator.execute_tool("noop", {})
        assert [r.tool_name for r in log.records] == ["noop"]
        assert log.records[0].verification is result.verification
