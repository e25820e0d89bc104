"""
Activity sinks.

The orchestrator hands one ActivityRecord to its sink after every cycle,
including refusals and internal errors.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from verishell._types import ActivityRecord


class ActivityLog(Protocol):
    """Receives one record per plan-execute-verify cycle."""

    def record(self, record: ActivityRecord) -> None: ...


@dataclass
class MemoryActivityLog:
    """Keeps records in a list. Useful for tests and short-lived sessions."""

    records: list[ActivityRecord] = field(default_factory=list)

    def record(self, record: ActivityRecord) -> None:
        self.records.append(record)


@dataclass(frozen=True)
class JsonlActivityLog:
    """Appends records to a JSON Lines file, one object per line."""

    path: Path

    @classmethod
    def default_for_workspace(cls, workspace_root: Path) -> JsonlActivityLog:
        directory = (workspace_root / ".verishell").resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return cls(path=directory / "activity.jsonl")

    def record(self, record: ActivityRecord) -> None:
        """
        Append one record.

        This is blocking file I/O called from the event loop. A single short
        line per cycle is written, so it is not offloaded to a thread.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), sort_keys=True, default=str) + "\n")
