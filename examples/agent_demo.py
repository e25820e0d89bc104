"""
Simulation of an AI Agent using verishell.

This demonstrates how `verishell` is used in a real agent loop.
The agent (simulated here) generates commands and tool calls dynamically.
verishell acts as the safety layer: safe commands run, dangerous ones are
refused with a safer alternative, and tool calls only count as done once
their outcome has been verified.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from verishell import MemoryActivityLog, create_toolkit


@dataclass
class AgentAction:
    thought: str
    command: str | None = None
    tool: str | None = None
    args: dict[str, Any] = field(default_factory=dict)


class MockLLM:
    """Simulates an LLM acting on a user request."""

    def __init__(self):
        self.step = 0

    def next_action(self) -> AgentAction | None:
        """Returns the next action the 'AI' wants to take."""
        actions = [
            # Innocent exploration
            AgentAction(
                thought="I need to see what files are here.",
                command="ls -la",
            ),
            # Doing work (verified: the file must exist afterwards)
            AgentAction(
                thought="I'll create a notes file.",
                tool="write_file",
                args={"path": "notes.txt", "content": "hello"},
            ),
            # Claims success but verification disagrees
            AgentAction(
                thought="I'll create the report file.",
                tool="write_file_stub",
                args={"path": "report.txt"},
            ),
            # HALLUCINATION / MISTAKE (Dangerous!)
            AgentAction(
                thought="Let me clean up everything.",
                command="rm -rf ./",
            ),
            # Leaking a secret (Dangerous!)
            AgentAction(
                thought="I'll configure the database.",
                command="export DB_PASSWORD='hunter2'",
            ),
        ]

        if self.step < len(actions):
            action = actions[self.step]
            self.step += 1
            return action
        return None


async def write_file(args: dict[str, Any]) -> str:
    Path(args["path"]).write_text(args.get("content", ""))
    return f"wrote {args['path']}"


async def write_file_stub(args: dict[str, Any]) -> str:
    # Reports success without touching the disk.
    return f"wrote {args['path']}"


async def main():
    logging.basicConfig(level=logging.WARNING)
    print("🤖 Agent initializing...")
    print("🔒 verishell active: commands analyzed, outcomes verified\n")

    workspace = Path("./workspace")
    workspace.mkdir(parents=True, exist_ok=True)
    activity = MemoryActivityLog()

    llm = MockLLM()
    async with create_toolkit(cwd=workspace, activity_log=activity) as toolkit:
        toolkit.register_tool("write_file", write_file)
        toolkit.register_tool("write_file_stub", write_file_stub)

        while True:
            action = llm.next_action()
            if not action:
                print("✅ Agent finished task.")
                break

            print(f"🤖 Thought: {action.thought}")

            if action.command is not None:
                outcome = await toolkit.bash(action.command)
                if outcome.blocked:
                    print(f"🛡️ VERISHELL REFUSED: {outcome.stderr.splitlines()[0]}")
                    if outcome.analysis.alternative:
                        print(f"   Suggested: {outcome.analysis.alternative.splitlines()[0]}")
                else:
                    first = (outcome.stdout.strip().splitlines() or [""])[0]
                    print(f"  -> Result: {first}...")
            else:
                args = dict(action.args)
                if "path" in args:
                    args["path"] = str(workspace / args["path"])
                result = await toolkit.execute_tool(action.tool, args)
                status = "VERIFIED" if result.success else "NOT VERIFIED"
                print(f"  -> {status}: {result.verification.evidence}")
            print("-" * 50)

    print(f"\n📜 {len(activity.records)} tool calls recorded in the activity log")


if __name__ == "__main__":
    asyncio.run(main())
