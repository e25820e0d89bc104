"""Formatting shared by the framework integrations."""

from __future__ import annotations

from verishell._types import CommandOutcome, ToolResult


def format_outcome(outcome: CommandOutcome) -> str:
    """Render a shell outcome as text an LLM can act on."""
    if outcome.blocked:
        return f"Blocked: {outcome.stderr}"
    if not outcome.success:
        return f"Error (exit {outcome.exit_code}): {outcome.stderr or outcome.stdout}"
    return outcome.stdout


def format_tool_result(result: ToolResult) -> str:
    """Render an orchestrated tool result with its verification evidence."""
    verification = result.verification
    status = "Verified" if result.success else "Failed"
    text = f"{status} (confidence {verification.confidence}): {verification.evidence}"
    if verification.error:
        text += f"\nError: {verification.error}"
    if result.rolled_back:
        text += f"\nRolled back: {result.plan.rollback_strategy}"
    return text
