"""
Plan-execute-verify orchestrator.

Every tool invocation goes through the same cycle::

    PLANNED -> (safety gate) -> EXECUTING -> VERIFYING -> ROLLING_BACK | DONE

A tool is only reported successful when live verification of real system
state passes, so ``ToolResult.success`` always equals
``ToolResult.verification.passed``.
"""

from __future__ import annotations

import asyncio
import copy
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any

from verishell._types import (
    ActivityRecord,
    ApprovalCallback,
    CheckType,
    ErrorKind,
    ExecutionPlan,
    ExecutionResult,
    Recommendation,
    SafetyAnalysis,
    ToolHandler,
    ToolResult,
    ValidationCheck,
    ValidationResult,
    utc_timestamp,
)
from verishell.activity import ActivityLog
from verishell.config import PipelineConfig
from verishell.sandbox.isolation import IsolationExecutor
from verishell.security.analyzer import SafetyAnalyzer
from verishell.validation.validator import OutcomeValidator

logger = logging.getLogger(__name__)


class CycleState(Enum):
    PLANNED = "planned"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    ROLLING_BACK = "rolling_back"
    DONE = "done"


# Substrings of a tool name that imply a verification check.
_CHECK_KEYWORDS: tuple[tuple[tuple[str, ...], CheckType], ...] = (
    (("file",), CheckType.FILE),
    (("api", "http"), CheckType.ENDPOINT),
    (("docker", "container"), CheckType.PROCESS),
    (("port",), CheckType.PORT),
)


def _check_config(check_type: CheckType, args: Mapping[str, Any]) -> dict[str, Any]:
    if check_type is CheckType.FILE:
        return {"path": args.get("path")}
    if check_type is CheckType.ENDPOINT:
        return {"url": args.get("url")}
    if check_type in (CheckType.PROCESS, CheckType.HOST_PROCESS):
        return {"name": args.get("name")}
    return {"port": args.get("port"), "host": args.get("host", "localhost")}


def _failed_verification(
    evidence: str,
    *,
    confidence: int,
    error: str,
    error_kind: ErrorKind | None = None,
) -> ValidationResult:
    return ValidationResult(
        passed=False,
        evidence=evidence,
        confidence=confidence,
        duration_millis=0,
        timestamp=utc_timestamp(),
        error=error,
        error_kind=error_kind,
    )


class ToolOrchestrator:
    """
    Wraps tool invocations in plan, execute and verify phases.

    Example:
        >>> orchestrator = ToolOrchestrator()
        >>> orchestrator.register_tool("write_file", write_file_handler)
        >>> result = await orchestrator.execute_tool("write_file", {"path": "out.txt"})
        >>> result.success, result.verification.evidence
        (True, "File 'out.txt' exists and is readable")
    """

    def __init__(
        self,
        *,
        analyzer: SafetyAnalyzer | None = None,
        executor: IsolationExecutor | None = None,
        validator: OutcomeValidator | None = None,
        config: PipelineConfig | None = None,
        activity_log: ActivityLog | None = None,
        approval_callback: ApprovalCallback | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            analyzer: Safety analyzer for ``args["command"]``.
            executor: Resource-bounded executor. A private one by default.
            validator: Outcome validator. A private one (with its own cache)
                by default.
            config: Resource budget and confirm_destructive setting.
            activity_log: Sink receiving one ActivityRecord per cycle.
            approval_callback: Asked whether a blocked command may run anyway.
        """
        self._config = config or PipelineConfig()
        self._analyzer = analyzer or SafetyAnalyzer.standard()
        self._owns_executor = executor is None
        self._executor = executor or IsolationExecutor()
        self._validator = validator or OutcomeValidator(
            probe_timeout_millis=self._config.probe_timeout_millis
        )
        self._activity_log = activity_log
        self._approval_callback = approval_callback
        self._tools: dict[str, ToolHandler] = {}

    @property
    def validator(self) -> OutcomeValidator:
        return self._validator

    def register_tool(self, name: str, handler: ToolHandler) -> None:
        """
        Register the handler that performs the work of ``name``.

        Handlers receive a private deep copy of the invocation arguments.
        Tools without a handler run a stand-in that echoes the invocation.
        """
        self._tools[name] = handler

    def generate_plan(self, tool_name: str, args: Mapping[str, Any] | None = None) -> ExecutionPlan:
        """Build the immutable plan for one invocation. Touches nothing external."""
        args = args or {}
        name = tool_name.lower()
        checks = [
            ValidationCheck(type=check_type, config=_check_config(check_type, args))
            for keywords, check_type in _CHECK_KEYWORDS
            if any(keyword in name for keyword in keywords)
        ]
        return ExecutionPlan(
            tool_name=tool_name,
            args=args,
            steps=(
                f"Initialize {tool_name} with arguments",
                f"Execute {tool_name}",
                f"Verify {tool_name} outcome",
            ),
            expected_outcome=f"{tool_name} completes successfully",
            validation_checks=checks,
            rollback_strategy=f"Revert changes made by {tool_name}",
        )

    async def execute_tool(
        self, tool_name: str, args: Mapping[str, Any] | None = None
    ) -> ToolResult:
        """
        Run one full plan-execute-verify cycle.

        Never raises for expected failures: refusals, execution failures,
        failed verification and internal errors all come back as a failed
        ToolResult with an ``error_kind``.
        """
        try:
            plan = self.generate_plan(tool_name, args)
        except Exception as exc:
            logger.exception(f"Plan generation failed for {tool_name}")
            plan = _fallback_plan(tool_name)
            return self._finish(
                ToolResult(
                    success=False,
                    output={"error": str(exc)},
                    plan=plan,
                    verification=_failed_verification(
                        f"Internal error while planning {tool_name}",
                        confidence=0,
                        error=str(exc) or type(exc).__name__,
                        error_kind=ErrorKind.INTERNAL_ERROR,
                    ),
                    error_kind=ErrorKind.INTERNAL_ERROR,
                )
            )

        self._transition(tool_name, CycleState.PLANNED)
        try:
            result = await self._run_cycle(plan)
        except Exception as exc:
            logger.exception(f"Internal error while running {tool_name}")
            result = ToolResult(
                success=False,
                output={"error": str(exc)},
                plan=plan,
                verification=_failed_verification(
                    f"Internal error while running {tool_name}",
                    confidence=0,
                    error=str(exc) or type(exc).__name__,
                    error_kind=ErrorKind.INTERNAL_ERROR,
                ),
                error_kind=ErrorKind.INTERNAL_ERROR,
            )
        self._transition(tool_name, CycleState.DONE)
        return self._finish(result)

    async def verify_outcome(self, plan: ExecutionPlan) -> ValidationResult:
        """
        Run every check of a plan concurrently and aggregate the results.

        ``passed`` is true only if every check passed; ``confidence`` is the
        rounded mean (100 when the plan has no checks).
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        results = await self._validator.run_parallel(
            self._check_thunk(check) for check in plan.validation_checks
        )

        passed = all(r.passed for r in results)
        confidence = round(sum(r.confidence for r in results) / len(results)) if results else 100
        errors = [r.error for r in results if not r.passed and r.error]
        evidence = "; ".join(r.evidence for r in results) or "No validation checks required"
        return ValidationResult(
            passed=passed,
            evidence=evidence,
            confidence=confidence,
            duration_millis=int((loop.time() - start) * 1000),
            timestamp=utc_timestamp(),
            error="; ".join(errors) if errors else None,
        )

    async def close(self) -> None:
        if self._owns_executor:
            await self._executor.close()

    async def __aenter__(self) -> ToolOrchestrator:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def _run_cycle(self, plan: ExecutionPlan) -> ToolResult:
        tool_name = plan.tool_name
        analysis: SafetyAnalysis | None = None

        command = plan.args.get("command")
        if isinstance(command, str):
            analysis = self._analyzer.analyze(command)
            reason = await self._refusal_reason(analysis)
            if reason is not None:
                logger.warning(f"Refused {tool_name}: {reason}")
                return ToolResult(
                    success=False,
                    output={"error": reason},
                    plan=plan,
                    verification=_failed_verification(
                        reason,
                        confidence=100,
                        error="Safety rejection",
                        error_kind=ErrorKind.SAFETY_REJECTION,
                    ),
                    safety=analysis,
                    error_kind=ErrorKind.SAFETY_REJECTION,
                )
            if analysis.recommendation is Recommendation.WARN:
                logger.warning(f"Safety warning for {tool_name}: {analysis.describe()}")

        self._transition(tool_name, CycleState.EXECUTING)
        handler = self._tools.get(tool_name) or _stand_in(tool_name)
        call_args = copy.deepcopy(dict(plan.args))
        execution: ExecutionResult[Any] = await self._executor.run(
            functools.partial(handler, call_args),
            self._config.isolation_config(),
        )

        if not execution.success:
            return ToolResult(
                success=False,
                output={"error": str(execution.error)},
                plan=plan,
                verification=_failed_verification(
                    "Tool execution failed",
                    confidence=100,
                    error="Execution failure",
                ),
                safety=analysis,
                execution=execution,
                error_kind=execution.error_kind,
            )

        self._transition(tool_name, CycleState.VERIFYING)
        verification = await self.verify_outcome(plan)
        if verification.passed:
            return ToolResult(
                success=True,
                output=execution.result,
                plan=plan,
                verification=verification,
                safety=analysis,
                execution=execution,
            )

        self._transition(tool_name, CycleState.ROLLING_BACK)
        logger.warning(f"Verification failed for {tool_name}, rolling back: {plan.rollback_strategy}")
        return ToolResult(
            success=False,
            output=execution.result,
            plan=plan,
            verification=verification,
            safety=analysis,
            execution=execution,
            error_kind=ErrorKind.VERIFICATION_FAILED,
            rolled_back=True,
        )

    async def _refusal_reason(self, analysis: SafetyAnalysis) -> str | None:
        if self._analyzer.is_destructive(analysis) and not self._config.confirm_destructive:
            return (
                f"Destructive command requires confirm_destructive: {analysis.describe()}"
                + (f". Suggested alternative: {analysis.alternative}" if analysis.alternative else "")
            )
        if analysis.recommendation is not Recommendation.BLOCK:
            return None
        if self._approval_callback is not None and await self._approval_callback(analysis):
            logger.warning(f"Blocked command approved by callback: {analysis.describe()}")
            return None
        return (
            f"Command blocked by safety analysis: {analysis.describe()}. "
            f"Suggested alternative: {analysis.alternative}"
        )

    def _check_thunk(self, check: ValidationCheck) -> Callable[[], Awaitable[ValidationResult]]:
        config = check.config
        validator = self._validator

        required = {
            CheckType.FILE: "path",
            CheckType.ENDPOINT: "url",
            CheckType.PROCESS: "name",
            CheckType.HOST_PROCESS: "name",
            CheckType.PORT: "port",
        }[check.type]
        if config.get(required) is None:
            return _unusable_check(
                f"{check.type.value} check has no '{required}' argument",
                f"Missing argument: {required}",
            )

        if check.type is CheckType.FILE:
            return functools.partial(validator.check_file, config["path"])
        if check.type is CheckType.ENDPOINT:
            return functools.partial(
                validator.check_endpoint, config["url"], config.get("expected_status", 200)
            )
        if check.type is CheckType.PROCESS:
            return functools.partial(validator.check_process, config["name"])
        if check.type is CheckType.HOST_PROCESS:
            return functools.partial(validator.check_host_process, config["name"])
        try:
            port = int(config["port"])
        except (TypeError, ValueError):
            return _unusable_check(
                f"port check has an invalid 'port' argument: {config['port']!r}",
                f"Invalid argument: port={config['port']!r}",
            )
        return functools.partial(validator.check_port, port, config.get("host") or "localhost")

    def _finish(self, result: ToolResult) -> ToolResult:
        if self._activity_log is None:
            return result
        record = ActivityRecord(
            tool_name=result.plan.tool_name,
            plan=result.plan,
            verification=result.verification,
            success=result.success,
            rollback_strategy=result.plan.rollback_strategy if result.rolled_back else None,
            error_kind=result.error_kind,
        )
        try:
            self._activity_log.record(record)
        except Exception:
            logger.exception(f"Activity sink failed for {result.plan.tool_name}")
        return result

    @staticmethod
    def _transition(tool_name: str, state: CycleState) -> None:
        logger.debug(f"{tool_name}: {state.value}")


def _unusable_check(evidence: str, error: str) -> Callable[[], Awaitable[ValidationResult]]:
    async def unusable() -> ValidationResult:
        return _failed_verification(
            evidence, confidence=0, error=error, error_kind=ErrorKind.PROBE_FAILURE
        )

    return unusable


def _fallback_plan(tool_name: object) -> ExecutionPlan:
    name = str(tool_name)
    return ExecutionPlan(
        tool_name=name,
        args={},
        steps=(),
        expected_outcome=f"{name} completes successfully",
        validation_checks=(),
        rollback_strategy=f"Revert changes made by {name}",
    )


def _stand_in(tool_name: str) -> ToolHandler:
    async def echo(args: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0.01)
        return {
            "tool_name": tool_name,
            "args": args,
            "result": "success",
            "timestamp": utc_timestamp(),
        }

    return echo
