"""
Core type definitions for verishell.

Uses dataclasses, enums and Protocols for lightweight, typed abstractions.
Every result object is immutable and carries an ``ErrorKind`` tag when it
describes a failure, so callers branch on data instead of catching
exceptions.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, Protocol, TypeVar

from verishell.errors import CommandError, ConfigurationError

T = TypeVar("T")

ContextHandle = str
"""Opaque identifier for one active isolation context."""


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def freeze_mapping(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Deep-copy a mapping and wrap it read-only."""
    return MappingProxyType(copy.deepcopy(dict(mapping or {})))


class Severity(Enum):
    """Severity of a single safety violation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}

# Risk levels share the severity scale.
RiskLevel = Severity


class Recommendation(Enum):
    """What the caller should do with an analyzed command."""

    ALLOW = "allow"
    WARN = "warn"  # Run, but log the violations
    BLOCK = "block"  # Refuse unless explicitly approved


class ViolationType(Enum):
    """Rule family a violation belongs to."""

    FILE_DELETION = "file_deletion"
    DB_MODIFICATION = "db_modification"
    CREDENTIAL_EXPOSURE = "credential_exposure"
    NETWORK_EXPOSURE = "network_exposure"


class ErrorKind(Enum):
    """Tag describing why an operation did not succeed."""

    SAFETY_REJECTION = "safety_rejection"
    TIMEOUT = "timeout"
    MEMORY_LIMIT = "memory_limit"
    EXECUTION_ERROR = "execution_error"
    CANCELLED = "cancelled"
    PROBE_FAILURE = "probe_failure"
    PROBE_TIMEOUT = "probe_timeout"
    VERIFICATION_FAILED = "verification_failed"
    INTERNAL_ERROR = "internal_error"


class CheckType(Enum):
    """Kind of live probe a plan asks the validator to run."""

    FILE = "file"
    ENDPOINT = "endpoint"
    PROCESS = "process"
    HOST_PROCESS = "host_process"
    PORT = "port"


# ---------------------------------------------------------------------------
# Safety analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Violation:
    """One matched unsafe pattern."""

    type: ViolationType
    severity: Severity
    description: str
    pattern: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "pattern": self.pattern,
        }


@dataclass(frozen=True, slots=True)
class SafetyAnalysis:
    """Immutable verdict for one analyzed command."""

    safe: bool
    violations: tuple[Violation, ...]
    risk_level: RiskLevel
    recommendation: Recommendation
    alternative: str | None = None

    def describe(self) -> str:
        """Comma-separated violation descriptions."""
        return ", ".join(v.description for v in self.violations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "safe": self.safe,
            "violations": [v.to_dict() for v in self.violations],
            "risk_level": self.risk_level.value,
            "recommendation": self.recommendation.value,
            "alternative": self.alternative,
        }


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IsolationConfig:
    """Resource contract for one execution. Never mutated after creation."""

    max_cpu_percent: float = 80.0
    max_memory_bytes: int = 512 * 1024 * 1024
    max_time_millis: int = 60_000
    allowed_paths: frozenset[str] = field(default_factory=frozenset)
    allowed_networks: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.max_memory_bytes <= 0:
            raise ConfigurationError(
                f"max_memory_bytes must be positive, got {self.max_memory_bytes}"
            )
        if self.max_time_millis <= 0:
            raise ConfigurationError(
                f"max_time_millis must be positive, got {self.max_time_millis}"
            )
        if not 0 <= self.max_cpu_percent <= 100:
            raise ConfigurationError(
                f"max_cpu_percent must be within 0-100, got {self.max_cpu_percent}"
            )
        # Accept any iterable of strings for the allow-lists.
        object.__setattr__(self, "allowed_paths", frozenset(self.allowed_paths))
        object.__setattr__(self, "allowed_networks", frozenset(self.allowed_networks))


@dataclass(frozen=True, slots=True)
class ResourceUsage:
    """Resources consumed by one execution."""

    cpu: float
    memory: int
    time_millis: int

    def to_dict(self) -> dict[str, Any]:
        return {"cpu": self.cpu, "memory": self.memory, "time_millis": self.time_millis}


@dataclass(frozen=True, slots=True)
class ExecutionResult(Generic[T]):
    """Outcome of running one unit of work under an IsolationConfig."""

    success: bool
    result: T | None
    error: BaseException | None
    stdout: str
    stderr: str
    exit_code: int
    resource_usage: ResourceUsage
    error_kind: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": str(self.error) if self.error else None,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "resource_usage": self.resource_usage.to_dict(),
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Immutable result from a spawned shell process."""

    stdout: str
    stderr: str
    exit_code: int
    truncated: bool = False

    @property
    def success(self) -> bool:
        """Return True if command exited with code 0."""
        return self.exit_code == 0

    def raise_for_status(self) -> None:
        """Raise CommandError if exit_code is non-zero."""
        if not self.success:
            raise CommandError(
                f"Command failed with exit code {self.exit_code}: {self.stderr or self.stdout}",
                exit_code=self.exit_code,
            )


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    """Result of one command sent through the shell front door."""

    success: bool
    stdout: str
    stderr: str
    exit_code: int
    analysis: SafetyAnalysis
    blocked: bool = False
    approval_requested: bool = False
    truncated: bool = False
    error_kind: ErrorKind | None = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of one probe against real system state."""

    passed: bool
    evidence: str
    confidence: int
    duration_millis: int
    timestamp: str
    error: str | None = None
    error_kind: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "evidence": self.evidence,
            "confidence": self.confidence,
            "duration_millis": self.duration_millis,
            "timestamp": self.timestamp,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass(frozen=True, slots=True)
class ValidationCheck:
    """One verification step declared by a plan."""

    type: CheckType
    config: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", freeze_mapping(self.config))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "config": dict(self.config)}


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """
    Declarative description of one tool invocation before it runs.

    ``args`` is a read-only deep copy of the caller's arguments, so the plan
    handed back inside a ToolResult is exactly what was planned.
    """

    tool_name: str
    args: Mapping[str, Any]
    steps: tuple[str, ...]
    expected_outcome: str
    validation_checks: tuple[ValidationCheck, ...]
    rollback_strategy: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", freeze_mapping(self.args))
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "validation_checks", tuple(self.validation_checks))

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "args": copy.deepcopy(dict(self.args)),
            "steps": list(self.steps),
            "expected_outcome": self.expected_outcome,
            "validation_checks": [c.to_dict() for c in self.validation_checks],
            "rollback_strategy": self.rollback_strategy,
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Final answer of one plan-execute-verify cycle.

    ``success`` always equals ``verification.passed``.
    """

    success: bool
    output: Any
    plan: ExecutionPlan
    verification: ValidationResult
    safety: SafetyAnalysis | None = None
    execution: ExecutionResult[Any] | None = None
    error_kind: ErrorKind | None = None
    rolled_back: bool = False


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    """Audit record emitted after every orchestrator cycle."""

    tool_name: str
    plan: ExecutionPlan
    verification: ValidationResult
    success: bool
    rollback_strategy: str | None = None
    error_kind: ErrorKind | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "tool_name": self.tool_name,
            "success": self.success,
            "plan": self.plan.to_dict(),
            "verification": self.verification.to_dict(),
            "rollback_strategy": self.rollback_strategy,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


class ApprovalCallback(Protocol):
    """Called for a blocked command. Return True to run it anyway."""

    async def __call__(self, analysis: SafetyAnalysis) -> bool: ...


class ToolHandler(Protocol):
    """Performs the actual work of a named tool."""

    async def __call__(self, args: dict[str, Any]) -> Any: ...
