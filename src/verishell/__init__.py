"""
Top-level facade for verishell.
"""

from verishell._types import (
    ActivityRecord,
    CheckType,
    CommandOutcome,
    CommandResult,
    ErrorKind,
    ExecutionPlan,
    ExecutionResult,
    IsolationConfig,
    Recommendation,
    ResourceUsage,
    RiskLevel,
    SafetyAnalysis,
    Severity,
    ToolResult,
    ValidationCheck,
    ValidationResult,
    Violation,
    ViolationType,
)
from verishell.activity import ActivityLog, JsonlActivityLog, MemoryActivityLog
from verishell.api import Toolkit, create_toolkit
from verishell.config import PipelineConfig
from verishell.errors import (
    CommandError,
    ConfigurationError,
    ContextBusyError,
    InvalidHandleError,
    VerishellError,
)
from verishell.orchestrator import ToolOrchestrator
from verishell.sandbox import IsolationExecutor, LocalShell
from verishell.security import SafetyAnalyzer
from verishell.validation import OutcomeValidator, ValidationCache

__all__ = [
    "create_toolkit",
    "Toolkit",
    "PipelineConfig",
    "SafetyAnalyzer",
    "IsolationExecutor",
    "LocalShell",
    "OutcomeValidator",
    "ValidationCache",
    "ToolOrchestrator",
    "ActivityLog",
    "MemoryActivityLog",
    "JsonlActivityLog",
    "ActivityRecord",
    "CheckType",
    "CommandOutcome",
    "CommandResult",
    "ErrorKind",
    "ExecutionPlan",
    "ExecutionResult",
    "IsolationConfig",
    "Recommendation",
    "ResourceUsage",
    "RiskLevel",
    "SafetyAnalysis",
    "Severity",
    "ToolResult",
    "ValidationCheck",
    "ValidationResult",
    "Violation",
    "ViolationType",
    "VerishellError",
    "ConfigurationError",
    "InvalidHandleError",
    "ContextBusyError",
    "CommandError",
]
