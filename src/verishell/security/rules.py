"""
Dangerous command patterns, grouped into rule families.

Within each family rules are ordered most severe first; the analyzer reports
the first rule of a family that matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from verishell._types import Severity, ViolationType

_I = re.IGNORECASE


@dataclass(frozen=True, slots=True)
class SafetyRule:
    """A compiled pattern with its severity and human-readable description."""

    pattern: re.Pattern[str]
    severity: Severity
    description: str


def _rule(pattern: str, severity: Severity, description: str) -> SafetyRule:
    return SafetyRule(re.compile(pattern, _I), severity, description)


# Building blocks for rm flag runs such as "-r -f", "-fr" or "--recursive --force".
_RM_FLAGS = r"(?:\s+-\S*)*"
_RM_RECURSIVE = r"\s+(?:-[a-z]*r[a-z]*|--recursive)(?=\s|$)"
_RM_FORCE = r"\s+(?:-[a-z]*f[a-z]*|--force)(?=\s|$)"
_RM_INTERACTIVE = r"\s+(?:-[a-z]*i[a-z]*|--interactive)(?=\s|$)"


FILE_DELETION_RULES: tuple[SafetyRule, ...] = (
    _rule(
        rf"\brm(?={_RM_FLAGS}{_RM_RECURSIVE})(?={_RM_FLAGS}{_RM_FORCE})",
        Severity.CRITICAL,
        "Recursive force deletion (rm -rf)",
    ),
    _rule(r"\bdel\s+/[fs]\b", Severity.CRITICAL, "Force deletion (del /f or /s)"),
    _rule(
        r"\bRemove-Item\b.*-Recurse\b.*-Force\b|\bRemove-Item\b.*-Force\b.*-Recurse\b",
        Severity.CRITICAL,
        "PowerShell recursive force deletion",
    ),
    _rule(
        rf"\brm(?!{_RM_FLAGS}{_RM_INTERACTIVE}){_RM_FLAGS}{_RM_RECURSIVE}",
        Severity.HIGH,
        "Recursive deletion without confirmation",
    ),
    _rule(
        rf"\brm(?!{_RM_FLAGS}{_RM_INTERACTIVE}){_RM_FLAGS}\s+[^-\s]",
        Severity.HIGH,
        "File deletion without confirmation",
    ),
    _rule(r"\brmdir\s+/s\b", Severity.HIGH, "Recursive directory deletion"),
)

DB_MODIFICATION_RULES: tuple[SafetyRule, ...] = (
    _rule(r"\bDROP\s+(?:TABLE|DATABASE|SCHEMA)\b", Severity.CRITICAL, "Database DROP operation"),
    _rule(r"\bTRUNCATE\s+TABLE\b", Severity.CRITICAL, "Table truncation"),
    _rule(r"\bDELETE\s+FROM\s+\w+\s*;", Severity.CRITICAL, "DELETE without WHERE clause"),
    _rule(
        r"\bUPDATE\s+\w+\s+SET\s+(?:(?!\bWHERE\b)[^;])*;",
        Severity.HIGH,
        "UPDATE without WHERE clause",
    ),
)

CREDENTIAL_EXPOSURE_RULES: tuple[SafetyRule, ...] = (
    _rule(r"password\s*=\s*['\"][^'\"]+['\"]", Severity.CRITICAL, "Password in command"),
    _rule(r"token\s*=\s*['\"][^'\"]+['\"]", Severity.CRITICAL, "Token in command"),
    _rule(r"api[_-]?key\s*=\s*['\"][^'\"]+['\"]", Severity.CRITICAL, "API key in command"),
    _rule(r"secret\s*=\s*['\"][^'\"]+['\"]", Severity.CRITICAL, "Secret in command"),
    _rule(r"[A-Za-z0-9]{32,}", Severity.HIGH, "Potential API key or token"),
)

NETWORK_EXPOSURE_RULES: tuple[SafetyRule, ...] = (
    _rule(r"--host\s+0\.0\.0\.0\b", Severity.HIGH, "Exposing service to all interfaces"),
    _rule(r"\b0\.0\.0\.0\b", Severity.HIGH, "Binding to all network interfaces (0.0.0.0)"),
    _rule(r"\*:\d+", Severity.MEDIUM, "Wildcard host binding"),
)

DEFAULT_RULES: dict[ViolationType, tuple[SafetyRule, ...]] = {
    ViolationType.FILE_DELETION: FILE_DELETION_RULES,
    ViolationType.DB_MODIFICATION: DB_MODIFICATION_RULES,
    ViolationType.CREDENTIAL_EXPOSURE: CREDENTIAL_EXPOSURE_RULES,
    ViolationType.NETWORK_EXPOSURE: NETWORK_EXPOSURE_RULES,
}

DESTRUCTIVE_TYPES = frozenset({ViolationType.FILE_DELETION, ViolationType.DB_MODIFICATION})
