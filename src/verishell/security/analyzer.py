"""
Safety analyzer with pattern-based command classification.

This is the leaf of the pipeline: it classifies a command string against
the rule families in ``verishell.security.rules`` and recommends whether to
allow, warn about, or block it.

The analyzer never raises. A rule that cannot be evaluated (a broken custom
pattern, or a command that is not a string) counts as "no violation" for
that rule. This deliberately accepts false negatives over refusing to run
anything: a command the analyzer cannot classify is reported as safe.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping

from verishell._types import (
    Recommendation,
    RiskLevel,
    SafetyAnalysis,
    Severity,
    Violation,
    ViolationType,
)
from verishell.security.rules import DEFAULT_RULES, DESTRUCTIVE_TYPES, SafetyRule

logger = logging.getLogger(__name__)


def _keep_where(match: re.Match[str]) -> str:
    return f"DELETE FROM {match.group(1)} WHERE id = ?; -- Add WHERE clause"


# Per-pattern rewrites used to build a safer alternative, tried in order.
_REWRITES: tuple[tuple[re.Pattern[str], str | Callable[[re.Match[str]], str]], ...] = (
    (re.compile(r"\brm\s+-(?:[a-z]*r[a-z]*f|[a-z]*f[a-z]*r)[a-z]*\b", re.I), "rm -ri"),
    (
        re.compile(
            r"\brm(?:\s+-\S*)*\s+(?:-[a-z]*r[a-z]*|--recursive)(?:\s+-\S*)*(?=\s|$)", re.I
        ),
        "rm -ri",
    ),
    (re.compile(r"\bdel\s+/[fs]\b", re.I), "del /p"),
    (re.compile(r"(\bRemove-Item\b.*?)-Force\b", re.I), r"\1-Confirm"),
    (re.compile(r"\bDELETE\s+FROM\s+(\w+)\s*;", re.I), _keep_where),
    (re.compile(r"password\s*=\s*['\"][^'\"]+['\"]", re.I), "password=$PASSWORD_ENV_VAR"),
    (re.compile(r"token\s*=\s*['\"][^'\"]+['\"]", re.I), "token=$TOKEN_ENV_VAR"),
    (re.compile(r"api[_-]?key\s*=\s*['\"][^'\"]+['\"]", re.I), "api_key=$API_KEY_ENV_VAR"),
    (re.compile(r"secret\s*=\s*['\"][^'\"]+['\"]", re.I), "secret=$SECRET_ENV_VAR"),
    (re.compile(r"\b0\.0\.0\.0\b"), "127.0.0.1"),
)

_DROP = re.compile(r"\b(?:DROP\s+(?:TABLE|DATABASE|SCHEMA)|TRUNCATE\s+TABLE)\b", re.I)


class SafetyAnalyzer:
    """
    Classifies shell commands against ordered families of dangerous patterns.

    Each family (file deletion, database modification, credential exposure,
    network exposure) contributes at most one violation per analysis: the
    first rule in family order that matches. Rules are ordered most severe
    first, so that is also the most severe match.

    Example:
        >>> analyzer = SafetyAnalyzer.standard()
        >>> analyzer.analyze("rm -rf /tmp/test").recommendation
        <Recommendation.BLOCK: 'block'>
    """

    def __init__(self, rules: Mapping[ViolationType, tuple[SafetyRule, ...]] | None = None) -> None:
        source = DEFAULT_RULES if rules is None else rules
        self._rules: dict[ViolationType, list[SafetyRule]] = {
            vtype: list(source.get(vtype, ())) for vtype in ViolationType
        }

    @classmethod
    def standard(cls) -> SafetyAnalyzer:
        """Create an analyzer with the default rule set (recommended)."""
        return cls(DEFAULT_RULES)

    @property
    def rules(self) -> dict[ViolationType, tuple[SafetyRule, ...]]:
        """Snapshot of the active rules per family."""
        return {vtype: tuple(rules) for vtype, rules in self._rules.items()}

    def add_rule(
        self,
        violation_type: ViolationType,
        pattern: str,
        severity: Severity,
        description: str,
    ) -> None:
        """
        Append a custom rule to a family.

        Args:
            violation_type: Family the rule belongs to.
            pattern: Regex pattern string (matched case-insensitively).
            severity: MEDIUM, HIGH or CRITICAL.
            description: Human-readable description for audit logs.

        Raises:
            ValueError: If severity is LOW. A fired low-severity rule would
                produce a violation that is still recommended as 'allow'.
        """
        if severity is Severity.LOW:
            raise ValueError("Rules must be at least MEDIUM severity")
        rule = SafetyRule(re.compile(pattern, re.IGNORECASE), severity, description)
        self._rules[violation_type].append(rule)

    def analyze(self, command: str) -> SafetyAnalysis:
        """
        Analyze a command for safety violations.

        Args:
            command: The shell command to classify.

        Returns:
            A fresh, immutable SafetyAnalysis. Never raises.
        """
        violations: list[Violation] = []
        for vtype, rules in self._rules.items():
            violation = self._match_family(vtype, rules, command)
            if violation is not None:
                violations.append(violation)

        risk_level = _risk_level(violations)
        recommendation = _recommend(risk_level, violations)
        alternative = (
            self.suggest_alternative(command) if recommendation is Recommendation.BLOCK else None
        )

        return SafetyAnalysis(
            safe=not violations,
            violations=tuple(violations),
            risk_level=risk_level,
            recommendation=recommendation,
            alternative=alternative,
        )

    def suggest_alternative(self, command: str) -> str:
        """
        Get a safer alternative for a blocked command.

        Applies the first matching per-pattern rewrite (interactive deletion,
        loopback binding, environment-variable placeholders, ...). Falls
        back to a generic review comment when no rewrite applies.
        """
        text = command if isinstance(command, str) else str(command)

        if _DROP.search(text):
            return f"-- {text}\n-- Please review and execute manually with confirmation"

        for pattern, replacement in _REWRITES:
            rewritten, count = pattern.subn(replacement, text)
            if count:
                return rewritten

        return f"# Review and modify this command:\n# {text}\n# Add appropriate safety measures"

    def is_destructive(self, analysis: SafetyAnalysis) -> bool:
        """Return True if the analysis contains a file or database destruction."""
        return any(v.type in DESTRUCTIVE_TYPES for v in analysis.violations)

    def _match_family(
        self,
        vtype: ViolationType,
        rules: list[SafetyRule],
        command: str,
    ) -> Violation | None:
        for rule in rules:
            try:
                matched = rule.pattern.search(command) is not None
            except Exception as exc:
                logger.debug(f"Rule {rule.pattern.pattern!r} skipped: {exc}")
                continue
            if matched:
                return Violation(
                    type=vtype,
                    severity=rule.severity,
                    description=rule.description,
                    pattern=rule.pattern.pattern,
                )
        return None


def _risk_level(violations: list[Violation]) -> RiskLevel:
    if not violations:
        return Severity.LOW
    return max((v.severity for v in violations), key=lambda s: s.rank)


def _recommend(risk_level: RiskLevel, violations: list[Violation]) -> Recommendation:
    if risk_level is Severity.CRITICAL:
        return Recommendation.BLOCK
    if risk_level is Severity.HIGH:
        high_count = sum(1 for v in violations if v.severity is Severity.HIGH)
        return Recommendation.BLOCK if high_count > 1 else Recommendation.WARN
    if risk_level is Severity.MEDIUM:
        return Recommendation.WARN
    return Recommendation.ALLOW
