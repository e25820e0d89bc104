"""Security module for verishell."""

from verishell.security.analyzer import SafetyAnalyzer
from verishell.security.rules import DEFAULT_RULES, DESTRUCTIVE_TYPES, SafetyRule

__all__ = ["DEFAULT_RULES", "DESTRUCTIVE_TYPES", "SafetyAnalyzer", "SafetyRule"]
