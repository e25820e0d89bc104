"""Outcome validation for verishell."""

from verishell.validation.cache import ValidationCache
from verishell.validation.validator import OutcomeValidator

__all__ = ["OutcomeValidator", "ValidationCache"]
