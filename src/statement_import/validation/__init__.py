"""Advisory validation of parsed statement rows."""

from .validator import DEFAULT_LARGE_AMOUNT_THRESHOLD, ImportValidator, ValidationResult

__all__ = ["ImportValidator", "ValidationResult", "DEFAULT_LARGE_AMOUNT_THRESHOLD"]
