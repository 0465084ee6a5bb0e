"""Fuzzy duplicate detection against existing account history."""

from statement_import.matching.duplicates import (
    FuzzyDuplicateDetector,
    description_similarity,
    normalize_description,
)

__all__ = ["FuzzyDuplicateDetector", "description_similarity", "normalize_description"]
