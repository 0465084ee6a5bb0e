"""
Categorization results and the learning-loop records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

# Confidence bands
HIGH_CONFIDENCE_THRESHOLD = 0.85
MEDIUM_CONFIDENCE_THRESHOLD = 0.70


class CategorizationSource(str, Enum):
    """Tier that produced a category, ordered from most local to least."""

    USER_LEARNED = "USER_LEARNED"
    RULE_BASED = "RULE_BASED"
    MERCHANT_DATABASE = "MERCHANT_DATABASE"
    USER_HISTORY = "USER_HISTORY"
    ON_DEVICE_ML = "ON_DEVICE_ML"
    LLM_TIER2 = "LLM_TIER2"
    LLM_TIER3 = "LLM_TIER3"
    USER = "USER"

    @property
    def is_local(self) -> bool:
        return self in LOCAL_SOURCES


LOCAL_SOURCES = frozenset(
    {
        CategorizationSource.USER_LEARNED,
        CategorizationSource.RULE_BASED,
        CategorizationSource.MERCHANT_DATABASE,
        CategorizationSource.USER_HISTORY,
        CategorizationSource.ON_DEVICE_ML,
    }
)


@dataclass(frozen=True)
class CategorizationResult:
    """Category assigned to one transaction by one tier."""

    transaction_id: str
    category_id: str
    confidence: float
    source: CategorizationSource

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE_THRESHOLD

    @property
    def is_medium_confidence(self) -> bool:
        return MEDIUM_CONFIDENCE_THRESHOLD <= self.confidence < HIGH_CONFIDENCE_THRESHOLD

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < MEDIUM_CONFIDENCE_THRESHOLD

    @property
    def requires_user_confirmation(self) -> bool:
        return not self.is_high_confidence

    @property
    def is_local_source(self) -> bool:
        return self.source.is_local

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "transaction_id": self.transaction_id,
            "category_id": self.category_id,
            "confidence": self.confidence,
            "source": self.source.value,
        }


class LearnedMerchantSource(str, Enum):
    USER = "USER"
    ML = "ML"


@dataclass
class LearnedMerchant:
    """User-taught mapping from a normalized merchant pattern to a category."""

    id: str
    merchant_pattern: str
    category_id: str
    confidence: float
    source: LearnedMerchantSource
    sample_count: int
    last_used_at: datetime
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "merchant_pattern": self.merchant_pattern,
            "category_id": self.category_id,
            "confidence": self.confidence,
            "source": self.source.value,
            "sample_count": self.sample_count,
            "last_used_at": self.last_used_at.isoformat(),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CategoryCorrection:
    """Append-only audit record of a user changing a category."""

    id: str
    transaction_id: str
    original_category_id: Optional[str]
    corrected_category_id: str
    merchant_name: Optional[str]
    merchant_normalized: Optional[str]
    created_at: datetime


# Learning outcomes


@dataclass(frozen=True)
class LearnResult:
    """Base class for the outcome of learning from a correction."""

    def to_dict(self) -> dict[str, Any]:
        return {"result": type(self).__name__}


@dataclass(frozen=True)
class CorrectionSaved(LearnResult):
    """Correction stored, not enough evidence for a mapping yet."""

    correction_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"result": "CorrectionSaved", "correction_id": self.correction_id}


@dataclass(frozen=True)
class MappingCreated(LearnResult):
    merchant: LearnedMerchant

    def to_dict(self) -> dict[str, Any]:
        return {"result": "MappingCreated", "merchant": self.merchant.to_dict()}


@dataclass(frozen=True)
class MappingUpdated(LearnResult):
    merchant: LearnedMerchant

    def to_dict(self) -> dict[str, Any]:
        return {"result": "MappingUpdated", "merchant": self.merchant.to_dict()}


@dataclass(frozen=True)
class TransactionForCategorization:
    """Minimal view of a transaction handed to the categorization tiers."""

    id: str
    description: str
    amount: int = 0
