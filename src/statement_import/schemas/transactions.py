"""
Transaction shapes shared by the parsers and the import pipeline.

Amounts are always signed integers in minor units (cents, tiyn):
negative = debit / expense, positive = credit / income.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class ImportSource(str, Enum):
    """Where an imported transaction's fields came from."""

    RULE_BASED = "RULE_BASED"
    DOCUMENT_AI = "DOCUMENT_AI"
    LLM_ENHANCED = "LLM_ENHANCED"
    USER_CORRECTED = "USER_CORRECTED"
    NATIVE_AI = "NATIVE_AI"


class TransactionType(str, Enum):
    """Direction of a persisted transaction."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


@dataclass(frozen=True)
class ImportedTransaction:
    """A transaction produced by a parser.

    Confidence reflects parser certainty, not categorization.
    """

    date: date
    amount: int  # minor units, signed
    description: str
    confidence: float = 1.0
    source: ImportSource = ImportSource.RULE_BASED
    merchant: Optional[str] = None
    balance: Optional[int] = None
    category: Optional[str] = None
    raw_data: dict[str, str] = field(default_factory=dict)

    def with_category(self, category_id: Optional[str]) -> "ImportedTransaction":
        """Return a copy carrying the given category."""
        return replace(self, category=category_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "date": self.date.isoformat(),
            "amount": self.amount,
            "description": self.description,
            "confidence": self.confidence,
            "source": self.source.value,
            "merchant": self.merchant,
            "balance": self.balance,
            "category": self.category,
            "raw_data": dict(self.raw_data),
        }


@dataclass(frozen=True)
class PartialTransaction:
    """Transaction recovered from OCR text before enhancement.

    Enhancement tiers fill the optional fields through ``enhance()``, which
    returns a new instance. The extracted date, amount and description are
    never changed.
    """

    raw_date: str
    amount: int
    currency: Optional[str]
    raw_description: str
    is_credit: bool
    is_debit: bool
    merchant: Optional[str] = None
    category_hint: Optional[str] = None
    counterparty_name: Optional[str] = None

    def enhance(
        self,
        merchant: Optional[str] = None,
        category_hint: Optional[str] = None,
        counterparty_name: Optional[str] = None,
    ) -> "PartialTransaction":
        """Return a copy with enhancement fields filled in (existing values kept)."""
        return replace(
            self,
            merchant=merchant or self.merchant,
            category_hint=category_hint or self.category_hint,
            counterparty_name=counterparty_name or self.counterparty_name,
        )


@dataclass
class Transaction:
    """A transaction as persisted by the transaction store."""

    id: str
    account_id: str
    amount: int
    type: TransactionType
    date: date
    description: Optional[str] = None
    merchant: Optional[str] = None
    category_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount": self.amount,
            "type": self.type.value,
            "date": self.date.isoformat(),
            "description": self.description,
            "merchant": self.merchant,
            "category_id": self.category_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class Category:
    """Category row managed by the category store."""

    id: str
    name: str
    icon: str = "package"
    color: str = "#9E9E9E"
    sort_order: int = 0
