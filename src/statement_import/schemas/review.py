"""
Review-session shapes: duplicate status, reviewable rows, preview and progress.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .categorization import CategorizationResult
from .documents import DocumentType
from .transactions import ImportedTransaction

# Duplicate status


@dataclass(frozen=True)
class DuplicateStatus:
    """Base class for the duplicate classification of one imported row."""

    @property
    def is_duplicate(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {"status": "unique"}


@dataclass(frozen=True)
class Unique(DuplicateStatus):
    pass


@dataclass(frozen=True)
class ProbableDuplicate(DuplicateStatus):
    matching_id: str
    similarity: float
    reason: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.similarity <= 1.0:
            raise ValueError(f"similarity must be within [0, 1], got {self.similarity}")

    @property
    def is_duplicate(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "probable",
            "matching_id": self.matching_id,
            "similarity": round(self.similarity, 4),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ExactDuplicate(DuplicateStatus):
    matching_id: str
    similarity: float = 1.0

    @property
    def is_duplicate(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"status": "exact", "matching_id": self.matching_id, "similarity": 1.0}


UNIQUE = Unique()


# Review rows and preview


@dataclass(frozen=True)
class ReviewableTransaction:
    """One row of the import preview."""

    index: int
    transaction: ImportedTransaction
    duplicate_status: DuplicateStatus = UNIQUE
    is_selected: bool = True
    category_override: Optional[str] = None
    categorization: Optional[CategorizationResult] = None

    @classmethod
    def create(
        cls,
        index: int,
        transaction: ImportedTransaction,
        duplicate_status: DuplicateStatus,
        categorization: Optional[CategorizationResult] = None,
    ) -> "ReviewableTransaction":
        """Build a row, selected unless it is a duplicate."""
        return cls(
            index=index,
            transaction=transaction,
            duplicate_status=duplicate_status,
            is_selected=not duplicate_status.is_duplicate,
            categorization=categorization,
        )

    @property
    def effective_category(self) -> Optional[str]:
        return self.category_override or self.transaction.category

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "transaction": self.transaction.to_dict(),
            "duplicate_status": self.duplicate_status.to_dict(),
            "is_selected": self.is_selected,
            "category_override": self.category_override,
            "categorization": self.categorization.to_dict() if self.categorization else None,
        }


@dataclass(frozen=True)
class ImportPreviewResult:
    """Reviewable, not-yet-persisted set of imported transactions."""

    transactions: list[ReviewableTransaction]
    document_type: DocumentType
    duplicate_count: int = 0
    validation_warnings: list[str] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.transactions)

    @property
    def selected_count(self) -> int:
        return sum(1 for row in self.transactions if row.is_selected)

    @property
    def selected_indices(self) -> set[int]:
        return {row.index for row in self.transactions if row.is_selected}

    @property
    def has_warnings(self) -> bool:
        return bool(self.validation_warnings)

    @property
    def has_duplicates(self) -> bool:
        return self.duplicate_count > 0

    @property
    def total_income(self) -> int:
        return sum(
            row.transaction.amount
            for row in self.transactions
            if row.is_selected and row.transaction.amount > 0
        )

    @property
    def total_expenses(self) -> int:
        return sum(
            row.transaction.amount
            for row in self.transactions
            if row.is_selected and row.transaction.amount < 0
        )

    def _with_rows(self, rows: list[ReviewableTransaction]) -> "ImportPreviewResult":
        return replace(self, transactions=rows)

    def toggle(self, index: int) -> "ImportPreviewResult":
        return self._with_rows(
            [
                replace(row, is_selected=not row.is_selected) if row.index == index else row
                for row in self.transactions
            ]
        )

    def select_all(self) -> "ImportPreviewResult":
        return self._with_rows([replace(row, is_selected=True) for row in self.transactions])

    def deselect_duplicates(self) -> "ImportPreviewResult":
        return self._with_rows(
            [
                replace(row, is_selected=False) if row.duplicate_status.is_duplicate else row
                for row in self.transactions
            ]
        )

    def with_category_override(self, index: int, category_id: Optional[str]) -> "ImportPreviewResult":
        return self._with_rows(
            [
                replace(row, category_override=category_id) if row.index == index else row
                for row in self.transactions
            ]
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "document_type": self.document_type.to_dict(),
            "total_count": self.total_count,
            "selected_count": self.selected_count,
            "duplicate_count": self.duplicate_count,
            "total_income": self.total_income,
            "total_expenses": self.total_expenses,
            "validation_warnings": list(self.validation_warnings),
            "transactions": [row.to_dict() for row in self.transactions],
        }


@dataclass(frozen=True)
class ImportConfirmationResult:
    saved_count: int
    skipped_count: int


# Progress states


@dataclass(frozen=True)
class ImportProgress:
    """Base class for import progress states."""

    @property
    def is_terminal(self) -> bool:
        return False

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Idle(ImportProgress):
    pass


@dataclass(frozen=True)
class DetectingFormat(ImportProgress):
    filename: str
    file_size: int


@dataclass(frozen=True)
class Parsing(ImportProgress):
    document_type: DocumentType


@dataclass(frozen=True)
class Validating(ImportProgress):
    total: int
    processed: int = 0


@dataclass(frozen=True)
class Deduplicating(ImportProgress):
    total: int
    processed: int = 0
    duplicates_found: int = 0


@dataclass(frozen=True)
class Categorizing(ImportProgress):
    total: int
    categorized: int = 0
    current_tier: str = ""


@dataclass(frozen=True)
class AwaitingConfirmation(ImportProgress):
    result: ImportPreviewResult


@dataclass(frozen=True)
class Saving(ImportProgress):
    total: int
    saved: int = 0


@dataclass(frozen=True)
class Completed(ImportProgress):
    saved_count: int
    skipped_count: int
    duplicate_count: int

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed(ImportProgress):
    message: str
    recoverable: bool = False
    partial_result: Optional[ImportPreviewResult] = None

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class Cancelled(ImportProgress):
    @property
    def is_terminal(self) -> bool:
        return True


IDLE = Idle()
