"""
Advisory validation of parsed transactions.

Rules are independent and additive. Validation never rejects a batch:
warnings are surfaced to the reviewer alongside the preview.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..clock import Clock, SystemClock
from ..schemas.transactions import ImportedTransaction

logger = logging.getLogger(__name__)

# 1,000,000.00 in minor units
DEFAULT_LARGE_AMOUNT_THRESHOLD = 1_000_000_00


@dataclass
class ValidationResult:
    """Outcome of validating a batch."""

    is_valid: bool
    warnings: list[str] = field(default_factory=list)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_valid": self.is_valid,
            "warnings": list(self.warnings),
            "warning_count": self.warning_count,
        }


class ImportValidator:
    """Flags suspicious records without blocking the import.

    Checks per transaction:
    - Date strictly after today
    - Absolute amount above the large-amount threshold
    - Blank or whitespace-only description
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        large_amount_threshold: int = DEFAULT_LARGE_AMOUNT_THRESHOLD,
    ) -> None:
        self.clock = clock or SystemClock()
        self.large_amount_threshold = large_amount_threshold

    def validate(self, transactions: list[ImportedTransaction]) -> ValidationResult:
        """Validate a batch of parsed transactions.

        Args:
            transactions: Rows produced by a parser

        Returns:
            ValidationResult; is_valid only reflects that the batch was parseable
        """
        today = self.clock.today()
        warnings: list[str] = []

        for i, transaction in enumerate(transactions):
            if transaction.date > today:
                warnings.append(
                    f"Transaction {i + 1}: Future date detected ({transaction.date.isoformat()})"
                )
            if abs(transaction.amount) > self.large_amount_threshold:
                warnings.append(f"Transaction {i + 1}: Unusually large amount")
            if not transaction.description.strip():
                warnings.append(f"Transaction {i + 1}: Empty description")

        if warnings:
            logger.info(f"Validation produced {len(warnings)} warnings for {len(transactions)} rows")

        return ValidationResult(is_valid=True, warnings=warnings)
