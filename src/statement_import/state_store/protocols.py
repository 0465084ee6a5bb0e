"""
Collaborator contracts the pipeline depends on.

The import pipeline never owns persistence; it talks to these interfaces.
``StateStore`` implements all of them on SQLite.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.categorization import CategoryCorrection, LearnedMerchant
from ..schemas.transactions import Transaction


class TransactionStore(ABC):
    @abstractmethod
    def get_transactions(self, account_id: str) -> list[Transaction]:
        """Existing transactions of an account, used for duplicate detection."""
        pass

    @abstractmethod
    def save_transaction(self, transaction: Transaction) -> None:
        """Persist one transaction atomically."""
        pass


class CategoryResolver(ABC):
    @abstractmethod
    def ensure_exists(self, category_id: str) -> str:
        """
        Guarantee a category row exists.

        Args:
            category_id: Requested category

        Returns:
            The id actually usable: ``category_id`` itself, or the fallback
            category when the requested one cannot be created
        """
        pass


class LearnedMerchantStore(ABC):
    @abstractmethod
    def find_match(self, description: str) -> Optional[LearnedMerchant]:
        """Best learned merchant whose pattern occurs in the description."""
        pass

    @abstractmethod
    def get_by_pattern(self, merchant_pattern: str) -> Optional[LearnedMerchant]:
        pass

    @abstractmethod
    def save_learned_merchant(self, merchant: LearnedMerchant) -> None:
        """Insert or update by id."""
        pass

    @abstractmethod
    def list_learned_merchants(self) -> list[LearnedMerchant]:
        pass


class CorrectionStore(ABC):
    @abstractmethod
    def save_correction(self, correction: CategoryCorrection) -> None:
        pass

    @abstractmethod
    def count_corrections(self, merchant_normalized: str, category_id: str) -> int:
        pass
