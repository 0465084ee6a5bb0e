"""
Rule-based categorization (tier 1).

Free and synchronous; the only tier that runs with no network or model.
Lookup order: merchant database, the user's own history, then keyword rules
for income and cash movements.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..schemas.categorization import CategorizationResult, CategorizationSource
from .merchant_db import MerchantDatabase

logger = logging.getLogger(__name__)

USER_HISTORY_CONFIDENCE = 0.92


@dataclass(frozen=True)
class KeywordRule:
    pattern: re.Pattern
    category_id: str
    confidence: float


def _rule(pattern: str, category_id: str, confidence: float) -> KeywordRule:
    return KeywordRule(re.compile(pattern, re.IGNORECASE), category_id, confidence)


DEFAULT_RULES = [
    # Cash
    _rule(r"ATM|БАНКОМАТ", "transfer", 0.88),
    _rule(r"CASH.*WITHDRAW|СНЯТИЕ.*НАЛИЧ", "transfer", 0.88),
    # Income
    _rule(r"ЗАРПЛАТА|SALARY|ЗАРАБОТН", "salary", 0.95),
    _rule(r"ПЕНСИЯ|PENSION", "salary", 0.95),
    _rule(r"СТИПЕНДИ|SCHOLARSHIP", "salary", 0.90),
    _rule(r"ДИВИДЕНД|DIVIDEND", "salary", 0.90),
    # Bank-side adjustments
    _rule(r"ПРОЦЕНТ|INTEREST", "other", 0.85),
    _rule(r"ВОЗВРАТ|REFUND", "other", 0.85),
    _rule(r"КЭШБЭК|CASHBACK", "other", 0.90),
]


class RuleBasedCategorizer:
    """
    Categorizes transactions from static knowledge.

    Args:
        merchant_db: Known merchant patterns
        user_history: Description fragment -> category id, taken from the
            user's previously categorized transactions
        rules: Keyword rules, first match wins
    """

    def __init__(
        self,
        merchant_db: Optional[MerchantDatabase] = None,
        user_history: Optional[dict[str, str]] = None,
        rules: Optional[list[KeywordRule]] = None,
    ):
        self.merchant_db = merchant_db or MerchantDatabase()
        self.user_history = user_history or {}
        self.rules = rules if rules is not None else list(DEFAULT_RULES)

    def categorize(self, transaction_id: str, description: str) -> Optional[CategorizationResult]:
        """Return the first local match for a description, or None."""
        if not description or not description.strip():
            return None

        result = self.merchant_db.find_match(description, transaction_id)
        if result is not None:
            return result

        result = self._from_history(transaction_id, description)
        if result is not None:
            return result

        for rule in self.rules:
            if rule.pattern.search(description):
                return CategorizationResult(
                    transaction_id=transaction_id,
                    category_id=rule.category_id,
                    confidence=rule.confidence,
                    source=CategorizationSource.RULE_BASED,
                )
        return None

    def _from_history(self, transaction_id: str, description: str) -> Optional[CategorizationResult]:
        upper = description.upper()
        for fragment, category_id in self.user_history.items():
            if fragment and fragment.upper() in upper:
                return CategorizationResult(
                    transaction_id=transaction_id,
                    category_id=category_id,
                    confidence=USER_HISTORY_CONFIDENCE,
                    source=CategorizationSource.USER_HISTORY,
                )
        return None

    def categorize_batch(self, transactions: list[tuple[str, str]]) -> dict[str, CategorizationResult]:
        """Categorize (id, description) pairs; unmatched ids are absent."""
        results = {}
        for transaction_id, description in transactions:
            result = self.categorize(transaction_id, description)
            if result is not None:
                results[transaction_id] = result
        logger.debug(f"Rules: matched {len(results)}/{len(transactions)}")
        return results
