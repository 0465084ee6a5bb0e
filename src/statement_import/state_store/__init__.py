"""
State Store (SQLite-based).

Lightweight persistent DB for tracking:
- Imported transactions
- Categories (created lazily)
- Learned merchants and category corrections

Also defines the collaborator interfaces the pipeline depends on.
"""

from .protocols import CategoryResolver, CorrectionStore, LearnedMerchantStore, TransactionStore
from .sqlite_store import CATEGORY_REGISTRY, FALLBACK_CATEGORY, StateStore

__all__ = [
    "CATEGORY_REGISTRY",
    "CategoryResolver",
    "CorrectionStore",
    "FALLBACK_CATEGORY",
    "LearnedMerchantStore",
    "StateStore",
    "TransactionStore",
]
