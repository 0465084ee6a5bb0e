"""
SQLite-based state store implementation.

Tables:
- transactions: Persisted imported transactions
- categories: Category rows, created lazily
- learned_merchants: Merchant pattern -> category mappings taught by the user
- category_corrections: Append-only audit of user corrections
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from ..categorization.normalizer import MerchantNormalizer
from ..clock import Clock, SystemClock
from ..schemas.categorization import CategoryCorrection, LearnedMerchant, LearnedMerchantSource
from ..schemas.transactions import Category, Transaction, TransactionType
from .protocols import CategoryResolver, CorrectionStore, LearnedMerchantStore, TransactionStore

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = Category(id="other", name="Other", icon="package", color="#9E9E9E", sort_order=999)

# Metadata for categories created on first use
CATEGORY_REGISTRY: dict[str, Category] = {
    c.id: c
    for c in [
        Category("groceries", "Groceries", "shopping-cart", "#4CAF50", 1),
        Category("food_delivery", "Food Delivery", "bike", "#FF9800", 2),
        Category("restaurants", "Restaurants", "utensils", "#FF5722", 3),
        Category("transport", "Transport", "car", "#2196F3", 4),
        Category("utilities", "Utilities", "zap", "#607D8B", 5),
        Category("entertainment", "Entertainment", "film", "#9C27B0", 6),
        Category("shopping", "Shopping", "shopping-bag", "#E91E63", 7),
        Category("healthcare", "Healthcare", "heart", "#F44336", 8),
        Category("education", "Education", "book", "#3F51B5", 9),
        Category("travel", "Travel", "plane", "#00BCD4", 10),
        Category("transfer", "Transfer", "repeat", "#795548", 11),
        Category("salary", "Salary", "briefcase", "#8BC34A", 12),
        FALLBACK_CATEGORY,
    ]
}


def _iso(value: datetime) -> str:
    return value.isoformat()


class StateStore(TransactionStore, CategoryResolver, LearnedMerchantStore, CorrectionStore):
    """
    SQLite-based state store for the import pipeline.

    Provides persistent tracking of:
    - Imported transactions (for saving and duplicate detection)
    - Categories
    - Learned merchants and the corrections behind them

    Each write runs in its own transaction, so a row is either fully saved
    or not at all. Thread-safe for single-writer scenarios.
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: Path | str,
        clock: Optional[Clock] = None,
        normalizer: Optional[MerchantNormalizer] = None,
    ):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            clock: Time source for timestamps
            normalizer: Merchant normalizer used by find_match
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.clock = clock or SystemClock()
        self.normalizer = normalizer or MerchantNormalizer()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    icon TEXT NOT NULL,
                    color TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    amount INTEGER NOT NULL,  -- minor units, signed
                    type TEXT NOT NULL,
                    date TEXT NOT NULL,
                    description TEXT,
                    merchant TEXT,
                    category_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS learned_merchants (
                    id TEXT PRIMARY KEY,
                    merchant_pattern TEXT NOT NULL UNIQUE,
                    category_id TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    source TEXT NOT NULL,
                    sample_count INTEGER NOT NULL DEFAULT 1,
                    last_used_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS category_corrections (
                    id TEXT PRIMARY KEY,
                    transaction_id TEXT NOT NULL,
                    original_category_id TEXT,
                    corrected_category_id TEXT NOT NULL,
                    merchant_name TEXT,
                    merchant_normalized TEXT,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id, date)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_corrections_merchant "
                "ON category_corrections(merchant_normalized, corrected_category_id)"
            )

            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    # Transaction methods

    def get_transactions(self, account_id: str) -> list[Transaction]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM transactions WHERE account_id = ? ORDER BY date, created_at",
                (account_id,),
            ).fetchall()
        return [self._transaction_from_row(row) for row in rows]

    def save_transaction(self, transaction: Transaction) -> None:
        now = _iso(self.clock.now())
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO transactions
                (id, account_id, amount, type, date, description, merchant, category_id,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    transaction.id,
                    transaction.account_id,
                    transaction.amount,
                    transaction.type.value,
                    transaction.date.isoformat(),
                    transaction.description,
                    transaction.merchant,
                    transaction.category_id,
                    _iso(transaction.created_at) if transaction.created_at else now,
                    _iso(transaction.updated_at) if transaction.updated_at else now,
                ),
            )

    @staticmethod
    def _transaction_from_row(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            amount=row["amount"],
            type=TransactionType(row["type"]),
            date=date.fromisoformat(row["date"]),
            description=row["description"],
            merchant=row["merchant"],
            category_id=row["category_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # Category methods

    def get_category(self, category_id: str) -> Optional[Category]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        if row is None:
            return None
        return Category(row["id"], row["name"], row["icon"], row["color"], row["sort_order"])

    def _insert_category(self, category: Category) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO categories (id, name, icon, color, sort_order)
                VALUES (?, ?, ?, ?, ?)
            """,
                (category.id, category.name, category.icon, category.color, category.sort_order),
            )

    def ensure_exists(self, category_id: str) -> str:
        if self.get_category(category_id) is not None:
            return category_id

        category = CATEGORY_REGISTRY.get(category_id)
        if category is not None:
            self._insert_category(category)
            logger.info(f"Created category {category_id}")
            return category_id

        logger.warning(f"Unknown category {category_id!r}, using {FALLBACK_CATEGORY.id}")
        if self.get_category(FALLBACK_CATEGORY.id) is None:
            self._insert_category(FALLBACK_CATEGORY)
        return FALLBACK_CATEGORY.id

    # Learned merchant methods

    @staticmethod
    def _merchant_from_row(row: sqlite3.Row) -> LearnedMerchant:
        return LearnedMerchant(
            id=row["id"],
            merchant_pattern=row["merchant_pattern"],
            category_id=row["category_id"],
            confidence=row["confidence"],
            source=LearnedMerchantSource(row["source"]),
            sample_count=row["sample_count"],
            last_used_at=datetime.fromisoformat(row["last_used_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def list_learned_merchants(self) -> list[LearnedMerchant]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM learned_merchants ORDER BY confidence DESC, sample_count DESC"
            ).fetchall()
        return [self._merchant_from_row(row) for row in rows]

    def get_by_pattern(self, merchant_pattern: str) -> Optional[LearnedMerchant]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM learned_merchants WHERE merchant_pattern = ?", (merchant_pattern,)
            ).fetchone()
        return self._merchant_from_row(row) if row else None

    def save_learned_merchant(self, merchant: LearnedMerchant) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO learned_merchants
                (id, merchant_pattern, category_id, confidence, source, sample_count,
                 last_used_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    merchant_pattern = excluded.merchant_pattern,
                    category_id = excluded.category_id,
                    confidence = excluded.confidence,
                    source = excluded.source,
                    sample_count = excluded.sample_count,
                    last_used_at = excluded.last_used_at
            """,
                (
                    merchant.id,
                    merchant.merchant_pattern,
                    merchant.category_id,
                    merchant.confidence,
                    merchant.source.value,
                    merchant.sample_count,
                    _iso(merchant.last_used_at),
                    _iso(merchant.created_at),
                ),
            )

    def find_match(self, description: str) -> Optional[LearnedMerchant]:
        """
        Find the learned merchant whose pattern occurs in a description.

        The description is normalized the same way patterns were. Among
        candidates the highest confidence wins, then the larger sample count.
        A hit refreshes ``last_used_at``.
        """
        normalized = self.normalizer.normalize(description)
        if not normalized:
            return None

        candidates = [
            m
            for m in self.list_learned_merchants()
            if m.merchant_pattern and m.merchant_pattern in normalized
        ]
        if not candidates:
            return None

        best = max(candidates, key=lambda m: (m.confidence, m.sample_count))
        best.last_used_at = self.clock.now()
        with self._transaction() as conn:
            conn.execute(
                "UPDATE learned_merchants SET last_used_at = ? WHERE id = ?",
                (_iso(best.last_used_at), best.id),
            )
        return best

    # Correction methods

    def save_correction(self, correction: CategoryCorrection) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO category_corrections
                (id, transaction_id, original_category_id, corrected_category_id,
                 merchant_name, merchant_normalized, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    correction.id,
                    correction.transaction_id,
                    correction.original_category_id,
                    correction.corrected_category_id,
                    correction.merchant_name,
                    correction.merchant_normalized,
                    _iso(correction.created_at),
                ),
            )

    def count_corrections(self, merchant_normalized: str, category_id: str) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) FROM category_corrections
                WHERE merchant_normalized = ? AND corrected_category_id = ?
            """,
                (merchant_normalized, category_id),
            ).fetchone()
        return row[0]

    def get_corrections(self, limit: int = 100) -> list[CategoryCorrection]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM category_corrections ORDER BY created_at DESC LIMIT ?", (limit,)
            ).fetchall()
        return [
            CategoryCorrection(
                id=row["id"],
                transaction_id=row["transaction_id"],
                original_category_id=row["original_category_id"],
                corrected_category_id=row["corrected_category_id"],
                merchant_name=row["merchant_name"],
                merchant_normalized=row["merchant_normalized"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
