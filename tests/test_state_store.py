"""Tests for the SQLite state store."""

from datetime import date, timedelta

from conftest import FIXED_NOW

from statement_import.schemas import (
    CategoryCorrection,
    LearnedMerchant,
    LearnedMerchantSource,
    Transaction,
    TransactionType,
)
from statement_import.state_store import StateStore


def make_transaction(tx_id="tx-1", account_id="acc-1", day=15, amount=-370050, **kwargs):
    return Transaction(
        id=tx_id,
        account_id=account_id,
        amount=amount,
        type=TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME,
        date=date(2024, 1, day),
        description=kwargs.pop("description", "MAGNUM SUPERMARKET"),
        **kwargs,
    )


def make_merchant(merchant_id="lm-1", pattern="MAGNUM", category_id="groceries", confidence=0.9, samples=1):
    return LearnedMerchant(
        id=merchant_id,
        merchant_pattern=pattern,
        category_id=category_id,
        confidence=confidence,
        source=LearnedMerchantSource.USER,
        sample_count=samples,
        last_used_at=FIXED_NOW,
        created_at=FIXED_NOW,
    )


class TestTransactions:
    """Transaction persistence."""

    def test_save_and_load(self, store):
        """Saved transactions round-trip with timestamps from the clock."""
        store.save_transaction(make_transaction(merchant="Magnum", category_id="groceries"))

        [loaded] = store.get_transactions("acc-1")

        assert loaded.amount == -370050
        assert loaded.type == TransactionType.EXPENSE
        assert loaded.date == date(2024, 1, 15)
        assert loaded.merchant == "Magnum"
        assert loaded.category_id == "groceries"
        assert loaded.created_at == FIXED_NOW

    def test_ordered_by_date(self, store):
        """Transactions come back in date order."""
        store.save_transaction(make_transaction("late", day=20))
        store.save_transaction(make_transaction("early", day=2))
        assert [t.id for t in store.get_transactions("acc-1")] == ["early", "late"]

    def test_accounts_are_isolated(self, store):
        """Only the requested account's rows are returned."""
        store.save_transaction(make_transaction("a", account_id="acc-1"))
        store.save_transaction(make_transaction("b", account_id="acc-2"))
        assert [t.id for t in store.get_transactions("acc-2")] == ["b"]
        assert store.get_transactions("acc-3") == []

    def test_same_id_replaces(self, store):
        """Saving an existing id overwrites the row."""
        store.save_transaction(make_transaction(amount=-100))
        store.save_transaction(make_transaction(amount=-200))
        assert [t.amount for t in store.get_transactions("acc-1")] == [-200]

    def test_persists_across_instances(self, temp_db, clock):
        """Data survives reopening the database file."""
        StateStore(temp_db, clock=clock).save_transaction(make_transaction())
        assert len(StateStore(temp_db, clock=clock).get_transactions("acc-1")) == 1


class TestCategories:
    """Lazy category creation."""

    def test_known_category_is_created(self, store):
        """Registry categories are inserted on first use."""
        assert store.get_category("groceries") is None
        assert store.ensure_exists("groceries") == "groceries"
        assert store.get_category("groceries").name == "Groceries"

    def test_idempotent(self, store):
        """Repeated calls keep one row."""
        store.ensure_exists("transport")
        assert store.ensure_exists("transport") == "transport"

    def test_unknown_category_falls_back(self, store):
        """Unknown ids resolve to the fallback category."""
        assert store.ensure_exists("pets") == "other"
        assert store.get_category("pets") is None
        assert store.get_category("other").sort_order == 999


class TestLearnedMerchants:
    """Learned merchant mappings."""

    def test_save_and_get_by_pattern(self, store):
        """Mappings are looked up by exact pattern."""
        store.save_learned_merchant(make_merchant())
        merchant = store.get_by_pattern("MAGNUM")
        assert merchant.category_id == "groceries"
        assert merchant.source == LearnedMerchantSource.USER
        assert store.get_by_pattern("GLOVO") is None

    def test_upsert_by_id(self, store):
        """Saving an existing id updates it in place."""
        store.save_learned_merchant(make_merchant())
        store.save_learned_merchant(make_merchant(category_id="shopping", confidence=0.92, samples=2))

        [merchant] = store.list_learned_merchants()
        assert merchant.category_id == "shopping"
        assert merchant.sample_count == 2

    def test_list_ordering(self, store):
        """Highest confidence first."""
        store.save_learned_merchant(make_merchant("lm-1", "MAGNUM", confidence=0.9))
        store.save_learned_merchant(make_merchant("lm-2", "GLOVO", confidence=0.96))
        assert [m.merchant_pattern for m in store.list_learned_merchants()] == ["GLOVO", "MAGNUM"]

    def test_find_match_normalizes_description(self, store, clock):
        """Noisy descriptions match and the hit refreshes last_used_at."""
        store.save_learned_merchant(make_merchant())
        clock.advance(timedelta(hours=1))

        merchant = store.find_match("MAGNUM ALMATY POS 1234567 *4455")

        assert merchant.merchant_pattern == "MAGNUM"
        assert merchant.last_used_at == clock.now()
        assert store.get_by_pattern("MAGNUM").last_used_at == clock.now()

    def test_find_match_prefers_confidence(self, store):
        """Among overlapping patterns the most confident wins."""
        store.save_learned_merchant(make_merchant("lm-1", "MAGNUM", "groceries", 0.9))
        store.save_learned_merchant(make_merchant("lm-2", "MAGNUM EXPRESS", "restaurants", 0.95))
        assert store.find_match("Magnum Express Dostyk").category_id == "restaurants"

    def test_find_match_misses(self, store):
        """Blank or unknown descriptions do not match."""
        store.save_learned_merchant(make_merchant())
        assert store.find_match("") is None
        assert store.find_match("GLOVO ORDER") is None


class TestCorrections:
    """Correction audit log."""

    def make_correction(self, correction_id, category="groceries", minutes=0):
        return CategoryCorrection(
            id=correction_id,
            transaction_id="tx-1",
            original_category_id="other",
            corrected_category_id=category,
            merchant_name="MAGNUM ALMATY",
            merchant_normalized="MAGNUM",
            created_at=FIXED_NOW + timedelta(minutes=minutes),
        )

    def test_count_by_merchant_and_category(self, store):
        """Counts are per normalized merchant and corrected category."""
        store.save_correction(self.make_correction("c1"))
        store.save_correction(self.make_correction("c2"))
        store.save_correction(self.make_correction("c3", category="shopping"))

        assert store.count_corrections("MAGNUM", "groceries") == 2
        assert store.count_corrections("MAGNUM", "shopping") == 1
        assert store.count_corrections("GLOVO", "groceries") == 0

    def test_newest_first(self, store):
        """Corrections are listed newest first."""
        store.save_correction(self.make_correction("old", minutes=0))
        store.save_correction(self.make_correction("new", minutes=5))
        assert [c.id for c in store.get_corrections()] == ["new", "old"]
