"""Tests for fuzzy duplicate detection and advisory validation."""

from datetime import date, timedelta

import pytest
from conftest import make_imported

from statement_import.matching import FuzzyDuplicateDetector, description_similarity, normalize_description
from statement_import.schemas import (
    UNIQUE,
    ExactDuplicate,
    ImportedTransaction,
    ProbableDuplicate,
    Transaction,
    TransactionType,
)
from statement_import.validation import ImportValidator


def make_existing(
    day: int = 15,
    amount: int = -370050,
    description: str = "MAGNUM SUPERMARKET",
    tx_id: str = "tx-1",
) -> Transaction:
    return Transaction(
        id=tx_id,
        account_id="acc-1",
        amount=amount,
        type=TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME,
        date=date(2024, 1, day),
        description=description,
    )


class TestNormalization:
    """Description normalization and similarity."""

    def test_normalize(self):
        """Punctuation is removed and whitespace collapsed."""
        assert normalize_description("  MAGNUM,  Super-Market! ") == "magnum supermarket"
        assert normalize_description(None) == ""

    def test_similarity_bounds(self):
        """Identical strings score 1, empty against non-empty scores 0."""
        assert description_similarity("abc", "abc") == 1.0
        assert description_similarity("", "abc") == 0.0
        assert 0.0 < description_similarity("magnum almaty", "magnum astana") < 1.0


class TestFuzzyDuplicateDetector:
    """Duplicate classification against existing history."""

    @pytest.fixture
    def detector(self):
        return FuzzyDuplicateDetector()

    def test_exact_duplicate(self, detector):
        """Same day, amount and normalized description is exact."""
        status = detector.check_duplicate(
            make_imported(description="Magnum Supermarket."), [make_existing()]
        )
        assert status == ExactDuplicate(matching_id="tx-1")
        assert status.is_duplicate

    def test_probable_duplicate_next_day(self, detector):
        """Identical description one day apart is probable, not exact."""
        status = detector.check_duplicate(make_imported(day=16), [make_existing(day=15)])
        assert isinstance(status, ProbableDuplicate)
        assert status.matching_id == "tx-1"
        assert status.similarity == 1.0
        assert status.reason == "Same date and amount, similar description"

    def test_similar_description(self, detector):
        """A close description on the same day is probable."""
        status = detector.check_duplicate(
            make_imported(description="MAGNUM SUPERMARKET 24"), [make_existing()]
        )
        assert isinstance(status, ProbableDuplicate)
        assert status.similarity >= 0.5

    def test_amount_must_match_exactly(self, detector):
        """One minor unit of difference is never a duplicate."""
        status = detector.check_duplicate(make_imported(amount=-370051), [make_existing()])
        assert status == UNIQUE

    def test_date_tolerance(self, detector):
        """Rows further apart than the tolerance are not compared."""
        status = detector.check_duplicate(make_imported(day=17), [make_existing(day=15)])
        assert status == UNIQUE

    def test_dissimilar_description(self, detector):
        """Unrelated descriptions stay unique."""
        status = detector.check_duplicate(
            make_imported(description="ZZZZZZ QQQQ"), [make_existing()]
        )
        assert status == UNIQUE

    def test_best_match_wins(self, detector):
        """The most similar candidate is reported."""
        existing = [
            make_existing(day=16, description="MAGNUM SUPER", tx_id="weak"),
            make_existing(day=16, description="MAGNUM SUPERMARKT", tx_id="strong"),
        ]
        status = detector.check_duplicate(make_imported(), existing)
        assert isinstance(status, ProbableDuplicate)
        assert status.matching_id == "strong"

    def test_check_duplicates_keyed_by_index(self, detector):
        """Batch results are keyed by row index."""
        rows = [make_imported(), make_imported(amount=100)]
        statuses = detector.check_duplicates(rows, [make_existing()])
        assert isinstance(statuses[0], ExactDuplicate)
        assert statuses[1] == UNIQUE

    def test_empty_history(self, detector):
        """Nothing is a duplicate of an empty account."""
        assert detector.check_duplicates([make_imported()], []) == {0: UNIQUE}

    def test_custom_threshold(self):
        """A strict threshold turns fuzzy matches into unique rows."""
        detector = FuzzyDuplicateDetector(similarity_threshold=0.99)
        status = detector.check_duplicate(
            make_imported(description="MAGNUM SUPERMARKET 24"), [make_existing()]
        )
        assert status == UNIQUE


class TestImportValidator:
    """Advisory validation never rejects a batch."""

    @pytest.fixture
    def validator(self, clock):
        return ImportValidator(clock=clock)

    def test_clean_batch(self, validator):
        """Ordinary rows produce no warnings."""
        result = validator.validate([make_imported()])
        assert result.is_valid
        assert result.warnings == []

    def test_future_date(self, validator, clock):
        """Dates after today are flagged with their row number."""
        future = ImportedTransaction(
            date=clock.today() + timedelta(days=1), amount=-100, description="x"
        )
        result = validator.validate([make_imported(), future])
        assert result.is_valid
        assert result.warnings == [f"Transaction 2: Future date detected ({future.date.isoformat()})"]

    def test_today_is_not_future(self, validator, clock):
        """Today's date is accepted."""
        row = ImportedTransaction(date=clock.today(), amount=-100, description="x")
        assert validator.validate([row]).warnings == []

    def test_large_amount(self, validator):
        """Amounts above the threshold are flagged in either direction."""
        result = validator.validate(
            [make_imported(amount=-100_000_001), make_imported(amount=100_000_000)]
        )
        assert result.warnings == ["Transaction 1: Unusually large amount"]

    def test_empty_description(self, validator):
        """Blank descriptions are flagged."""
        result = validator.validate([make_imported(description="   ")])
        assert result.warnings == ["Transaction 1: Empty description"]

    def test_rules_are_additive(self, validator, clock):
        """One row can collect several warnings."""
        row = ImportedTransaction(
            date=clock.today() + timedelta(days=3), amount=200_000_000, description=""
        )
        result = validator.validate([row])
        assert result.warning_count == 3
        assert result.to_dict()["warning_count"] == 3

    def test_empty_batch(self, validator):
        """An empty batch is valid."""
        assert validator.validate([]).is_valid
