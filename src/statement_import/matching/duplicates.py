"""Fuzzy duplicate detection for imported statement rows.

Each imported row is compared against the account's existing transactions:

- Date: rejected when further apart than the tolerance (default 1 day)
- Amount: must be exactly equal, no tolerance
- Description: normalized Levenshtein similarity in [0, 1]

Identical normalized descriptions on the same day are exact duplicates;
anything at or above the similarity threshold is a probable duplicate. The
comparison is a plain O(n*m) scan since batches hold hundreds of rows.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

from ..schemas.review import UNIQUE, DuplicateStatus, ExactDuplicate, ProbableDuplicate
from ..schemas.transactions import ImportedTransaction, Transaction

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.5
DEFAULT_DATE_TOLERANCE_DAYS = 1

_NON_ALNUM = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_description(text: Optional[str]) -> str:
    """Lowercase, strip non-alphanumerics and collapse whitespace."""
    if not text:
        return ""
    cleaned = _NON_ALNUM.sub("", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def description_similarity(a: str, b: str) -> float:
    """Levenshtein similarity of two normalized descriptions, in [0, 1]."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def _reason(similarity: float) -> str:
    if similarity >= 0.9:
        return "Same date and amount, similar description"
    if similarity >= 0.8:
        return "Same date and amount, partially matching description"
    return "Same date and amount"


class FuzzyDuplicateDetector:
    """Classifies imported rows against existing history."""

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        date_tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS,
    ) -> None:
        self.similarity_threshold = similarity_threshold
        self.date_tolerance_days = date_tolerance_days

    def check_duplicate(
        self, imported: ImportedTransaction, existing: list[Transaction]
    ) -> DuplicateStatus:
        """Classify one imported row.

        Args:
            imported: Row produced by a parser
            existing: Persisted transactions of the target account

        Returns:
            ExactDuplicate, ProbableDuplicate (best match) or Unique
        """
        imported_desc = normalize_description(imported.description)
        best: Optional[tuple[float, Transaction]] = None

        for candidate in existing:
            day_distance = abs((imported.date - candidate.date).days)
            if day_distance > self.date_tolerance_days:
                continue
            if imported.amount != candidate.amount:
                continue

            candidate_desc = normalize_description(candidate.description)
            if day_distance == 0 and imported_desc == candidate_desc:
                return ExactDuplicate(matching_id=candidate.id)

            similarity = description_similarity(imported_desc, candidate_desc)
            if similarity >= self.similarity_threshold and (best is None or similarity > best[0]):
                best = (similarity, candidate)

        if best is None:
            return UNIQUE

        similarity, match = best
        return ProbableDuplicate(
            matching_id=match.id,
            similarity=similarity,
            reason=_reason(similarity),
        )

    def check_duplicates(
        self, imported: list[ImportedTransaction], existing: list[Transaction]
    ) -> dict[int, DuplicateStatus]:
        """Classify every imported row, keyed by row index."""
        statuses = {index: self.check_duplicate(row, existing) for index, row in enumerate(imported)}
        found = sum(1 for status in statuses.values() if status.is_duplicate)
        if found:
            logger.info(f"Found {found} duplicate candidates among {len(imported)} rows")
        return statuses
