"""
Learning from user category corrections.

Every correction is stored for audit. Once enough corrections exist for a
normalized merchant and category (one by default), a learned merchant
mapping is created; later corrections for the same pattern raise its
confidence up to a cap. Tier 0 of the categorization engine reads these
mappings.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from ..categorization.normalizer import MerchantNormalizer
from ..clock import Clock, SystemClock
from ..config import LearningConfig
from ..schemas.categorization import (
    CategoryCorrection,
    CorrectionSaved,
    LearnedMerchant,
    LearnedMerchantSource,
    LearnResult,
    MappingCreated,
    MappingUpdated,
)
from ..state_store.protocols import CorrectionStore, LearnedMerchantStore

logger = logging.getLogger(__name__)


class LearningError(ValueError):
    """Raised when a correction cannot be learned from."""


class LearnFromCorrectionUseCase:
    def __init__(
        self,
        correction_store: CorrectionStore,
        merchant_store: LearnedMerchantStore,
        normalizer: Optional[MerchantNormalizer] = None,
        config: Optional[LearningConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.correction_store = correction_store
        self.merchant_store = merchant_store
        self.normalizer = normalizer or MerchantNormalizer()
        self.config = config or LearningConfig()
        self.clock = clock or SystemClock()

    def confidence_for(self, sample_count: int) -> float:
        """Confidence after ``sample_count`` samples, capped at max_confidence."""
        boost = (sample_count - 1) * self.config.confidence_boost
        return round(min(self.config.max_confidence, self.config.initial_confidence + boost), 4)

    def execute(
        self,
        transaction_id: str,
        original_category_id: Optional[str],
        corrected_category_id: str,
        merchant_name: Optional[str],
    ) -> LearnResult:
        """
        Record a correction and update learned mappings.

        Args:
            transaction_id: Corrected transaction
            original_category_id: Category before the correction, if any
            corrected_category_id: Category chosen by the user
            merchant_name: Merchant or description the mapping is learned from

        Returns:
            CorrectionSaved, MappingCreated or MappingUpdated

        Raises:
            LearningError: Blank merchant name, or one that normalizes to nothing
        """
        if not merchant_name or not merchant_name.strip():
            raise LearningError("Merchant name required for learning")

        normalized = self.normalizer.normalize(merchant_name)
        if not normalized:
            raise LearningError("Cannot normalize merchant name")

        now = self.clock.now()
        correction = CategoryCorrection(
            id=str(uuid.uuid4()),
            transaction_id=transaction_id,
            original_category_id=original_category_id,
            corrected_category_id=corrected_category_id,
            merchant_name=merchant_name,
            merchant_normalized=normalized,
            created_at=now,
        )
        self.correction_store.save_correction(correction)

        correction_count = self.correction_store.count_corrections(normalized, corrected_category_id)
        pattern = self.normalizer.to_pattern(normalized)
        existing = self.merchant_store.get_by_pattern(pattern)

        if existing is not None:
            existing.sample_count += 1
            existing.category_id = corrected_category_id
            existing.confidence = self.confidence_for(existing.sample_count)
            existing.last_used_at = now
            self.merchant_store.save_learned_merchant(existing)
            logger.info(
                f"Learned merchant updated: {pattern} -> {corrected_category_id} "
                f"({existing.confidence:.2f}, {existing.sample_count} samples)"
            )
            return MappingUpdated(existing)

        if correction_count < self.config.min_corrections_threshold:
            logger.debug(f"Correction saved for {pattern}, {correction_count} so far")
            return CorrectionSaved(correction.id)

        merchant = LearnedMerchant(
            id=str(uuid.uuid4()),
            merchant_pattern=pattern,
            category_id=corrected_category_id,
            confidence=self.config.initial_confidence,
            source=LearnedMerchantSource.USER,
            sample_count=correction_count,
            last_used_at=now,
            created_at=now,
        )
        self.merchant_store.save_learned_merchant(merchant)
        logger.info(f"Learned merchant created: {pattern} -> {corrected_category_id}")
        return MappingCreated(merchant)
