"""
Tiered categorization engine.

Each tier only sees transactions the previous tiers left uncategorized:

    0    USER_LEARNED       learned merchant store, confidence as stored
    1    RULE_BASED etc.    merchant database, user history, keyword rules
    1.5  ON_DEVICE_ML       local model, kept at >= on_device_threshold
    2    LLM_TIER2          cheap cloud model, kept at >= tier2_threshold
    3    LLM_TIER3          premium cloud model, accepted as returned

Whatever remains falls back to the "other" category. Failures in tiers
1.5 to 3 are logged and never propagate.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..config import CategorizationConfig
from ..providers import LLMProviderFactory, ProviderPreference, ProviderUnavailableException
from ..schemas.categorization import (
    CategorizationResult,
    CategorizationSource,
    TransactionForCategorization,
)
from ..state_store.protocols import CategoryResolver, LearnedMerchantStore
from .cloud import CloudCategorizer
from .on_device import OnDeviceCategorizer
from .rules import RuleBasedCategorizer

logger = logging.getLogger(__name__)

# (categorized so far, tier label)
ProgressCallback = Callable[[int, str], None]
# True once the caller has abandoned the run
CancelCheck = Callable[[], bool]


@dataclass
class CategorizationBatchResult:
    """Outcome of one engine run."""

    results: list[CategorizationResult]
    uncategorized_ids: list[str]
    fallback_category_id: str = "other"

    @property
    def total_categorized(self) -> int:
        return len(self.results)

    @property
    def total_uncategorized(self) -> int:
        return len(self.uncategorized_ids)

    @property
    def local_count(self) -> int:
        return sum(1 for r in self.results if r.is_local_source)

    @property
    def tier2_count(self) -> int:
        return sum(1 for r in self.results if r.source == CategorizationSource.LLM_TIER2)

    @property
    def tier3_count(self) -> int:
        return sum(1 for r in self.results if r.source == CategorizationSource.LLM_TIER3)

    @property
    def high_confidence_count(self) -> int:
        return sum(1 for r in self.results if r.is_high_confidence)

    @property
    def needs_confirmation_count(self) -> int:
        """Results below high confidence plus every fallback row."""
        return sum(1 for r in self.results if r.requires_user_confirmation) + len(self.uncategorized_ids)

    @property
    def count_by_source(self) -> dict[str, int]:
        return dict(Counter(r.source.value for r in self.results))

    def result_for(self, transaction_id: str) -> Optional[CategorizationResult]:
        for result in self.results:
            if result.transaction_id == transaction_id:
                return result
        return None

    def category_map(self) -> dict[str, str]:
        """Transaction id -> category id, including fallback assignments."""
        mapping = {r.transaction_id: r.category_id for r in self.results}
        for transaction_id in self.uncategorized_ids:
            mapping[transaction_id] = self.fallback_category_id
        return mapping

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "uncategorized_ids": list(self.uncategorized_ids),
            "fallback_category_id": self.fallback_category_id,
            "total_categorized": self.total_categorized,
            "total_uncategorized": self.total_uncategorized,
            "local_count": self.local_count,
            "tier2_count": self.tier2_count,
            "tier3_count": self.tier3_count,
            "high_confidence_count": self.high_confidence_count,
            "needs_confirmation_count": self.needs_confirmation_count,
            "count_by_source": self.count_by_source,
        }


class CategorizationEngine:
    """
    Runs the categorization cascade over a batch.

    Args:
        rules: Tier 1 categorizer
        learned_store: Tier 0 store; None skips tier 0
        category_resolver: Guarantees the fallback category exists
        factory: Provider routing for tiers 1.5 to 3; None keeps everything local
        cloud: Tier 2/3 categorizer; built from ``factory`` when omitted
        config: Thresholds, batch sizes and the category taxonomy
    """

    def __init__(
        self,
        rules: Optional[RuleBasedCategorizer] = None,
        learned_store: Optional[LearnedMerchantStore] = None,
        category_resolver: Optional[CategoryResolver] = None,
        factory: Optional[LLMProviderFactory] = None,
        cloud: Optional[CloudCategorizer] = None,
        config: Optional[CategorizationConfig] = None,
    ):
        self.config = config or CategorizationConfig()
        self.rules = rules or RuleBasedCategorizer()
        self.learned_store = learned_store
        self.category_resolver = category_resolver
        self.factory = factory
        if cloud is None and factory is not None:
            cloud = CloudCategorizer(
                factory,
                self.config.categories,
                batch_size=self.config.cloud_batch_size,
            )
        self.cloud = cloud

    async def categorize(
        self,
        transactions: list[TransactionForCategorization],
        on_progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> CategorizationBatchResult:
        """Categorize a batch through every tier.

        ``should_cancel`` is checked before each tier; once it returns True
        no further tier runs and the rows left are returned uncategorized.
        """
        results: dict[str, CategorizationResult] = {}
        remaining = list(transactions)

        def accept(tier_results: dict[str, CategorizationResult], tier: str) -> None:
            nonlocal remaining
            results.update(tier_results)
            remaining = [tx for tx in remaining if tx.id not in results]
            logger.info(f"Tier {tier}: {len(tier_results)} categorized, {len(remaining)} remaining")
            if on_progress is not None:
                on_progress(len(results), tier)

        def proceed() -> bool:
            if not remaining:
                return False
            if should_cancel is not None and should_cancel():
                logger.info(f"Categorization cancelled with {len(remaining)} remaining")
                return False
            return True

        if self.learned_store is not None and proceed():
            accept(self._tier0(remaining), "0")

        if proceed():
            accept(self.rules.categorize_batch([(tx.id, tx.description) for tx in remaining]), "1")

        if self.factory is not None and proceed():
            accept(await self._tier_on_device(remaining), "1.5")

        if self.cloud is not None and proceed():
            accept(
                await self._tier_cloud(
                    remaining,
                    ProviderPreference.FAST_CHEAP,
                    CategorizationSource.LLM_TIER2,
                    self.config.tier2_threshold,
                ),
                "2",
            )

        if self.cloud is not None and proceed():
            accept(
                await self._tier_cloud(
                    remaining, ProviderPreference.BEST_QUALITY, CategorizationSource.LLM_TIER3, 0.0
                ),
                "3",
            )

        fallback = self.config.fallback_category
        if self.category_resolver is not None and proceed():
            fallback = self.category_resolver.ensure_exists(fallback)

        ordered = [results[tx.id] for tx in transactions if tx.id in results]
        batch = CategorizationBatchResult(
            results=ordered,
            uncategorized_ids=[tx.id for tx in remaining],
            fallback_category_id=fallback,
        )
        logger.info(
            f"Categorization: {batch.total_categorized} categorized "
            f"({batch.local_count} local), {batch.total_uncategorized} fallback to {fallback}"
        )
        return batch

    def _tier0(self, transactions: list[TransactionForCategorization]) -> dict[str, CategorizationResult]:
        results = {}
        for tx in transactions:
            merchant = self.learned_store.find_match(tx.description)
            if merchant is None:
                continue
            results[tx.id] = CategorizationResult(
                transaction_id=tx.id,
                category_id=merchant.category_id,
                confidence=merchant.confidence,
                source=CategorizationSource.USER_LEARNED,
            )
        return results

    async def _tier_on_device(
        self, transactions: list[TransactionForCategorization]
    ) -> dict[str, CategorizationResult]:
        try:
            provider = await self.factory.get_provider(ProviderPreference.LOCAL_ONLY)
        except ProviderUnavailableException:
            logger.debug("Tier 1.5 skipped: no on-device model available")
            return {}

        categorizer = OnDeviceCategorizer(
            provider,
            self.config.categories,
            batch_size=self.config.on_device_batch_size,
            min_confidence=self.config.on_device_threshold,
        )
        try:
            return await categorizer.categorize(transactions)
        except Exception as e:
            logger.warning(f"Tier 1.5 failed, continuing without on-device results: {e}")
            return {}

    async def _tier_cloud(
        self,
        transactions: list[TransactionForCategorization],
        preference: ProviderPreference,
        source: CategorizationSource,
        min_confidence: float,
    ) -> dict[str, CategorizationResult]:
        try:
            return await self.cloud.categorize(transactions, preference, source, min_confidence)
        except Exception as e:
            logger.warning(f"{source.value} failed, continuing: {e}")
            return {}
