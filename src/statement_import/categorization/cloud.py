"""
Cloud LLM categorization (tiers 2 and 3).

Descriptions are anonymized before they leave the process; the
placeholder mapping stays here. Batches run concurrently, bounded by a
semaphore, and every call reserves its estimate with the cost tracker.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..privacy import PIIAnonymizer
from ..providers import (
    CompletionRequest,
    LLMProvider,
    LLMProviderFactory,
    ProviderException,
    ProviderPreference,
)
from ..schemas.categorization import (
    CategorizationResult,
    CategorizationSource,
    TransactionForCategorization,
)
from .cost import AICostTracker, estimate_cost
from .prompts import BatchCategoryPrompt
from .responses import parse_indexed_categories

logger = logging.getLogger(__name__)

# Per-transaction token estimates used for the budget check
INPUT_TOKENS_PER_TRANSACTION = 200
OUTPUT_TOKENS_PER_TRANSACTION = 50

DEFAULT_BATCH_SIZE = 10


class CloudCategorizer:
    """
    Categorizes anonymized descriptions through cloud providers.

    Args:
        factory: Provider routing
        categories: Allowed category ids; anything else in a response is dropped
        anonymizer: PII redaction applied to every description
        cost_tracker: Budget gate; None disables budget checks
        batch_size: Transactions per request
        max_concurrent: Concurrent requests across batches
        language: Statement language for few-shot examples
    """

    def __init__(
        self,
        factory: LLMProviderFactory,
        categories: list[str],
        anonymizer: Optional[PIIAnonymizer] = None,
        cost_tracker: Optional[AICostTracker] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_concurrent: int = 2,
        language: str = "en",
    ):
        self.factory = factory
        self.categories = categories
        self.anonymizer = anonymizer or PIIAnonymizer()
        self.cost_tracker = cost_tracker
        self.batch_size = batch_size
        self.max_concurrent = max_concurrent
        self.language = language
        self.prompt = BatchCategoryPrompt()

    async def cloud_providers(self, preference: ProviderPreference) -> list[LLMProvider]:
        providers = await self.factory.get_providers_with_fallback(preference)
        return [p for p in providers if not p.is_local]

    async def categorize(
        self,
        transactions: list[TransactionForCategorization],
        preference: ProviderPreference,
        source: CategorizationSource,
        min_confidence: float = 0.0,
    ) -> dict[str, CategorizationResult]:
        """
        Categorize transactions in concurrent batches.

        Args:
            transactions: Transactions left by earlier tiers
            preference: Provider routing preference for this tier
            source: Source tag for results (LLM_TIER2 or LLM_TIER3)
            min_confidence: Results below this are discarded

        Returns:
            Results keyed by transaction id; failed batches contribute nothing
        """
        if not transactions:
            return {}

        providers = await self.cloud_providers(preference)
        if not providers:
            logger.info(f"{source.value}: no cloud provider available")
            return {}

        batches = [
            transactions[i : i + self.batch_size] for i in range(0, len(transactions), self.batch_size)
        ]
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run(batch: list[TransactionForCategorization]) -> dict[str, CategorizationResult]:
            async with semaphore:
                return await self._categorize_batch(batch, providers, source, min_confidence)

        outcomes = await asyncio.gather(*(run(b) for b in batches), return_exceptions=True)

        results: dict[str, CategorizationResult] = {}
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning(f"{source.value}: batch {index + 1} failed: {outcome}")
                continue
            results.update(outcome)

        logger.info(f"{source.value}: categorized {len(results)}/{len(transactions)}")
        return results

    def estimate_batch_cost(self, batch_size: int) -> float:
        return estimate_cost(
            INPUT_TOKENS_PER_TRANSACTION * batch_size,
            OUTPUT_TOKENS_PER_TRANSACTION * batch_size,
        )

    def build_request(self, batch: list[TransactionForCategorization]) -> CompletionRequest:
        anonymized = [
            (index, self.anonymizer.anonymize(tx.description).anonymized_text)
            for index, tx in enumerate(batch)
        ]
        return CompletionRequest(
            prompt=self.prompt.format_user_message(anonymized, self.categories, self.language),
            system_prompt=self.prompt.system_prompt,
            max_tokens=100 + OUTPUT_TOKENS_PER_TRANSACTION * len(batch),
            temperature=0.1,
        )

    async def _categorize_batch(
        self,
        batch: list[TransactionForCategorization],
        providers: list[LLMProvider],
        source: CategorizationSource,
        min_confidence: float,
    ) -> dict[str, CategorizationResult]:
        estimated = self.estimate_batch_cost(len(batch))
        if self.cost_tracker is not None and not self.cost_tracker.reserve(estimated):
            logger.warning(f"{source.value}: skipping batch of {len(batch)}, budget exceeded")
            return {}

        try:
            request = self.build_request(batch)
            for provider in providers:
                try:
                    response = await provider.complete(request)
                except ProviderException as e:
                    logger.warning(f"{source.value}: provider {provider.name} failed: {e}")
                    continue

                if self.cost_tracker is not None:
                    self.cost_tracker.record(response.input_tokens, response.output_tokens, response.model)
                return self._to_results(batch, response.content, source, min_confidence)

            return {}
        finally:
            if self.cost_tracker is not None:
                self.cost_tracker.release(estimated)

    def _to_results(
        self,
        batch: list[TransactionForCategorization],
        content: str,
        source: CategorizationSource,
        min_confidence: float,
    ) -> dict[str, CategorizationResult]:
        results = {}
        for index, category_id, confidence in parse_indexed_categories(content):
            if not 0 <= index < len(batch):
                continue
            if category_id not in self.categories:
                logger.debug(f"{source.value}: dropping unknown category {category_id!r}")
                continue
            if confidence < min_confidence:
                continue
            transaction_id = batch[index].id
            results[transaction_id] = CategorizationResult(
                transaction_id=transaction_id,
                category_id=category_id,
                confidence=confidence,
                source=source,
            )
        return results
