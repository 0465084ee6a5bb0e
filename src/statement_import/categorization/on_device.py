"""
On-device categorization (tier 1.5).

Small local models answer in batches of five, as JSON with 1-based ids or
as a numbered list. A failed batch is retried one transaction at a time.
Descriptions are not anonymized; they never leave the machine.
"""

from __future__ import annotations

import logging

from ..providers import CompletionRequest, LLMProvider, ProviderException
from ..schemas.categorization import (
    CategorizationResult,
    CategorizationSource,
    TransactionForCategorization,
)
from .prompts import OnDeviceBatchPrompt
from .responses import parse_category_answer, parse_indexed_categories, parse_numbered_lines

logger = logging.getLogger(__name__)

TEXT_ANSWER_CONFIDENCE = 0.80


class OnDeviceCategorizer:
    def __init__(
        self,
        provider: LLMProvider,
        categories: list[str],
        batch_size: int = 5,
        min_confidence: float = 0.70,
    ):
        self.provider = provider
        self.categories = categories
        self.batch_size = batch_size
        self.min_confidence = min_confidence
        self.prompt = OnDeviceBatchPrompt()

    async def categorize(
        self, transactions: list[TransactionForCategorization]
    ) -> dict[str, CategorizationResult]:
        """Categorize sequentially; the engine holds one model so batches do not overlap."""
        results: dict[str, CategorizationResult] = {}
        batches = [
            transactions[i : i + self.batch_size] for i in range(0, len(transactions), self.batch_size)
        ]
        for number, batch in enumerate(batches, start=1):
            try:
                batch_results = await self._categorize_batch(batch)
            except ProviderException as e:
                logger.warning(f"On-device batch {number}/{len(batches)} failed: {e}")
                batch_results = await self._categorize_singly(batch)
            results.update(batch_results)

        kept = {tid: r for tid, r in results.items() if r.confidence >= self.min_confidence}
        logger.info(f"On-device: kept {len(kept)}/{len(transactions)} (threshold {self.min_confidence})")
        return kept

    async def _categorize_batch(
        self, batch: list[TransactionForCategorization]
    ) -> dict[str, CategorizationResult]:
        response = await self.provider.complete(
            CompletionRequest(
                prompt=self.prompt.format_batch([tx.description for tx in batch], self.categories),
                max_tokens=200 + len(batch) * 50,
                temperature=0.1,
                system_prompt=self.prompt.system_prompt,
            )
        )
        return self.parse_batch_response(batch, response.content)

    def parse_batch_response(
        self, batch: list[TransactionForCategorization], content: str
    ) -> dict[str, CategorizationResult]:
        """JSON with 1-based ids first, numbered lines as the fallback."""
        results = {}
        entries = parse_indexed_categories(content) if "{" in content else []
        if not entries:
            entries = [
                (index, category, TEXT_ANSWER_CONFIDENCE)
                for index, category in parse_numbered_lines(content)
            ]

        for number, category_id, confidence in entries:
            position = number - 1
            if not 0 <= position < len(batch) or category_id not in self.categories:
                continue
            tx = batch[position]
            results[tx.id] = CategorizationResult(
                transaction_id=tx.id,
                category_id=category_id,
                confidence=confidence,
                source=CategorizationSource.ON_DEVICE_ML,
            )
        return results

    async def _categorize_singly(
        self, batch: list[TransactionForCategorization]
    ) -> dict[str, CategorizationResult]:
        results = {}
        for tx in batch:
            try:
                response = await self.provider.complete(
                    CompletionRequest(
                        prompt=self.prompt.format_single(tx.description, self.categories),
                        max_tokens=50,
                        temperature=0.1,
                    )
                )
            except ProviderException as e:
                logger.warning(f"On-device single categorization failed for {tx.id}: {e}")
                continue
            result = self.parse_single_response(tx.id, response.content)
            if result is not None:
                results[tx.id] = result
        return results

    def parse_single_response(self, transaction_id: str, content: str) -> CategorizationResult | None:
        answer = parse_category_answer(content)
        if answer is not None and answer[0] in self.categories:
            return CategorizationResult(
                transaction_id, answer[0], answer[1], CategorizationSource.ON_DEVICE_ML
            )

        text = content.strip().lower()
        for category_id in self.categories:
            if category_id in text:
                return CategorizationResult(
                    transaction_id, category_id, TEXT_ANSWER_CONFIDENCE, CategorizationSource.ON_DEVICE_ML
                )
        logger.debug(f"On-device: no category in answer for {transaction_id}")
        return None
