"""Tests for the LLM categorization tiers and the engine cascade."""

import asyncio

import pytest
from conftest import FIXED_NOW

from statement_import.categorization import (
    AICostTracker,
    CategorizationEngine,
    CloudCategorizer,
    OnDeviceCategorizer,
)
from statement_import.config import CategorizationConfig
from statement_import.providers import (
    CompletionResponse,
    LLMProvider,
    LLMProviderFactory,
    ModelConfig,
    ProviderPreference,
    ProviderRateLimitException,
)
from statement_import.schemas import (
    CategorizationSource,
    LearnedMerchant,
    LearnedMerchantSource,
    TransactionForCategorization,
)
from statement_import.state_store.protocols import CategoryResolver, LearnedMerchantStore

CATEGORIES = ["groceries", "transport", "shopping", "other"]


class ScriptedProvider(LLMProvider):
    """Provider answering every request with the same content."""

    def __init__(self, name, content="", local=False, error=None):
        self._name = name
        self.content = content
        self.local = local
        self.error = error
        self.requests = []

    @property
    def name(self):
        return self._name

    @property
    def available_models(self):
        return [ModelConfig(self._name, self._name)]

    @property
    def is_local(self):
        return self.local

    async def is_available(self):
        return True

    async def complete(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return CompletionResponse(content=self.content, input_tokens=100, output_tokens=20, model=self._name)


class FakeLearnedStore(LearnedMerchantStore):
    def __init__(self, merchants):
        self.merchants = merchants

    def find_match(self, description):
        for merchant in self.merchants:
            if merchant.merchant_pattern in description.upper():
                return merchant
        return None

    def get_by_pattern(self, merchant_pattern):
        return None

    def save_learned_merchant(self, merchant):
        self.merchants.append(merchant)

    def list_learned_merchants(self):
        return list(self.merchants)


class FakeResolver(CategoryResolver):
    def __init__(self, mapping=None):
        self.mapping = mapping or {}
        self.requested = []

    def ensure_exists(self, category_id):
        self.requested.append(category_id)
        return self.mapping.get(category_id, category_id)


def tx(tx_id, description):
    return TransactionForCategorization(id=tx_id, description=description)


def learned(pattern, category_id, confidence=0.9):
    return LearnedMerchant(
        id=f"lm-{pattern}",
        merchant_pattern=pattern,
        category_id=category_id,
        confidence=confidence,
        source=LearnedMerchantSource.USER,
        sample_count=1,
        last_used_at=FIXED_NOW,
        created_at=FIXED_NOW,
    )


class TestCloudCategorizer:
    """Tiers 2 and 3."""

    async def test_descriptions_are_anonymized(self):
        """Card numbers never reach the provider."""
        provider = ScriptedProvider("openai-mini", '[{"index": 0, "categoryId": "other", "confidence": 0.9}]')
        categorizer = CloudCategorizer(LLMProviderFactory(provider), CATEGORIES)

        await categorizer.categorize(
            [tx("a", "Card 4400 4301 2345 6789 purchase")],
            ProviderPreference.FAST_CHEAP,
            CategorizationSource.LLM_TIER2,
        )

        prompt = provider.requests[0].prompt
        assert "4400 4301 2345 6789" not in prompt
        assert "[CARD_NUMBER_1]" in prompt

    async def test_results_are_validated(self):
        """Unknown categories, bad indices and low confidence are dropped."""
        content = (
            '[{"index": 0, "categoryId": "groceries", "confidence": 0.9},'
            ' {"index": 1, "categoryId": "bogus", "confidence": 0.9},'
            ' {"index": 2, "categoryId": "transport", "confidence": 0.4},'
            ' {"index": 7, "categoryId": "other", "confidence": 0.9}]'
        )
        categorizer = CloudCategorizer(LLMProviderFactory(ScriptedProvider("openai-mini", content)), CATEGORIES)

        results = await categorizer.categorize(
            [tx("a", "x"), tx("b", "y"), tx("c", "z")],
            ProviderPreference.FAST_CHEAP,
            CategorizationSource.LLM_TIER2,
            min_confidence=0.7,
        )

        assert list(results) == ["a"]
        assert results["a"].source == CategorizationSource.LLM_TIER2

    async def test_batches_use_local_indices(self):
        """Each batch is indexed from zero."""
        content = (
            '[{"index": 0, "categoryId": "other", "confidence": 0.9},'
            ' {"index": 1, "categoryId": "other", "confidence": 0.9}]'
        )
        provider = ScriptedProvider("openai-mini", content)
        categorizer = CloudCategorizer(LLMProviderFactory(provider), CATEGORIES, batch_size=2)

        results = await categorizer.categorize(
            [tx("a", "x"), tx("b", "y"), tx("c", "z")],
            ProviderPreference.FAST_CHEAP,
            CategorizationSource.LLM_TIER2,
        )

        assert sorted(results) == ["a", "b", "c"]
        assert len(provider.requests) == 2

    async def test_falls_back_to_next_provider(self):
        """A failing provider hands the batch to the next one."""
        failing = ScriptedProvider("openai-mini", error=ProviderRateLimitException("openai-mini"))
        working = ScriptedProvider(
            "anthropic-haiku", '[{"index": 0, "categoryId": "shopping", "confidence": 0.8}]'
        )
        categorizer = CloudCategorizer(LLMProviderFactory(failing, working), CATEGORIES)

        results = await categorizer.categorize(
            [tx("a", "x")], ProviderPreference.FAST_CHEAP, CategorizationSource.LLM_TIER2
        )

        assert results["a"].category_id == "shopping"
        assert len(failing.requests) == 1

    async def test_local_providers_excluded(self):
        """On-device providers never serve cloud tiers."""
        local = ScriptedProvider("on-device", "[]", local=True)
        categorizer = CloudCategorizer(LLMProviderFactory(on_device_provider=local), CATEGORIES)

        results = await categorizer.categorize(
            [tx("a", "x")], ProviderPreference.FAST_CHEAP, CategorizationSource.LLM_TIER2
        )

        assert results == {}
        assert local.requests == []

    async def test_budget_gate(self, clock):
        """Over-budget batches are skipped without a request."""
        provider = ScriptedProvider("openai-mini", "[]")
        tracker = AICostTracker(daily_budget=0.0001, clock=clock)
        categorizer = CloudCategorizer(LLMProviderFactory(provider), CATEGORIES, cost_tracker=tracker)

        results = await categorizer.categorize(
            [tx("a", "x")], ProviderPreference.FAST_CHEAP, CategorizationSource.LLM_TIER2
        )

        assert results == {}
        assert provider.requests == []

    async def test_concurrent_batches_share_budget(self, clock):
        """Batches in flight together cannot overspend a budget that fits one."""

        class SlowProvider(ScriptedProvider):
            async def complete(self, request):
                await asyncio.sleep(0)
                return await super().complete(request)

        provider = SlowProvider("openai-mini", "[]")
        tracker = AICostTracker(clock=clock)
        categorizer = CloudCategorizer(
            LLMProviderFactory(provider), CATEGORIES, cost_tracker=tracker, batch_size=1, max_concurrent=2
        )
        tracker.daily_budget = categorizer.estimate_batch_cost(1) * 1.5

        await categorizer.categorize(
            [tx("a", "x"), tx("b", "y")], ProviderPreference.FAST_CHEAP, CategorizationSource.LLM_TIER2
        )

        assert len(provider.requests) == 1
        assert tracker.get_usage_stats().daily_requests == 1
        assert tracker.can_execute(0.0)

    async def test_usage_is_recorded(self, clock):
        """Successful calls are charged to the tracker."""
        provider = ScriptedProvider("openai-mini", "[]")
        tracker = AICostTracker(clock=clock)
        categorizer = CloudCategorizer(LLMProviderFactory(provider), CATEGORIES, cost_tracker=tracker)

        await categorizer.categorize([tx("a", "x")], ProviderPreference.FAST_CHEAP, CategorizationSource.LLM_TIER2)

        assert tracker.get_usage_stats().daily_requests == 1


class TestOnDeviceCategorizer:
    """Tier 1.5."""

    def make(self, provider):
        return OnDeviceCategorizer(provider, CATEGORIES, batch_size=5, min_confidence=0.7)

    async def test_json_batch_with_one_based_ids(self):
        """JSON answers use 1-based ids; low confidence is discarded."""
        content = (
            '[{"id": 1, "category": "groceries", "confidence": 0.9},'
            ' {"id": 2, "category": "transport", "confidence": 0.6}]'
        )
        categorizer = self.make(ScriptedProvider("on-device", content, local=True))

        results = await categorizer.categorize([tx("a", "MAGNUM"), tx("b", "UBER")])

        assert list(results) == ["a"]
        assert results["a"].source == CategorizationSource.ON_DEVICE_ML

    async def test_numbered_list(self):
        """Numbered list answers carry a fixed confidence."""
        categorizer = self.make(ScriptedProvider("on-device", "1. groceries\n2. transport", local=True))

        results = await categorizer.categorize([tx("a", "MAGNUM"), tx("b", "UBER")])

        assert results["b"].category_id == "transport"
        assert results["b"].confidence == pytest.approx(0.80)

    async def test_unknown_category_dropped(self):
        """Categories outside the taxonomy are ignored."""
        categorizer = self.make(ScriptedProvider("on-device", "1. pets", local=True))
        assert await categorizer.categorize([tx("a", "ZOO")]) == {}

    async def test_failed_batch_retries_singly(self):
        """A failed batch is retried one transaction at a time."""

        class BatchFailing(ScriptedProvider):
            async def complete(self, request):
                if "Categorize each transaction" in request.prompt:
                    self.requests.append(request)
                    raise ProviderRateLimitException("on-device")
                return await super().complete(request)

        provider = BatchFailing("on-device", "transport", local=True)
        categorizer = self.make(provider)

        results = await categorizer.categorize([tx("a", "UBER"), tx("b", "YANDEX")])

        assert {r.category_id for r in results.values()} == {"transport"}
        assert len(provider.requests) == 3

    def test_parse_single_response(self):
        """Single answers accept JSON or a bare category name."""
        categorizer = self.make(ScriptedProvider("on-device", local=True))
        result = categorizer.parse_single_response("a", '{"categoryId": "groceries", "confidence": 0.9}')
        assert result.category_id == "groceries"
        assert result.confidence == 0.9
        assert categorizer.parse_single_response("a", "Shopping.").category_id == "shopping"
        assert categorizer.parse_single_response("a", "no idea") is None


class TestCategorizationEngine:
    """The tiered cascade."""

    async def test_local_only(self):
        """Without providers, unmatched rows fall back to the fallback category."""
        resolver = FakeResolver()
        engine = CategorizationEngine(category_resolver=resolver)

        batch = await engine.categorize([tx("a", "MAGNUM SUPERMARKET"), tx("b", "ZZQX TRADING")])

        assert batch.result_for("a").source == CategorizationSource.MERCHANT_DATABASE
        assert batch.uncategorized_ids == ["b"]
        assert batch.category_map() == {"a": "groceries", "b": "other"}
        assert resolver.requested == ["other"]
        assert batch.needs_confirmation_count == 1

    async def test_fallback_category_is_resolved(self):
        """The resolver may substitute the fallback category."""
        engine = CategorizationEngine(category_resolver=FakeResolver({"other": "misc"}))
        batch = await engine.categorize([tx("a", "ZZQX")])
        assert batch.fallback_category_id == "misc"
        assert batch.category_map() == {"a": "misc"}

    async def test_learned_merchants_win(self):
        """Tier 0 results keep their stored confidence and skip later tiers."""
        store = FakeLearnedStore([learned("MAGNUM", "shopping", 0.93)])
        engine = CategorizationEngine(learned_store=store)

        batch = await engine.categorize([tx("a", "MAGNUM SUPERMARKET")])

        result = batch.result_for("a")
        assert result.source == CategorizationSource.USER_LEARNED
        assert result.category_id == "shopping"
        assert result.confidence == 0.93

    async def test_full_cascade(self):
        """Each tier only sees what earlier tiers left."""
        local = ScriptedProvider("on-device", "1. transport", local=True)
        tier2 = ScriptedProvider("openai-mini", '[{"index": 0, "categoryId": "shopping", "confidence": 0.5}]')
        tier3 = ScriptedProvider("anthropic-haiku", '[{"index": 0, "categoryId": "shopping", "confidence": 0.6}]')
        engine = CategorizationEngine(factory=LLMProviderFactory(tier2, tier3, local))
        progress = []

        batch = await engine.categorize(
            [tx("a", "MAGNUM"), tx("b", "ZZQX ONE"), tx("c", "ZZQX TWO")],
            on_progress=lambda count, tier: progress.append((count, tier)),
        )

        assert [r.transaction_id for r in batch.results] == ["a", "b", "c"]
        assert batch.result_for("b").source == CategorizationSource.ON_DEVICE_ML
        assert batch.result_for("c").source == CategorizationSource.LLM_TIER3
        assert batch.result_for("c").confidence == 0.6
        assert batch.uncategorized_ids == []
        assert batch.local_count == 2
        assert batch.tier2_count == 0
        assert batch.tier3_count == 1
        assert batch.needs_confirmation_count == 2
        assert progress == [(1, "1"), (2, "1.5"), (2, "2"), (3, "3")]
        # Tier 1.5 saw the raw descriptions, tier 2 only the leftover row
        assert "ZZQX ONE" in local.requests[0].prompt
        assert '0: "ZZQX TWO"' in tier2.requests[0].prompt

    async def test_tier_failures_do_not_propagate(self):
        """Unexpected provider errors leave rows for the fallback."""
        local = ScriptedProvider("on-device", local=True, error=RuntimeError("engine crashed"))
        cloud = ScriptedProvider("openai-mini", error=RuntimeError("socket closed"))
        engine = CategorizationEngine(factory=LLMProviderFactory(cloud, on_device_provider=local))

        batch = await engine.categorize([tx("a", "ZZQX")])

        assert batch.total_categorized == 0
        assert batch.uncategorized_ids == ["a"]

    async def test_custom_thresholds(self):
        """Tier 2 keeps results at or above its configured threshold."""
        tier2 = ScriptedProvider("openai-mini", '[{"index": 0, "categoryId": "shopping", "confidence": 0.5}]')
        config = CategorizationConfig(tier2_threshold=0.5, categories=CATEGORIES)
        engine = CategorizationEngine(factory=LLMProviderFactory(tier2), config=config)

        batch = await engine.categorize([tx("a", "ZZQX")])

        assert batch.result_for("a").source == CategorizationSource.LLM_TIER2
        assert batch.count_by_source == {"LLM_TIER2": 1}

    async def test_cancel_stops_remaining_tiers(self):
        """No tier runs once the cancel check returns True."""
        local = ScriptedProvider("on-device", "1. pets", local=True)
        tier2 = ScriptedProvider("openai-mini", '[{"index": 0, "categoryId": "shopping", "confidence": 0.9}]')
        resolver = FakeResolver()
        engine = CategorizationEngine(
            category_resolver=resolver, factory=LLMProviderFactory(tier2, on_device_provider=local)
        )
        cancelled = []

        batch = await engine.categorize(
            [tx("a", "MAGNUM"), tx("b", "ZZQX")],
            on_progress=lambda count, tier: cancelled.append(tier == "1.5"),
            should_cancel=lambda: any(cancelled),
        )

        assert len(local.requests) == 1
        assert tier2.requests == []
        assert resolver.requested == []
        assert batch.uncategorized_ids == ["b"]

    async def test_to_dict(self):
        """Batch results serialize their summary counters."""
        batch = await CategorizationEngine().categorize([tx("a", "GLOVO"), tx("b", "ZZQX")])
        data = batch.to_dict()
        assert data["total_categorized"] == 1
        assert data["uncategorized_ids"] == ["b"]
        assert data["count_by_source"] == {"MERCHANT_DATABASE": 1}
