"""
Transaction categorization.

Provides:
- CategorizationEngine: tiered cascade from learned merchants to cloud LLMs
- RuleBasedCategorizer / MerchantDatabase: free local tier
- MerchantNormalizer: merchant name normalization for learning
- CloudCategorizer / OnDeviceCategorizer: LLM tiers
- AICostTracker: cloud budget gate
"""

from .cloud import CloudCategorizer
from .cost import AICostTracker, UsageRecord, UsageStats, estimate_cost
from .engine import CategorizationBatchResult, CategorizationEngine
from .merchant_db import MerchantDatabase, MerchantPattern
from .normalizer import MerchantNormalizer
from .on_device import OnDeviceCategorizer
from .prompts import PROMPT_VERSION, BatchCategoryPrompt, OnDeviceBatchPrompt
from .rules import RuleBasedCategorizer

__all__ = [
    "AICostTracker",
    "BatchCategoryPrompt",
    "CategorizationBatchResult",
    "CategorizationEngine",
    "CloudCategorizer",
    "MerchantDatabase",
    "MerchantNormalizer",
    "MerchantPattern",
    "OnDeviceBatchPrompt",
    "OnDeviceCategorizer",
    "PROMPT_VERSION",
    "RuleBasedCategorizer",
    "UsageRecord",
    "UsageStats",
    "estimate_cost",
]
