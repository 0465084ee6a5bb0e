"""
Cloud spend tracking with daily and monthly budgets.

Costs are estimates from a per-model price table (USD per 1K tokens).
Usage resets lazily: the first check on a new day or month clears the
corresponding counter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from ..clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_DAILY_BUDGET = 0.10
DEFAULT_MONTHLY_BUDGET = 2.00
MAX_HISTORY = 1000

# (input, output) USD per 1K tokens
MODEL_COSTS: dict[str, tuple[float, float]] = {
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4o": (0.005, 0.015),
    "gpt-4-turbo": (0.01, 0.03),
    "claude-3-5-haiku": (0.0008, 0.004),
    "claude-3-5-sonnet": (0.003, 0.015),
    "claude-3-opus": (0.015, 0.075),
}
DEFAULT_COST = (0.001, 0.005)


def model_cost(model: str) -> tuple[float, float]:
    """Look up the price pair for a model, longest key prefix first."""
    lower = model.lower()
    for key in sorted(MODEL_COSTS, key=len, reverse=True):
        if lower.startswith(key):
            return MODEL_COSTS[key]
    if "haiku" in lower:
        return MODEL_COSTS["claude-3-5-haiku"]
    if "sonnet" in lower:
        return MODEL_COSTS["claude-3-5-sonnet"]
    if "opus" in lower:
        return MODEL_COSTS["claude-3-opus"]
    return DEFAULT_COST


def estimate_cost(input_tokens: int, output_tokens: int, model: Optional[str] = None) -> float:
    input_rate, output_rate = model_cost(model) if model else DEFAULT_COST
    return input_tokens * input_rate / 1000 + output_tokens * output_rate / 1000


@dataclass
class UsageRecord:
    timestamp: datetime
    input_tokens: int
    output_tokens: int
    model: str
    cost: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "model": self.model,
            "cost": round(self.cost, 6),
        }


@dataclass
class UsageStats:
    daily_cost: float
    monthly_cost: float
    daily_budget: float
    monthly_budget: float
    daily_requests: int
    monthly_requests: int

    @property
    def daily_percent_used(self) -> float:
        return self.daily_cost / self.daily_budget * 100 if self.daily_budget > 0 else 100.0

    @property
    def monthly_percent_used(self) -> float:
        return self.monthly_cost / self.monthly_budget * 100 if self.monthly_budget > 0 else 100.0

    @property
    def daily_remaining(self) -> float:
        return max(0.0, self.daily_budget - self.daily_cost)

    @property
    def monthly_remaining(self) -> float:
        return max(0.0, self.monthly_budget - self.monthly_cost)

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_cost": round(self.daily_cost, 6),
            "monthly_cost": round(self.monthly_cost, 6),
            "daily_budget": self.daily_budget,
            "monthly_budget": self.monthly_budget,
            "daily_requests": self.daily_requests,
            "monthly_requests": self.monthly_requests,
            "daily_percent_used": round(self.daily_percent_used, 1),
            "monthly_percent_used": round(self.monthly_percent_used, 1),
        }


class AICostTracker:
    """Tracks estimated cloud spend against daily and monthly budgets."""

    def __init__(
        self,
        daily_budget: float = DEFAULT_DAILY_BUDGET,
        monthly_budget: float = DEFAULT_MONTHLY_BUDGET,
        clock: Optional[Clock] = None,
    ):
        self.daily_budget = daily_budget
        self.monthly_budget = monthly_budget
        self.clock = clock or SystemClock()
        self._daily_cost = 0.0
        self._monthly_cost = 0.0
        self._daily_requests = 0
        self._monthly_requests = 0
        self._history: list[UsageRecord] = []
        # Estimates held by requests still in flight
        self._reserved = 0.0
        today = self.clock.today()
        self._day: date = today
        self._month: tuple[int, int] = (today.year, today.month)

    def _roll_over(self) -> None:
        today = self.clock.today()
        if (today.year, today.month) != self._month:
            self._month = (today.year, today.month)
            self._monthly_cost = 0.0
            self._monthly_requests = 0
        if today != self._day:
            self._day = today
            self._daily_cost = 0.0
            self._daily_requests = 0

    def can_execute(self, estimated_cost: float) -> bool:
        """True when the estimate fits both budgets alongside outstanding reservations."""
        self._roll_over()
        if self._daily_cost + self._reserved + estimated_cost > self.daily_budget:
            logger.warning(
                f"Daily AI budget exhausted: ${self._daily_cost:.4f} of ${self.daily_budget:.2f}"
            )
            return False
        if self._monthly_cost + self._reserved + estimated_cost > self.monthly_budget:
            logger.warning(
                f"Monthly AI budget exhausted: ${self._monthly_cost:.4f} of ${self.monthly_budget:.2f}"
            )
            return False
        return True

    def reserve(self, estimated_cost: float) -> bool:
        """Hold an estimate against both budgets until it is released; False if it does not fit."""
        if not self.can_execute(estimated_cost):
            return False
        self._reserved += estimated_cost
        return True

    def release(self, estimated_cost: float) -> None:
        self._reserved = max(0.0, self._reserved - estimated_cost)

    def record(self, input_tokens: int, output_tokens: int, model: str) -> float:
        """Record one completed request and return its estimated cost."""
        self._roll_over()
        cost = estimate_cost(input_tokens, output_tokens, model)
        self._daily_cost += cost
        self._monthly_cost += cost
        self._daily_requests += 1
        self._monthly_requests += 1
        self._history.append(
            UsageRecord(
                timestamp=self.clock.now(),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                model=model,
                cost=cost,
            )
        )
        if len(self._history) > MAX_HISTORY:
            del self._history[: len(self._history) - MAX_HISTORY]
        logger.info(
            f"AI usage: {model} in={input_tokens} out={output_tokens} cost=${cost:.6f}"
        )
        return cost

    def get_usage_stats(self) -> UsageStats:
        self._roll_over()
        return UsageStats(
            daily_cost=self._daily_cost,
            monthly_cost=self._monthly_cost,
            daily_budget=self.daily_budget,
            monthly_budget=self.monthly_budget,
            daily_requests=self._daily_requests,
            monthly_requests=self._monthly_requests,
        )

    def get_history(self, limit: int = 50) -> list[UsageRecord]:
        """Most recent records, newest first."""
        return list(reversed(self._history[-limit:]))
