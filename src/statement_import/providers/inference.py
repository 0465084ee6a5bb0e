"""
Local inference engine abstraction.

An engine holds at most one loaded model; loading another model unloads
the previous one first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class InferenceError(Exception):
    """Raised by engines when inference cannot complete."""


@dataclass
class InferenceResult:
    text: str
    input_tokens: int
    output_tokens: int
    duration_ms: int

    @property
    def tokens_per_second(self) -> float:
        if self.duration_ms <= 0:
            return 0.0
        return self.output_tokens * 1000 / self.duration_ms


class InferenceEngine(ABC):
    """Runs completions against a locally loaded model."""

    @property
    @abstractmethod
    def loaded_model(self) -> Optional[str]:
        pass

    @abstractmethod
    async def load_model(self, model: str) -> bool:
        """
        Load a model, unloading any other loaded model first.

        Args:
            model: Engine-specific model reference (tag or file path)

        Returns:
            True when the model is ready for inference
        """
        pass

    def is_model_loaded(self) -> bool:
        return self.loaded_model is not None

    @abstractmethod
    async def unload_model(self) -> None:
        pass

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 256,
        temperature: float = 0.1,
        stop_sequences: Optional[list[str]] = None,
    ) -> InferenceResult:
        """
        Generate text from the loaded model.

        Raises:
            InferenceError: No model loaded or generation failed
        """
        pass

    def token_count(self, text: str) -> int:
        """Rough token estimate (about four characters per token)."""
        return max(1, len(text) // 4) if text else 0
