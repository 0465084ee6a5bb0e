"""
Inference provider abstraction.

A provider is anything that turns a prompt into text: a cloud API or a
model running on this machine. Availability is a live check, not mere
configuration presence.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ProviderPreference(str, Enum):
    """What the caller optimizes for when choosing a provider."""

    FAST_CHEAP = "FAST_CHEAP"
    BEST_QUALITY = "BEST_QUALITY"
    STRUCTURED_OUTPUT = "STRUCTURED_OUTPUT"
    LOCAL_ONLY = "LOCAL_ONLY"
    CHEAPEST = "CHEAPEST"


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    STOP = "stop"
    MAX_TOKENS = "max_tokens"
    ERROR = "error"


@dataclass
class ModelConfig:
    """A model a provider can serve."""

    id: str
    display_name: str
    max_tokens: int = 4096
    supports_structured_output: bool = False


@dataclass
class ChatMessage:
    role: ChatRole
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class CompletionRequest:
    """Single-turn completion request."""

    prompt: str
    model: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.1
    system_prompt: Optional[str] = None


@dataclass
class CompletionResponse:
    content: str
    input_tokens: int
    output_tokens: int
    model: str
    finish_reason: FinishReason = FinishReason.STOP


@dataclass
class StructuredRequest:
    """Completion whose answer must be JSON matching ``schema``."""

    prompt: str
    schema: dict[str, Any] = field(default_factory=dict)
    model: Optional[str] = None
    max_tokens: int = 1024
    system_prompt: Optional[str] = None


class ProviderException(Exception):
    """Base class for provider failures."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderUnavailableException(ProviderException):
    """Provider cannot serve requests (not configured, unreachable, faulted)."""


class ProviderRateLimitException(ProviderException):
    def __init__(self, provider: str, retry_after_ms: Optional[int] = None):
        self.retry_after_ms = retry_after_ms
        super().__init__(provider, f"rate limited (retry after {retry_after_ms} ms)")


class ProviderQuotaExceededException(ProviderException):
    def __init__(self, provider: str):
        super().__init__(provider, "quota exceeded")


class LLMProvider(ABC):
    """Abstract base class for inference providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable provider name, used for routing and logging."""
        pass

    @property
    @abstractmethod
    def available_models(self) -> list[ModelConfig]:
        pass

    @property
    def is_local(self) -> bool:
        """True when inference runs on this machine and data never leaves it."""
        return False

    @abstractmethod
    async def is_available(self) -> bool:
        """Live availability check."""
        pass

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Run a single-turn completion.

        Args:
            request: Prompt and sampling settings

        Returns:
            Completion text with token usage

        Raises:
            ProviderException: On any failure
        """
        pass

    async def chat(
        self,
        messages: list[ChatMessage],
        model: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> CompletionResponse:
        """Multi-turn chat; the default flattens the conversation into one prompt."""
        system = "\n".join(m.content for m in messages if m.role == ChatRole.SYSTEM) or None
        prompt = "\n\n".join(
            f"{m.role.value}: {m.content}" for m in messages if m.role != ChatRole.SYSTEM
        )
        return await self.complete(
            CompletionRequest(prompt=prompt, model=model, max_tokens=max_tokens, system_prompt=system)
        )

    async def structured_output(self, request: StructuredRequest) -> CompletionResponse:
        """Completion constrained to JSON; the default asks for it in the prompt."""
        schema_hint = json.dumps(request.schema) if request.schema else "a JSON value"
        prompt = f"{request.prompt}\n\nRespond with JSON only, matching: {schema_hint}"
        return await self.complete(
            CompletionRequest(
                prompt=prompt,
                model=request.model,
                max_tokens=request.max_tokens,
                temperature=0.0,
                system_prompt=request.system_prompt,
            )
        )
