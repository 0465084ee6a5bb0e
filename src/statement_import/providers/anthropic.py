"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from .base import (
    CompletionRequest,
    CompletionResponse,
    FinishReason,
    ModelConfig,
    ProviderUnavailableException,
)
from .remote import RemoteProvider

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-5-haiku-20241022"

MODELS = [
    ModelConfig("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", 8192, True),
    ModelConfig("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", 8192, True),
]


class AnthropicProvider(RemoteProvider):
    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        base_url: str = "https://api.anthropic.com/v1",
        timeout_seconds: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, base_url, timeout_seconds, client)
        self.model = model

    @property
    def name(self) -> str:
        model = self.model.lower()
        for family in ("sonnet", "haiku"):
            if family in model:
                return f"anthropic-{family}"
        return f"anthropic-{self.model}"

    @property
    def available_models(self) -> list[ModelConfig]:
        return MODELS

    def _headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        model = request.model or self.model
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt

        data = await self._post_json("/messages", payload)

        blocks = data.get("content") or []
        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        if not blocks:
            raise ProviderUnavailableException(self.name, "empty response")
        usage = data.get("usage") or {}
        return CompletionResponse(
            content=text,
            input_tokens=int(usage.get("input_tokens", 0)),
            output_tokens=int(usage.get("output_tokens", 0)),
            model=data.get("model", model),
            finish_reason=(
                FinishReason.MAX_TOKENS if data.get("stop_reason") == "max_tokens" else FinishReason.STOP
            ),
        )
