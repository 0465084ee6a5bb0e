"""OpenAI chat completions provider."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from .base import (
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    FinishReason,
    ModelConfig,
    ProviderUnavailableException,
    StructuredRequest,
)
from .remote import RemoteProvider

DEFAULT_MODEL = "gpt-4o-mini"

MODELS = [
    ModelConfig("gpt-4o-mini", "GPT-4o mini", 16384, True),
    ModelConfig("gpt-4o", "GPT-4o", 16384, True),
]


class OpenAIProvider(RemoteProvider):
    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, base_url, timeout_seconds, client)
        self.model = model

    @property
    def name(self) -> str:
        return "openai-mini" if "mini" in self.model.lower() else f"openai-{self.model}"

    @property
    def available_models(self) -> list[ModelConfig]:
        return MODELS

    def _headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "authorization": f"Bearer {self.api_key or ''}",
        }

    async def _chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float,
        json_mode: bool = False,
    ) -> CompletionResponse:
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post_json("/chat/completions", payload)

        choices = data.get("choices") or []
        if not choices:
            raise ProviderUnavailableException(self.name, "empty response")
        choice = choices[0]
        usage = data.get("usage") or {}
        return CompletionResponse(
            content=(choice.get("message") or {}).get("content") or "",
            input_tokens=int(usage.get("prompt_tokens", 0)),
            output_tokens=int(usage.get("completion_tokens", 0)),
            model=data.get("model", model),
            finish_reason=(
                FinishReason.MAX_TOKENS if choice.get("finish_reason") == "length" else FinishReason.STOP
            ),
        )

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return await self._chat_completion(
            messages, request.model or self.model, request.max_tokens, request.temperature
        )

    async def chat(
        self,
        messages: list[ChatMessage],
        model: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> CompletionResponse:
        return await self._chat_completion(
            [m.to_dict() for m in messages], model or self.model, max_tokens, 0.1
        )

    async def structured_output(self, request: StructuredRequest) -> CompletionResponse:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt + "\n\nRespond with JSON."})
        return await self._chat_completion(
            messages, request.model or self.model, request.max_tokens, 0.0, json_mode=True
        )
