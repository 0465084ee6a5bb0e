"""
On-device provider: local inference through the selected installed model.

Prompts never leave the machine, so this provider receives raw
descriptions.
"""

from __future__ import annotations

import logging
from typing import Optional

from .base import (
    ChatMessage,
    ChatRole,
    CompletionRequest,
    CompletionResponse,
    FinishReason,
    LLMProvider,
    ModelConfig,
    ProviderUnavailableException,
)
from .inference import InferenceEngine
from .models import ModelRegistry, ModelStatus

logger = logging.getLogger(__name__)


class OnDeviceLLMProvider(LLMProvider):
    def __init__(self, registry: ModelRegistry, engine: InferenceEngine):
        self.registry = registry
        self.engine = engine

    @property
    def name(self) -> str:
        return "on-device"

    @property
    def available_models(self) -> list[ModelConfig]:
        return [
            ModelConfig(m.engine_model, m.spec.display_name)
            for m in self.registry.installed_models
        ]

    @property
    def is_local(self) -> bool:
        return True

    async def is_available(self) -> bool:
        """
        True only when a model is selected, READY, and loads into the engine.
        """
        if not self.registry.refreshed:
            await self.registry.refresh()

        model = self.registry.current_model
        if model is None:
            logger.debug("On-device: no model selected")
            return False
        if model.status != ModelStatus.READY:
            logger.debug(f"On-device: model status is {model.status.value}")
            return False

        if self.engine.loaded_model != model.engine_model:
            try:
                loaded = await self.engine.load_model(model.engine_model)
            except Exception as e:
                logger.warning(f"On-device: failed to load {model.engine_model}: {e}")
                return False
            if not loaded:
                logger.warning(f"On-device: failed to load {model.engine_model}")
                return False
        return True

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        if not await self.is_available():
            raise ProviderUnavailableException(self.name, "No on-device model available")

        prompt = request.prompt
        if request.system_prompt:
            prompt = f"{request.system_prompt}\n\n{prompt}"

        try:
            result = await self.engine.complete(
                prompt=prompt,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
            )
        except Exception as e:
            logger.warning(f"On-device inference failed: {e}")
            raise ProviderUnavailableException(self.name, f"Inference failed: {e}") from e

        logger.debug(
            f"On-device: {result.output_tokens} tokens in {result.duration_ms}ms "
            f"({result.tokens_per_second:.1f} tok/s)"
        )
        return CompletionResponse(
            content=result.text.strip(),
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            model=self.name,
            finish_reason=FinishReason.STOP,
        )

    async def chat(
        self,
        messages: list[ChatMessage],
        model: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> CompletionResponse:
        # Small local models only see the latest user turn
        user_messages = [m for m in messages if m.role == ChatRole.USER]
        prompt = user_messages[-1].content if user_messages else ""
        return await self.complete(CompletionRequest(prompt=prompt, max_tokens=max_tokens))
