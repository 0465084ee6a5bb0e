"""
Provider routing by task preference.

- FAST_CHEAP: mini-class, then haiku-class, then any cloud provider
- BEST_QUALITY: sonnet-class, then a full OpenAI model, then any cloud provider
- STRUCTURED_OUTPUT: Anthropic, then OpenAI
- LOCAL_ONLY: on-device only, never substituted by a cloud provider
- CHEAPEST: on-device when available, then the FAST_CHEAP order
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import Config
from .anthropic import AnthropicProvider
from .base import LLMProvider, ProviderPreference, ProviderUnavailableException
from .models import ModelRegistry
from .ollama_engine import OllamaInferenceEngine
from .on_device import OnDeviceLLMProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)


def _named(provider: Optional[LLMProvider], marker: str) -> Optional[LLMProvider]:
    if provider is not None and marker in provider.name.lower():
        return provider
    return None


class LLMProviderFactory:
    """Chooses providers for a task from the configured set."""

    def __init__(
        self,
        openai_provider: Optional[LLMProvider] = None,
        anthropic_provider: Optional[LLMProvider] = None,
        on_device_provider: Optional[LLMProvider] = None,
    ):
        self.openai_provider = openai_provider
        self.anthropic_provider = anthropic_provider
        self.on_device_provider = on_device_provider

    @property
    def configured_providers(self) -> list[LLMProvider]:
        return [
            p
            for p in (self.openai_provider, self.anthropic_provider, self.on_device_provider)
            if p is not None
        ]

    async def _first_available(self, *candidates: Optional[LLMProvider]) -> Optional[LLMProvider]:
        for provider in candidates:
            if provider is not None and await provider.is_available():
                return provider
        return None

    async def get_provider(self, preference: ProviderPreference) -> LLMProvider:
        """
        Resolve the preferred provider for a task.

        Raises:
            ProviderUnavailableException: No suitable provider is available
        """
        openai, anthropic = self.openai_provider, self.anthropic_provider

        if preference == ProviderPreference.LOCAL_ONLY:
            if self.on_device_provider is None:
                raise ProviderUnavailableException("local", "No on-device provider configured")
            if not await self.on_device_provider.is_available():
                raise ProviderUnavailableException(
                    "local", "On-device provider not available (model not installed)"
                )
            return self.on_device_provider

        if preference == ProviderPreference.FAST_CHEAP:
            candidates = (_named(openai, "mini"), _named(anthropic, "haiku"), openai, anthropic)
        elif preference == ProviderPreference.BEST_QUALITY:
            full_openai = openai if openai is not None and "mini" not in openai.name.lower() else None
            candidates = (_named(anthropic, "sonnet"), full_openai, anthropic, openai)
        elif preference == ProviderPreference.STRUCTURED_OUTPUT:
            candidates = (anthropic, openai)
        else:
            candidates = (
                self.on_device_provider,
                _named(openai, "mini"),
                _named(anthropic, "haiku"),
                openai,
                anthropic,
            )

        provider = await self._first_available(*candidates)
        if provider is None:
            raise ProviderUnavailableException(preference.value.lower(), "No provider available")
        return provider

    async def get_providers_with_fallback(self, preference: ProviderPreference) -> list[LLMProvider]:
        """Primary provider first, then every other available provider."""
        providers: list[LLMProvider] = []
        try:
            providers.append(await self.get_provider(preference))
        except ProviderUnavailableException:
            pass

        if preference == ProviderPreference.LOCAL_ONLY:
            return providers

        for provider in (self.anthropic_provider, self.openai_provider, self.on_device_provider):
            if provider is not None and provider not in providers and await provider.is_available():
                providers.append(provider)
        return providers

    async def has_any_provider(self) -> bool:
        for provider in self.configured_providers:
            if await provider.is_available():
                return True
        return False

    async def get_available_providers(self) -> list[LLMProvider]:
        return [p for p in self.configured_providers if await p.is_available()]

    async def aclose(self) -> None:
        for provider in self.configured_providers:
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
        engine = getattr(self.on_device_provider, "engine", None)
        if engine is not None and hasattr(engine, "aclose"):
            await engine.aclose()


def create_provider_factory(config: Config) -> LLMProviderFactory:
    """Build providers from configuration; unconfigured providers are omitted."""
    settings = config.providers

    openai = None
    if settings.openai_api_key:
        openai = OpenAIProvider(
            settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.timeout_seconds,
        )

    anthropic = None
    if settings.anthropic_api_key:
        anthropic = AnthropicProvider(
            settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            timeout_seconds=settings.timeout_seconds,
        )

    on_device = None
    if settings.on_device_enabled:
        engine = OllamaInferenceEngine(settings.ollama_url, timeout_seconds=settings.timeout_seconds)
        registry = ModelRegistry(engine, selected_model_id=settings.ollama_model)
        on_device = OnDeviceLLMProvider(registry, engine)

    logger.info(
        "Providers configured: openai=%s anthropic=%s on_device=%s",
        openai is not None,
        anthropic is not None,
        on_device is not None,
    )
    return LLMProviderFactory(openai, anthropic, on_device)
