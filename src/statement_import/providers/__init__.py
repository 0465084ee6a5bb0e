"""
Inference providers: cloud APIs and on-device models.

Provides:
- LLMProvider ABC and request/response types
- Provider exceptions (unavailable, rate limit, quota)
- AnthropicProvider, OpenAIProvider over httpx
- OnDeviceLLMProvider over an InferenceEngine (Ollama)
- ModelRegistry for on-device model lifecycle
- LLMProviderFactory for routing by ProviderPreference
"""

from .anthropic import AnthropicProvider
from .base import (
    ChatMessage,
    ChatRole,
    CompletionRequest,
    CompletionResponse,
    FinishReason,
    LLMProvider,
    ModelConfig,
    ProviderException,
    ProviderPreference,
    ProviderQuotaExceededException,
    ProviderRateLimitException,
    ProviderUnavailableException,
    StructuredRequest,
)
from .factory import LLMProviderFactory, create_provider_factory
from .inference import InferenceEngine, InferenceError, InferenceResult
from .models import (
    DownloadCancelled,
    DownloadCompleted,
    DownloadFailed,
    Downloading,
    DownloadProgress,
    InstalledModel,
    ModelDownloader,
    ModelRegistry,
    ModelResult,
    ModelSpec,
    ModelStatus,
)
from .ollama_engine import OllamaInferenceEngine
from .on_device import OnDeviceLLMProvider
from .openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "ChatMessage",
    "ChatRole",
    "CompletionRequest",
    "CompletionResponse",
    "DownloadCancelled",
    "DownloadCompleted",
    "DownloadFailed",
    "Downloading",
    "DownloadProgress",
    "FinishReason",
    "InferenceEngine",
    "InferenceError",
    "InferenceResult",
    "InstalledModel",
    "LLMProvider",
    "LLMProviderFactory",
    "ModelConfig",
    "ModelDownloader",
    "ModelRegistry",
    "ModelResult",
    "ModelSpec",
    "ModelStatus",
    "OllamaInferenceEngine",
    "OnDeviceLLMProvider",
    "OpenAIProvider",
    "ProviderException",
    "ProviderPreference",
    "ProviderQuotaExceededException",
    "ProviderRateLimitException",
    "ProviderUnavailableException",
    "StructuredRequest",
    "create_provider_factory",
]
