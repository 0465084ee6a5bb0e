"""
Inference engine backed by a local Ollama server.

Model presence is checked with ``/api/tags``; completions use
``/api/generate``; downloads stream ``/api/pull`` progress lines.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from .inference import InferenceEngine, InferenceError, InferenceResult
from .models import ModelDownloader, ProgressCallback, engine_tag

logger = logging.getLogger(__name__)


class OllamaInferenceEngine(InferenceEngine, ModelDownloader):
    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout_seconds: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._loaded: Optional[str] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=10.0,
                    read=float(self.timeout_seconds),
                    write=30.0,
                    pool=10.0,
                )
            )
        return self._client

    @property
    def loaded_model(self) -> Optional[str]:
        return self._loaded

    async def list_installed(self) -> list[str]:
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.debug("Ollama tags unavailable at %s: %s", self.base_url, e)
            return []
        return [m.get("name", "") for m in data.get("models", []) if m.get("name")]

    async def load_model(self, model: str) -> bool:
        if self._loaded == model:
            return True
        if self._loaded is not None:
            await self.unload_model()

        installed = {engine_tag(name) for name in await self.list_installed()}
        # Ollama reports "name:latest" for untagged pulls
        if engine_tag(model) not in installed:
            logger.warning("Ollama model %s is not installed", model)
            return False
        self._loaded = model
        logger.info("Ollama model loaded: %s", model)
        return True

    async def unload_model(self) -> None:
        if self._loaded is None:
            return
        model, self._loaded = self._loaded, None
        try:
            response = await self.client.post(
                f"{self.base_url}/api/generate", json={"model": model, "keep_alive": 0}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to unload Ollama model %s: %s", model, e)

    async def complete(
        self,
        prompt: str,
        max_tokens: int = 256,
        temperature: float = 0.1,
        stop_sequences: Optional[list[str]] = None,
    ) -> InferenceResult:
        if self._loaded is None:
            raise InferenceError("No model loaded")

        options: dict[str, Any] = {"num_predict": max_tokens, "temperature": temperature}
        if stop_sequences:
            options["stop"] = stop_sequences
        payload = {"model": self._loaded, "prompt": prompt, "stream": False, "options": options}

        try:
            response = await self.client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise InferenceError(f"Ollama request timed out after {self.timeout_seconds}s") from e
        except httpx.HTTPStatusError as e:
            raise InferenceError(f"Ollama API error {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise InferenceError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise InferenceError("Ollama returned invalid JSON") from e

        text = data.get("response", "")
        logger.debug("Ollama %s returned %d chars", self._loaded, len(text))
        return InferenceResult(
            text=text,
            input_tokens=int(data.get("prompt_eval_count") or self.token_count(prompt)),
            output_tokens=int(data.get("eval_count") or self.token_count(text)),
            duration_ms=int(data.get("total_duration", 0)) // 1_000_000,
        )

    async def download(self, engine_model: str, on_progress: ProgressCallback) -> None:
        async with self.client.stream(
            "POST",
            f"{self.base_url}/api/pull",
            json={"model": engine_model, "stream": True},
            timeout=None,
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line:
                    continue
                try:
                    chunk = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if chunk.get("error"):
                    raise InferenceError(f"Ollama pull failed: {chunk['error']}")
                if chunk.get("total"):
                    on_progress(int(chunk.get("completed", 0)), int(chunk["total"]))

    async def delete(self, engine_model: str) -> bool:
        if self._loaded == engine_model:
            await self.unload_model()
        try:
            response = await self.client.request(
                "DELETE", f"{self.base_url}/api/delete", json={"model": engine_model}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to delete Ollama model %s: %s", engine_model, e)
            return False
        return True

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
