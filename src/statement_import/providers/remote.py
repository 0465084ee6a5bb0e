"""
Shared HTTP plumbing for cloud providers.

Maps httpx failures onto the provider exception hierarchy:
429 -> rate limit, 402 or a quota error body -> quota exceeded,
everything else (timeouts, connection errors, other statuses) -> unavailable.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .base import (
    LLMProvider,
    ProviderQuotaExceededException,
    ProviderRateLimitException,
    ProviderUnavailableException,
)

logger = logging.getLogger(__name__)

QUOTA_MARKERS = ("insufficient_quota", "quota", "credit balance", "billing")


def _retry_after_ms(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return int(float(value) * 1000)
    except ValueError:
        return None


class RemoteProvider(LLMProvider):
    """Base for providers reached over HTTPS with an API key."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout_seconds: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

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

    async def is_available(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def _headers(self) -> dict[str, str]:
        return {"content-type": "application/json"}

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and return the decoded body.

        Raises:
            ProviderUnavailableException: Not configured, unreachable, or failed
            ProviderRateLimitException: HTTP 429
            ProviderQuotaExceededException: HTTP 402 or quota error body
        """
        if not await self.is_available():
            raise ProviderUnavailableException(self.name, "API key not configured")

        url = f"{self.base_url}{path}"
        logger.debug("Calling %s model %s", self.name, payload.get("model"))
        try:
            response = await self.client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out after %ds", self.name, self.timeout_seconds)
            raise ProviderUnavailableException(self.name, "request timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("%s API error %s", self.name, status)
            if status == 429:
                raise ProviderRateLimitException(self.name, _retry_after_ms(e.response)) from e
            body = e.response.text.lower()
            if status == 402 or any(marker in body for marker in QUOTA_MARKERS):
                raise ProviderQuotaExceededException(self.name) from e
            raise ProviderUnavailableException(self.name, f"HTTP {status}") from e
        except httpx.RequestError as e:
            logger.warning("%s request failed: %s", self.name, e)
            raise ProviderUnavailableException(self.name, str(e)) from e
        except ValueError as e:
            raise ProviderUnavailableException(self.name, "invalid JSON response") from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
