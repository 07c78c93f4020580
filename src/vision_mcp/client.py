from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .config import VisionConfig
from .errors import ApiError, is_retryable_status

log = logging.getLogger(__name__)


class VisionClient:
    """Chat-completions client for an OpenAI-compatible vision endpoint."""

    def __init__(
        self,
        config: VisionConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.url = config.completions_url
        self._transport = transport

    def _payload(self, messages: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "max_tokens": self.config.max_tokens,
            "stream": False,
        }

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        timeout_ms = self.config.timeout_ms
        budget = timeout_ms / 1000
        try:
            async with httpx.AsyncClient(timeout=budget, transport=self._transport) as client:
                # httpx times each phase separately; the budget covers the whole call.
                return await asyncio.wait_for(
                    client.post(self.url, json=body, headers=self._headers()), budget
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise ApiError(
                f"Request timeout after {timeout_ms}ms when calling {self.url}",
                retryable=True,
                url=self.url,
            ) from exc
        except httpx.TransportError as exc:
            raise ApiError(
                f"Network error: Failed to connect to {self.url}. "
                f"Original error: {type(exc).__name__}: {exc}",
                retryable=True,
                url=self.url,
            ) from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"Network error: {exc}", url=self.url) from exc

    async def send(self, messages: list[dict[str, Any]]) -> str:
        """POST *messages* and return the first choice's text.

        Raises :class:`ApiError` for timeouts, transport failures, non-2xx
        statuses and replies without usable content.
        """
        log.info(
            "Requesting chat completions for vision analysis",
            extra={"model": self.config.model, "message_count": len(messages)},
        )
        response = await self._post(self._payload(messages))

        if not response.is_success:
            status = response.status_code
            log.error("Chat completions request failed", extra={"status_code": status})
            raise ApiError(
                f"HTTP {status}: {response.text[:1000]}",
                status_code=status,
                retryable=is_retryable_status(status),
                url=self.url,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ApiError("Invalid API response: missing content", url=self.url) from exc
        if not isinstance(content, str) or not content:
            raise ApiError("Invalid API response: missing content", url=self.url)

        log.info("Chat completions request successful")
        return content
