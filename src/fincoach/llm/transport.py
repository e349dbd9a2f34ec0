"""HTTP transport for the chat-completions API.

Created: 2026-10-02

One ``httpx.AsyncClient`` shared by the streaming client and both
categorizers. Every httpx failure is re-raised as ``TransportError`` so the
callers only have one exception type to degrade on.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from fincoach.config import Settings
from fincoach.errors import TransportError
from fincoach.logging_setup import mask_key

logger = logging.getLogger(__name__)


class ChatTransport:
    """POSTs chat-completion requests with bearer auth and per-request timeouts.

    Pass ``client`` to inject a pre-built ``httpx.AsyncClient`` (tests use one
    backed by ``httpx.MockTransport``). Otherwise a client is created lazily
    and closed by ``aclose()``.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._client = client
        self._owns_client = client is None

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.settings.read_timeout, connect=self.settings.connect_timeout)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            logger.debug(
                "Created HTTP client for %s (key %s)",
                self.settings.api_base_url,
                mask_key(self.settings.api_key),
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key or ''}",
        }

    def build_payload(
        self,
        messages: list[dict[str, str]],
        *,
        stream: bool,
        temperature: float,
        max_tokens: int,
        model: str | None = None,
    ) -> dict[str, Any]:
        return {
            "model": model or self.settings.model,
            "messages": messages,
            "stream": stream,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        model: str | None = None,
    ) -> str:
        """Run a non-streaming completion and return the trimmed message content."""
        payload = self.build_payload(
            messages, stream=False, temperature=temperature, max_tokens=max_tokens, model=model
        )
        try:
            response = await self._get_client().post(
                self.settings.completions_url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            body = response.text.strip()
            logger.error("API error response %s: %s", response.status_code, body[:200])
            raise TransportError(
                f"API error: {response.status_code}", status_code=response.status_code, body=body
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Malformed completion response: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise TransportError("Completion response has no content")
        return content.strip()

    @asynccontextmanager
    async def open_stream(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        model: str | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming completion; yields the response with its body unread.

        Non-2xx responses are read in full and raised as ``TransportError``.
        The response is always closed on exit.
        """
        payload = self.build_payload(
            messages, stream=True, temperature=temperature, max_tokens=max_tokens, model=model
        )
        logger.info(
            "Streaming request to %s with model %s (%d messages)",
            self.settings.completions_url,
            payload["model"],
            len(messages),
        )
        client = self._get_client()
        request = client.build_request(
            "POST",
            self.settings.completions_url,
            headers=self._headers(),
            json=payload,
            timeout=self.timeout,
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        try:
            if not response.is_success:
                try:
                    body = (await response.aread()).decode("utf-8", errors="replace").strip()
                except httpx.HTTPError:
                    body = ""
                logger.error("API error response %s: %s", response.status_code, body[:200])
                raise TransportError(
                    f"API error: {response.status_code}",
                    status_code=response.status_code,
                    body=body,
                )
            yield response
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
