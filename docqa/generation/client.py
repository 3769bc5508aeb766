"""
Streaming Completion Client
----------------------------
Issues one streamed chat-completion request to the OpenAI-compatible
provider (OpenRouter by default) and hands back the open response as an
UpstreamStream.  No retries: a non-success status is raised immediately.
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import httpx
from loguru import logger

from docqa.config import Settings
from docqa.errors import UpstreamHTTPFailure


class UpstreamStream:
    """An open streamed response; must be released with aclose()."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.closed = False

    async def lines(self) -> AsyncIterator[str]:
        async for line in self._response.aiter_lines():
            yield line

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._response.aclose()


class CompletionClient:
    """Thin async wrapper over POST {base_url}/chat/completions with stream=true."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_s),
            follow_redirects=True,
        )

    @property
    def url(self) -> str:
        return f"{self.settings.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

    def build_body(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model or self.settings.model,
            "messages": messages,
            "stream": True,
        }
        if temperature is not None:
            body["temperature"] = temperature
        return body

    async def open_stream(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> UpstreamStream:
        """
        Send the request and return once response headers arrive.

        Raises:
            UpstreamHTTPFailure: non-2xx status (the response is closed first).
            httpx.TransportError: the provider could not be reached.
        """
        body = self.build_body(messages, model, temperature)
        request = self._client.build_request("POST", self.url, json=body, headers=self._headers())
        logger.debug(f"[Completion] POST {self.url} | model={body['model']}")

        response = await self._client.send(request, stream=True)
        if response.is_error:
            try:
                detail = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
            logger.error(f"[Completion] Provider error {response.status_code}: {detail[:300]}")
            raise UpstreamHTTPFailure(response.status_code, response.reason_phrase, detail)

        return UpstreamStream(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
