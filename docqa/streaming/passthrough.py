"""
General Chat Passthrough
-------------------------
Relays the provider's raw `data:` lines verbatim for OpenAI-style chat
clients, then appends a single `data: [DONE]` terminator.  The provider's
own [DONE] line ends the relay and is not forwarded, so the client sees
exactly one terminator.
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import httpx
import orjson
from loguru import logger

from docqa.errors import UpstreamHTTPFailure
from docqa.generation.client import CompletionClient
from docqa.streaming.sse import DONE_EVENT, DONE_MARKER, parse_data_line


def _error_event(message: str) -> str:
    return f"data: {orjson.dumps({'error': {'message': message}}).decode('utf-8')}\n\n"


async def relay_chat_completion(
    client: CompletionClient,
    messages: list[dict[str, Any]],
    model: Optional[str] = None,
) -> AsyncIterator[str]:
    try:
        upstream = await client.open_stream(messages, model=model)
    except UpstreamHTTPFailure as exc:
        yield _error_event(exc.body or str(exc))
        return
    except httpx.TransportError as exc:
        logger.error(f"[Passthrough] Provider unreachable: {exc}")
        yield _error_event(str(exc))
        return

    try:
        async for raw in upstream.lines():
            line = raw.strip()
            payload = parse_data_line(line)
            if payload is None:
                continue
            if payload == DONE_MARKER:
                break
            yield f"{line}\n\n"
        yield DONE_EVENT
    except httpx.HTTPError as exc:
        logger.error(f"[Passthrough] Stream error: {exc}")
        yield _error_event(str(exc))
    finally:
        await upstream.aclose()
