"""Tests for the raw chat-completion passthrough."""

import json

import httpx
import pytest

from docqa.errors import UpstreamHTTPFailure
from docqa.streaming.passthrough import relay_chat_completion
from docqa.streaming.sse import DONE_EVENT
from fakes import FakeCompletions, FakeUpstream, delta_line, done_line

MESSAGES = [{"role": "user", "content": "Tell me a joke"}]


async def collect(client, model=None):
    return [chunk async for chunk in relay_chat_completion(client, MESSAGES, model)]


@pytest.mark.asyncio
async def test_relays_data_lines_verbatim():
    upstream = FakeUpstream([": OPENROUTER PROCESSING", "", delta_line("Why"), delta_line(" not?"), done_line()])
    client = FakeCompletions(upstream)

    chunks = await collect(client, model="some/model")

    assert chunks == [f"{delta_line('Why')}\n\n", f"{delta_line(' not?')}\n\n", DONE_EVENT]
    assert client.requests[0]["model"] == "some/model"
    assert client.requests[0]["messages"] == MESSAGES
    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_single_done_even_without_upstream_marker():
    upstream = FakeUpstream([delta_line("Hi")])
    chunks = await collect(FakeCompletions(upstream))
    assert chunks.count(DONE_EVENT) == 1
    assert chunks[-1] == DONE_EVENT


@pytest.mark.asyncio
async def test_provider_error_becomes_error_event():
    client = FakeCompletions(error=UpstreamHTTPFailure(401, "Unauthorized", '{"error": "bad key"}'))

    chunks = await collect(client)

    assert len(chunks) == 1
    assert json.loads(chunks[0][6:]) == {"error": {"message": '{"error": "bad key"}'}}


@pytest.mark.asyncio
async def test_read_error_ends_with_error_event():
    upstream = FakeUpstream([delta_line("Hi")], error=httpx.ReadError("reset"))

    chunks = await collect(FakeCompletions(upstream))

    assert chunks[0] == f"{delta_line('Hi')}\n\n"
    assert "error" in json.loads(chunks[-1][6:])
    assert DONE_EVENT not in chunks
    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_client_leaving_early_releases_upstream():
    upstream = FakeUpstream([delta_line("one"), delta_line("two"), done_line()])
    relay = relay_chat_completion(FakeCompletions(upstream), MESSAGES)

    await relay.__anext__()
    await relay.aclose()

    assert upstream.close_calls == 1
