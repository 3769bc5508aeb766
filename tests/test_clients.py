"""Tests for the completion and embedding provider clients."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from docqa.embedding.embedder import Embedder
from docqa.errors import EmbeddingFailure, UpstreamHTTPFailure
from docqa.generation.client import CompletionClient
from fakes import delta_line, done_line

MESSAGES = [{"role": "user", "content": "hello"}]


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestCompletionClient:
    @pytest.mark.asyncio
    async def test_open_stream_posts_and_yields_lines(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            body = f"{delta_line('Hi')}\n\n{done_line()}\n\n"
            return httpx.Response(200, text=body, headers={"Content-Type": "text/event-stream"})

        client = CompletionClient(settings, mock_http(handler))
        upstream = await client.open_stream(MESSAGES, temperature=0.3)
        lines = [line async for line in upstream.lines()]
        await upstream.aclose()
        await upstream.aclose()

        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"] == {
            "model": settings.model,
            "messages": MESSAGES,
            "stream": True,
            "temperature": 0.3,
        }
        assert delta_line("Hi") in lines
        assert done_line() in lines
        assert upstream.closed

    def test_body_without_temperature(self, settings):
        client = CompletionClient(settings, mock_http(lambda r: httpx.Response(200)))
        body = client.build_body(MESSAGES, model="other/model")
        assert body["model"] == "other/model"
        assert "temperature" not in body

    @pytest.mark.asyncio
    async def test_error_status_raises_with_body(self, settings):
        def handler(request):
            return httpx.Response(429, text='{"error": "rate limited"}')

        client = CompletionClient(settings, mock_http(handler))
        with pytest.raises(UpstreamHTTPFailure) as excinfo:
            await client.open_stream(MESSAGES)

        assert excinfo.value.status_code == 429
        assert excinfo.value.body == '{"error": "rate limited"}'
        assert "429" in str(excinfo.value)


def embedding_response(vector, tokens=5):
    return SimpleNamespace(
        data=[SimpleNamespace(embedding=vector)],
        usage=SimpleNamespace(total_tokens=tokens),
    )


class TestEmbedder:
    def test_embed_text_returns_vector_and_counts_usage(self, settings):
        client = MagicMock()
        client.embeddings.create.return_value = embedding_response([0.1, 0.2, 0.3], tokens=7)
        embedder = Embedder(settings, client=client)

        assert embedder.embed_text("warranty terms") == [0.1, 0.2, 0.3]
        client.embeddings.create.assert_called_once_with(
            model=settings.embedding_model, input="warranty terms"
        )
        assert embedder.usage_summary()["total_tokens_used"] == 7
        assert embedder.total_api_calls == 1

    def test_missing_vector_is_failure(self, settings):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(data=[], usage=None)
        with pytest.raises(EmbeddingFailure, match="Failed to get embedding"):
            Embedder(settings, client=client).embed_text("x")

    def test_provider_status_error(self, settings):
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/embeddings")
        response = httpx.Response(503, request=request)
        client = MagicMock()
        client.embeddings.create.side_effect = openai.APIStatusError(
            "Service Unavailable", response=response, body=None
        )
        with pytest.raises(UpstreamHTTPFailure) as excinfo:
            Embedder(settings, client=client).embed_text("x")
        assert excinfo.value.status_code == 503

    def test_connection_error(self, settings):
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/embeddings")
        client = MagicMock()
        client.embeddings.create.side_effect = openai.APIConnectionError(request=request)
        with pytest.raises(EmbeddingFailure):
            Embedder(settings, client=client).embed_text("x")
