"""Tests for SSE formatting/parsing and the downstream event channel."""

import json

import pytest

from docqa.schemas import AnswerSource
from docqa.streaming.channel import EventChannel
from docqa.streaming.sse import (
    DONE_EVENT,
    extract_delta_content,
    format_error_event,
    format_event,
    parse_data_line,
)
from fakes import RecordingChannel


class TestFormatting:
    def test_format_event(self):
        event = format_event(AnswerSource.DOCS, "héllo \"quoted\"")
        assert event.startswith("data: ") and event.endswith("\n\n")
        assert json.loads(event[6:]) == {"source": "docs", "content": "héllo \"quoted\""}

    def test_format_error_event(self):
        event = format_error_event("Upstream returned 502", AnswerSource.GENERAL)
        assert json.loads(event[6:]) == {"error": "Upstream returned 502", "source": "openai"}
        assert json.loads(format_error_event("boom")[6:]) == {"error": "boom"}

    def test_done_event(self):
        assert DONE_EVENT == "data: [DONE]\n\n"


class TestParsing:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("data: [DONE]", "[DONE]"),
            ("data:{\"a\": 1}", "{\"a\": 1}"),
            ("  data: x  ", "x"),
            (": keep-alive", None),
            ("", None),
            ("event: message", None),
        ],
    )
    def test_parse_data_line(self, line, expected):
        assert parse_data_line(line) == expected

    def test_extract_delta_content(self):
        assert extract_delta_content('{"choices": [{"delta": {"content": "Hi"}}]}') == "Hi"

    @pytest.mark.parametrize(
        "payload",
        [
            '{"choices": [{"delta"',
            '{"choices": []}',
            '{"choices": [{"delta": {"role": "assistant"}}]}',
            '{"choices": [{"delta": {"content": ""}}]}',
            '{"choices": [{"delta": {"content": null}}]}',
            '"just a string"',
            "[DONE]",
        ],
    )
    def test_extract_delta_content_skips_unusable(self, payload):
        assert extract_delta_content(payload) is None


class TestEventChannel:
    @pytest.mark.asyncio
    async def test_stream_yields_until_closed(self):
        channel = EventChannel()
        channel.write("a")
        channel.write("b")
        channel.close()

        received = [item async for item in channel.stream()]

        assert received == ["a", "b"]
        assert channel.closed

    def test_delivered_events_are_not_retained(self):
        channel = EventChannel()
        channel.write("a")
        assert not hasattr(channel, "writes")

    @pytest.mark.asyncio
    async def test_write_after_close_is_refused(self):
        channel = RecordingChannel()
        channel.close()
        channel.close()
        assert channel.write("late") is False
        assert channel.writes == []

    @pytest.mark.asyncio
    async def test_disconnect_fires_callbacks_once(self):
        channel = EventChannel()
        calls = []
        channel.on_disconnect(lambda: calls.append("gone"))

        channel.disconnect()
        channel.disconnect()

        assert calls == ["gone"]
        assert channel.disconnected
        assert channel.write("x") is False

    @pytest.mark.asyncio
    async def test_consumer_stopping_early_counts_as_disconnect(self):
        channel = EventChannel()
        calls = []
        channel.on_disconnect(lambda: calls.append("gone"))
        channel.write("first")

        body = channel.stream()
        assert await body.__anext__() == "first"
        await body.aclose()

        assert calls == ["gone"]
        assert channel.write("second") is False

    @pytest.mark.asyncio
    async def test_drained_channel_does_not_report_disconnect(self):
        channel = EventChannel()
        calls = []
        channel.on_disconnect(lambda: calls.append("gone"))
        channel.write("only")
        channel.close()

        assert [item async for item in channel.stream()] == ["only"]
        channel.disconnect()

        assert calls == []
        assert not channel.disconnected
