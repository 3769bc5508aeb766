"""
Streaming Response Controller
------------------------------
Relays one upstream completion stream to one downstream SSE channel.

State machine:

    INIT --(general mode)--> IMMEDIATE ------------------------+
      |                                                        |
      +--(docs mode)--> BUFFERING --(threshold | timeout)--> STREAMING
                                                               |
                              DONE <---------------------------+
    ERROR / CANCELLED reachable from anywhere (absorbing)

IMMEDIATE   every decoded token is forwarded at once, no stripping.
BUFFERING   tokens accumulate; the refusal stripper is re-run over the
            buffer after each append.  Streaming starts once the stripped
            text reaches `start_threshold` characters, or when the start
            timeout fires with non-empty stripped text.
STREAMING   pending text is forwarded once it grows by `min_send_delta`
            characters, or on every periodic flush tick.
DONE        final flush; a document answer that never started gets the
            literal fallback sentence; [DONE] is written once; channel
            closed.

Every exit path goes through _finalize(), which cancels both timers and
releases the upstream reader exactly once.
A client disconnect cancels the upstream open or read, whichever is
pending.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine, Optional

import httpx
from loguru import logger

from docqa.config import StreamingSettings
from docqa.errors import UpstreamHTTPFailure
from docqa.generation.prompts import FALLBACK_ANSWER
from docqa.schemas import AnswerSource
from docqa.streaming.channel import EventChannel
from docqa.streaming.session import StreamSession, StreamState
from docqa.streaming.sse import (
    DONE_EVENT,
    DONE_MARKER,
    KEEPALIVE,
    extract_delta_content,
    format_error_event,
    format_event,
    parse_data_line,
)
from docqa.streaming.stripper import strip_leading_phrases

# Zero-arg coroutine returning an object with `lines()` and `aclose()`
UpstreamOpener = Callable[[], Coroutine[Any, Any, Any]]


class StreamController:
    """
    Usage:
        channel = EventChannel()
        controller = StreamController(AnswerSource.DOCS, channel, settings.streaming)
        await controller.run(lambda: client.open_stream(messages))
    """

    def __init__(
        self,
        source: AnswerSource,
        channel: EventChannel,
        streaming: Optional[StreamingSettings] = None,
    ) -> None:
        self.session = StreamSession(source=source)
        self.channel = channel
        self.streaming = streaming or StreamingSettings()
        self._upstream: Any = None
        self._open_task: Optional[asyncio.Task] = None
        self._read_task: Optional[asyncio.Task] = None
        self._start_task: Optional[asyncio.Task] = None
        self._flush_task: Optional[asyncio.Task] = None
        channel.on_disconnect(self.cancel)

    # --- Lifecycle ------------------------------------------------------------

    async def run(self, open_upstream: UpstreamOpener) -> StreamSession:
        s = self.session
        try:
            # A disconnect while waiting for response headers cancels the open
            self._open_task = asyncio.create_task(open_upstream())
            try:
                self._upstream = await self._open_task
            except asyncio.CancelledError:
                if not s.client_closed:
                    raise
                logger.debug("[Stream] Upstream open cancelled after client disconnect")
                return s
            except (UpstreamHTTPFailure, httpx.TransportError) as exc:
                self._fail(exc)
                return s

            if not s.can_write:
                return s

            if s.source is AnswerSource.GENERAL:
                s.transition(StreamState.IMMEDIATE)
                s.started = True
                self._ensure_keepalive()
            else:
                s.transition(StreamState.BUFFERING)
                self._start_task = asyncio.create_task(self._start_timeout())

            self._read_task = asyncio.create_task(self._pump(self._upstream))
            try:
                await self._read_task
            except asyncio.CancelledError:
                if not s.client_closed:
                    raise
                logger.debug("[Stream] Upstream read cancelled after client disconnect")
            except httpx.HTTPError as exc:
                logger.error(f"[Stream] Stream read error: {exc}")
        finally:
            await self._finalize()
        return s

    def cancel(self) -> None:
        """Client went away: stop reading and never write again. Idempotent."""
        s = self.session
        if s.client_closed:
            return
        s.client_closed = True
        s.ended = True
        s.transition(StreamState.CANCELLED)
        logger.info(f"[Stream] Client disconnected | source={s.source.value} | sent={s.events_sent} events")
        self._clear_timers()
        for task in (self._open_task, self._read_task):
            if task is not None and not task.done():
                task.cancel()

    async def _finalize(self) -> None:
        s = self.session
        if s.finalized:
            return
        s.finalized = True
        self._clear_timers()
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()
        await self._release_upstream()

        if s.can_write:
            self._flush(force=True)
            if not s.started and s.source is AnswerSource.DOCS:
                logger.info("[Stream] No usable document answer - sending fallback sentence")
                self._send_event(FALLBACK_ANSWER)
            self._write(DONE_EVENT)
            s.done_sent = True
            s.transition(StreamState.DONE)
            self.channel.close()
        s.ended = True

    async def _release_upstream(self) -> None:
        s = self.session
        if self._upstream is None or s.reader_released:
            return
        s.reader_released = True
        try:
            await self._upstream.aclose()
        except httpx.HTTPError as exc:
            logger.debug(f"[Stream] Error while closing upstream: {exc}")

    def _fail(self, exc: Exception) -> None:
        s = self.session
        s.transition(StreamState.ERROR)
        logger.error(f"[Stream] Upstream failure before streaming: {exc}")
        if s.can_write:
            self._write(format_error_event(str(exc), s.source))
            self.channel.close()
        s.ended = True

    # --- Timers ---------------------------------------------------------------

    async def _start_timeout(self) -> None:
        await asyncio.sleep(self.streaming.start_timeout_s)
        if not self.session.started and self.session.can_write:
            self._flush(force=True)

    async def _periodic_flush(self) -> None:
        while True:
            await asyncio.sleep(self.streaming.flush_interval_s)
            self._flush(force=True)

    def _clear_timers(self) -> None:
        current = asyncio.current_task()
        for task in (self._start_task, self._flush_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._start_task = None
        self._flush_task = None

    # --- Reading --------------------------------------------------------------

    async def _pump(self, upstream: Any) -> None:
        async for line in upstream.lines():
            if self.session.client_closed:
                break
            payload = parse_data_line(line)
            if payload is None:
                continue
            if payload == DONE_MARKER:
                break
            content = extract_delta_content(payload)
            if content:
                self._on_content(content)

    def _on_content(self, content: str) -> None:
        s = self.session
        if s.source is AnswerSource.GENERAL:
            self._send_event(content)
            return
        s.buffer += content
        self._flush()

    # --- Writing --------------------------------------------------------------

    def _flush(self, force: bool = False) -> None:
        s = self.session
        if not s.can_write:
            return

        if not s.started:
            stripped = strip_leading_phrases(s.buffer)
            visible = len(stripped.strip())
            if visible >= self.streaming.start_threshold or (force and visible > 0):
                self._begin_streaming(stripped)
            return

        delta = len(s.buffer) - s.sent_len
        if delta >= self.streaming.min_send_delta or (force and delta > 0):
            self._send_pending()

    def _begin_streaming(self, stripped: str) -> None:
        s = self.session
        s.started = True
        s.buffer = stripped
        s.sent_len = 0
        s.transition(StreamState.STREAMING)
        logger.debug(f"[Stream] Streaming started | {len(stripped)} chars buffered")

        current = asyncio.current_task()
        if self._start_task is not None and self._start_task is not current:
            self._start_task.cancel()
        self._start_task = None

        self._send_pending()
        # No new timers once finalisation has begun
        if self._flush_task is None and not s.finalized:
            self._flush_task = asyncio.create_task(self._periodic_flush())

    def _send_pending(self) -> None:
        s = self.session
        increment = s.pending.rstrip()
        if not increment:
            return
        if self._send_event(increment):
            # Trailing whitespace stays pending and leads the next increment
            s.sent_len += len(increment)

    def _send_event(self, content: str) -> bool:
        if not content or not self.session.can_write:
            return False
        self._ensure_keepalive()
        if self._write(format_event(self.session.source, content)):
            self.session.events_sent += 1
            return True
        return False

    def _ensure_keepalive(self) -> None:
        if not self.session.keepalive_sent and self._write(KEEPALIVE):
            self.session.keepalive_sent = True

    def _write(self, data: str) -> bool:
        if not self.session.can_write:
            return False
        return self.channel.write(data)
