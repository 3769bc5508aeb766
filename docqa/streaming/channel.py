"""
Downstream Event Channel
-------------------------
An asyncio.Queue between the stream controller (producer) and the HTTP
response body (consumer).  The controller writes SSE strings; a
Starlette StreamingResponse iterates stream().

Once closed, every write is refused.  If the consumer stops before it
has read the close marker, the client went away: registered disconnect
callbacks fire exactly once.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

from loguru import logger

_CLOSE = object()


class EventChannel:
    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._drained = False
        self._disconnected = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def on_disconnect(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def write(self, data: str) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(data)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    def disconnect(self) -> None:
        """Signal that the client is gone; no-op after a normal close was consumed."""
        if self._disconnected or self._drained:
            return
        self._disconnected = True
        self._closed = True
        logger.debug("[Channel] Client disconnected")
        for callback in self._callbacks:
            callback()

    async def stream(self) -> AsyncIterator[str]:
        """Yield queued events until the channel is closed."""
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSE:
                    self._drained = True
                    return
                yield item
        finally:
            if not self._drained:
                self.disconnect()
