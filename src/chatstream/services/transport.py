from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Callable, Deque, List, Protocol

from chatstream.core.errors import StreamClosed

logger = logging.getLogger(__name__)

DEFAULT_HIGH_WATER_MARK = 16 * 1024


class Transport(Protocol):
    """The bits of a live response stream the event emitter relies on."""

    ended: bool
    destroyed: bool

    def write(self, chunk: bytes) -> bool: ...

    async def wait_drained(self) -> None: ...

    def end(self) -> None: ...

    def on_close(self, callback: Callable[[], None]) -> None: ...

    def destroy(self) -> None: ...

    def body(self) -> AsyncIterator[bytes]: ...


class SSETransport:
    """In-process byte pipe between a stream session and the HTTP response body.

    The session writes frames with ``write``; the response drains them by
    iterating ``body()``. ``write`` returns ``False`` once the unsent backlog
    reaches ``high_water_mark``, and ``wait_drained`` resolves when the
    backlog has been handed to the server in full. When the body iterator is
    torn down (client went away, or the stream finished) the transport is
    destroyed and every ``on_close`` callback runs once.
    """

    def __init__(self, high_water_mark: int = DEFAULT_HIGH_WATER_MARK):
        self.high_water_mark = high_water_mark
        self.ended = False
        self.destroyed = False
        self._buffer: Deque[bytes] = deque()
        self._buffered = 0
        self._readable = asyncio.Event()
        self._drained = asyncio.Event()
        self._drained.set()
        self._close_callbacks: List[Callable[[], None]] = []

    def write(self, chunk: bytes) -> bool:
        if self.ended or self.destroyed:
            raise StreamClosed()
        self._buffer.append(chunk)
        self._buffered += len(chunk)
        self._readable.set()
        if self._buffered >= self.high_water_mark:
            self._drained.clear()
            return False
        return True

    async def wait_drained(self) -> None:
        await self._drained.wait()

    def end(self) -> None:
        self.ended = True
        self._readable.set()

    def on_close(self, callback: Callable[[], None]) -> None:
        self._close_callbacks.append(callback)

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self._buffer.clear()
        self._buffered = 0
        # wake a writer parked on drain so it notices the stream is gone
        self._drained.set()
        self._readable.set()
        for callback in self._close_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("close callback failed")

    async def body(self) -> AsyncIterator[bytes]:
        try:
            while True:
                while self._buffer:
                    chunk = self._buffer.popleft()
                    yield chunk
                    self._buffered -= len(chunk)
                    if self._buffered <= 0:
                        self._buffered = 0
                        self._drained.set()
                if self.ended or self.destroyed:
                    return
                self._readable.clear()
                await self._readable.wait()
        finally:
            self.destroy()
