from __future__ import annotations

import asyncio
import logging

from chatstream.core.errors import StreamClosed, TransportError, WriteFailed, WriteTimeout
from chatstream.dto.events import StreamEvent, encode_event
from chatstream.services.transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_WRITE_TIMEOUT = 5.0


class EventEmitter:
    """Writes stream events onto one transport, one at a time.

    A write that lands in the transport's backlog parks the caller until the
    transport drains, for at most ``write_timeout`` seconds. The lock keeps a
    second event from being written while an earlier one is still parked.
    """

    def __init__(self, transport: Transport, *, write_timeout: float = DEFAULT_WRITE_TIMEOUT):
        self.transport = transport
        self.write_timeout = write_timeout
        self._lock = asyncio.Lock()

    async def emit(self, event: StreamEvent) -> None:
        async with self._lock:
            if self.transport.ended or self.transport.destroyed:
                raise StreamClosed()

            frame = encode_event(event)
            try:
                flushed = self.transport.write(frame)
            except TransportError:
                raise
            except Exception as e:
                raise WriteFailed(str(e)) from e

            if flushed:
                return

            logger.debug("transport backlogged, waiting for drain")
            try:
                await asyncio.wait_for(
                    self.transport.wait_drained(), timeout=self.write_timeout
                )
            except asyncio.TimeoutError:
                raise WriteTimeout() from None

            if self.transport.destroyed:
                raise StreamClosed()
