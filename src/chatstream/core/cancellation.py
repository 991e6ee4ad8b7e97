from __future__ import annotations

import asyncio
from typing import Optional

from chatstream.core.errors import AlreadyCancelled, Cancelled


class CancellationToken:
    """Cooperative cancellation flag shared by one stream session.

    Nothing is interrupted when the token fires; code that does long work
    checks it at its own checkpoints.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self, *, before_start: bool = False) -> None:
        if not self._event.is_set():
            return
        if before_start:
            raise AlreadyCancelled(self.reason)
        raise Cancelled(self.reason)

    async def wait(self) -> None:
        await self._event.wait()
