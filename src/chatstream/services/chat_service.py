# chatstream/services/chat_service.py
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from chatstream.ai.utils import Turn
from chatstream.core.cancellation import CancellationToken
from chatstream.core.db import SessionFactory
from chatstream.core.errors import (
    Cancelled,
    ConversationNotFound,
    InvalidInput,
    PersistenceError,
    ProviderError,
    TransportError,
)
from chatstream.dto.events import DoneEvent, ErrorEvent, StreamEvent, TokenEvent
from chatstream.model.message import Message
from chatstream.repository.conversation_repository import ConversationRepository
from chatstream.repository.message_repository import MessageRepository
from chatstream.services.event_emitter import DEFAULT_WRITE_TIMEOUT, EventEmitter
from chatstream.services.generation import GenerationAdapter
from chatstream.services.message_service import MessageService, validate_content
from chatstream.services.transport import SSETransport, Transport
from chatstream.utils.tbconstants import MESSAGE_ROLE

logger = logging.getLogger(__name__)

# strong references so running sessions are not garbage collected mid-stream
_running_sessions: Set[asyncio.Task] = set()


class StreamPhase(str, Enum):
    VALIDATING = "validating"
    CONVERSATION_CHECK = "conversation_check"
    PERSIST_USER_MESSAGE = "persist_user_message"
    STREAMING = "streaming"
    PERSIST_ASSISTANT_MESSAGE = "persist_assistant_message"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class StreamSession:
    conversation_id: str
    content: str
    transport: Transport
    emitter: EventEmitter
    token: CancellationToken = field(default_factory=CancellationToken)
    accumulated_text: str = ""
    phase: StreamPhase = StreamPhase.VALIDATING


class ChatService:
    """Drives one streamed exchange: save the prompt, stream the reply, save the reply.

    ``open_session`` does everything that may still be answered with a plain
    HTTP status (bad input, unknown conversation). Once it returns, the
    exchange is an event stream and every later failure is reported in-band
    as an ``error`` event.

    The user message is stored before generation starts. The assistant
    message is stored only after the provider finished cleanly; a cancelled
    or failed generation leaves nothing behind.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        adapter: GenerationAdapter,
        *,
        history_window: int = 20,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        transport_factory: Callable[[], Transport] = SSETransport,
    ):
        self.session_factory = session_factory
        self.adapter = adapter
        self.history_window = history_window
        self.write_timeout = write_timeout
        self.transport_factory = transport_factory

    # ---------- before the stream opens ----------
    async def open_session(
        self,
        conversation_id: str,
        content: Any,
        *,
        role: Any = MESSAGE_ROLE.USER.value,
        owner_id: Optional[int] = None,
    ) -> StreamSession:
        content = validate_content(content)
        if role != MESSAGE_ROLE.USER.value:
            raise InvalidInput("role must be 'user' for streamed messages")

        async with self.session_factory() as db:
            found = await ConversationRepository(db).exists(
                conversation_id, owner_id=owner_id
            )
        if not found:
            raise ConversationNotFound()

        transport = self.transport_factory()
        session = StreamSession(
            conversation_id=conversation_id,
            content=content,
            transport=transport,
            emitter=EventEmitter(transport, write_timeout=self.write_timeout),
            phase=StreamPhase.CONVERSATION_CHECK,
        )
        transport.on_close(lambda: self._on_disconnect(session))
        return session

    def _on_disconnect(self, session: StreamSession) -> None:
        if session.transport.ended:
            return
        logger.info(
            "[SSE] Client disconnected from conversation %s", session.conversation_id
        )
        session.token.cancel("client disconnected")

    # ---------- the stream ----------
    async def stream(self, session: StreamSession) -> AsyncIterator[bytes]:
        """Response body for an opened session; runs the pipeline alongside it."""
        task = asyncio.create_task(self.run(session))
        _running_sessions.add(task)
        task.add_done_callback(_running_sessions.discard)
        try:
            async for chunk in session.transport.body():
                yield chunk
        finally:
            session.transport.destroy()

    async def run(self, session: StreamSession) -> None:
        cid = session.conversation_id
        try:
            await self._run_phases(session)
        except Cancelled:
            session.phase = StreamPhase.ABORTED
            session.accumulated_text = ""
            logger.info("[SSE] Generation aborted for conversation %s", cid)
        except TransportError as e:
            session.phase = StreamPhase.ABORTED
            session.token.cancel("transport failure")
            logger.warning("[SSE] Stream for conversation %s stopped: %s", cid, e)
            with suppress(TransportError):
                await session.emitter.emit(ErrorEvent(error="Internal server error"))
        except Exception:
            session.phase = StreamPhase.FAILED
            session.token.cancel("internal error")
            logger.exception("[SSE] Unhandled error in conversation %s", cid)
            with suppress(TransportError):
                await session.emitter.emit(ErrorEvent(error="Internal server error"))
        finally:
            session.transport.end()

    async def _run_phases(self, session: StreamSession) -> None:
        cid = session.conversation_id
        emit = session.emitter.emit

        session.phase = StreamPhase.PERSIST_USER_MESSAGE
        try:
            user_msg = await self._save_message(cid, MESSAGE_ROLE.USER, session.content)
        except PersistenceError:
            logger.exception("[SSE] Failed to save user message in %s", cid)
            session.phase = StreamPhase.FAILED
            await emit(ErrorEvent(error="Failed to save user message"))
            return
        await emit(DoneEvent(message_id=user_msg.id))

        history = await self._load_history(cid, user_msg)

        session.phase = StreamPhase.STREAMING

        async def _forward(event: StreamEvent) -> None:
            if isinstance(event, TokenEvent):
                session.accumulated_text += event.content
            await emit(event)

        try:
            text = await self.adapter.generate(
                session.content, history, session.token, _forward
            )
        except ProviderError as e:
            logger.error(
                "[SSE] AI streaming error in %s: %s (%s)", cid, e.detail, e.kind.value
            )
            session.phase = StreamPhase.FAILED
            await emit(ErrorEvent(error=e.user_message))
            return

        session.phase = StreamPhase.PERSIST_ASSISTANT_MESSAGE
        try:
            assistant_msg = await self._save_message(cid, MESSAGE_ROLE.ASSISTANT, text)
        except PersistenceError:
            logger.exception("[SSE] Failed to save AI response in %s", cid)
            session.phase = StreamPhase.FAILED
            await emit(ErrorEvent(error="Failed to save AI response"))
            return

        session.phase = StreamPhase.DONE
        await emit(DoneEvent(message_id=assistant_msg.id))

    # ---------- store access, one short transaction per call ----------
    async def _save_message(
        self, conversation_id: str, role: MESSAGE_ROLE, content: str
    ) -> Message:
        try:
            async with self.session_factory() as db:
                msg = await MessageRepository(db).add_message(
                    conversation_id=conversation_id, role=role.value, content=content
                )
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to save message") from e
        return msg

    async def _load_history(self, conversation_id: str, anchor: Message) -> List[Turn]:
        if self.history_window <= 0:
            return []
        try:
            async with self.session_factory() as db:
                rows = await MessageService(db).history_before(
                    conversation_id,
                    anchor.created_at,
                    anchor.id,
                    limit=self.history_window,
                )
        except (PersistenceError, SQLAlchemyError):
            logger.warning(
                "[SSE] Could not load history for %s, continuing without it",
                conversation_id,
                exc_info=True,
            )
            return []
        return [(m.role, m.content) for m in rows]
