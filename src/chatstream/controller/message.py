from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from chatstream.ai.configuration import GenerationConfig
from chatstream.core.config import settings
from chatstream.core.db import get_db, session_factory
from chatstream.dto.chat_dto import StreamMessageRequest
from chatstream.dto.conversation import DeletedResponse
from chatstream.dto.message import (
    MessageCreate,
    MessageEnvelope,
    MessagePageResponse,
    MessageRead,
    PaginationInfo,
)
from chatstream.security.deps import CurrentUser, get_request_user, owner_scope
from chatstream.services.chat_service import ChatService
from chatstream.services.generation import ChatModelProvider, GenerationAdapter
from chatstream.services.message_service import MessageService

router = APIRouter(prefix="/conversations/{conversation_id}/messages", tags=["message"])

SSE_HEADERS = {"Cache-Control": "no-cache"}


def get_chat_service() -> ChatService:
    config = GenerationConfig.from_settings(settings)
    return ChatService(
        session_factory,
        GenerationAdapter(ChatModelProvider(config), config),
        history_window=settings.history_window,
        write_timeout=settings.stream_write_timeout,
    )


@router.get("", response_model=MessagePageResponse)
async def list_messages(
    conversation_id: str,
    limit: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None),
    direction: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    """Keyset-paginated history.

    1. Initial: no cursor, newest ``limit`` messages newest first; reverse for display.
    2. Older: ``cursor=<prev_cursor>&direction=before``, prepend reversed results.
    3. Newer: ``cursor=<next_cursor>&direction=after``, append results.
    """
    page = await MessageService(db).page(
        conversation_id,
        cursor=cursor,
        direction=direction,
        limit=limit,
        owner_id=owner_scope(current_user),
    )
    return MessagePageResponse(
        messages=[MessageRead.model_validate(m) for m in page.messages],
        pagination=PaginationInfo(
            limit=page.limit,
            next_cursor=page.next_cursor,
            prev_cursor=page.prev_cursor,
            has_more=page.has_more,
        ),
    )


@router.post("", response_model=MessageEnvelope, status_code=status.HTTP_201_CREATED)
async def create_message(
    conversation_id: str,
    payload: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    msg = await MessageService(db).create_message(
        conversation_id,
        role=payload.role,
        content=payload.content,
        owner_id=owner_scope(current_user),
    )
    return MessageEnvelope(message=MessageRead.model_validate(msg))


@router.post("/stream")
async def stream_message(
    conversation_id: str,
    payload: StreamMessageRequest,
    current_user: Optional[CurrentUser] = Depends(get_request_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Send a user message and stream the assistant reply as server-sent events.

    Events: ``token`` (one increment), ``done`` (a message was stored; sent
    for the user message and again for the assistant reply) and ``error``.
    """
    session = await chat_service.open_session(
        conversation_id,
        payload.content,
        role=payload.role,
        owner_id=owner_scope(current_user),
    )
    return EventSourceResponse(
        chat_service.stream(session),
        headers=SSE_HEADERS,
        ping=settings.stream_ping_seconds,
        sep="\n",
    )


@router.delete("/{message_id}", response_model=DeletedResponse)
async def delete_message(
    conversation_id: str,
    message_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    await MessageService(db).delete_message(
        conversation_id, message_id, owner_id=owner_scope(current_user)
    )
    return DeletedResponse(message="Message deleted successfully")
