from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.db import get_db
from chatstream.dto.conversation import (
    ConversationCreate,
    ConversationEnvelope,
    ConversationListResponse,
    ConversationRead,
    ConversationUpdate,
    DeletedResponse,
)
from chatstream.security.deps import CurrentUser, get_request_user, owner_scope
from chatstream.services.conversation_service import ConversationService

router = APIRouter(prefix="/conversations", tags=["conversation"])


@router.get("", response_model=ConversationListResponse)
async def list_conversations_endpoint(
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    service = ConversationService(db)
    return await service.list_conversations(
        owner_id=owner_scope(current_user),
        offset=offset,
        limit=limit,
    )


@router.post("", response_model=ConversationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_conversation_endpoint(
    payload: ConversationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    service = ConversationService(db)
    conv = await service.create_conversation(
        user_id=current_user.id if current_user else None,
        title=payload.title,
    )
    return ConversationEnvelope(conversation=ConversationRead.model_validate(conv))


@router.get("/{conversation_id}", response_model=ConversationEnvelope)
async def get_conversation_endpoint(
    conversation_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    conv = await ConversationService(db).get_conversation(
        conversation_id, owner_id=owner_scope(current_user)
    )
    return ConversationEnvelope(conversation=ConversationRead.model_validate(conv))


@router.patch("/{conversation_id}", response_model=ConversationEnvelope)
async def update_conversation_endpoint(
    conversation_id: str,
    payload: ConversationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    conv = await ConversationService(db).rename_conversation(
        conversation_id, payload.title, owner_id=owner_scope(current_user)
    )
    return ConversationEnvelope(conversation=ConversationRead.model_validate(conv))


@router.delete("/{conversation_id}", response_model=DeletedResponse)
async def delete_conversation_endpoint(
    conversation_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_request_user),
):
    await ConversationService(db).delete_conversation(
        conversation_id, owner_id=owner_scope(current_user)
    )
    return DeletedResponse(message="Conversation deleted successfully")
