from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.errors import ConversationNotFound, InvalidInput
from chatstream.dto.conversation import ConversationRead
from chatstream.model.conversation import Conversation
from chatstream.repository.conversation_repository import ConversationRepository
from chatstream.utils.tbconstants import TBConstants


def _clean_title(title: Optional[str]) -> Optional[str]:
    if title is None:
        return None
    title = title.strip()
    if len(title) > TBConstants.MAX_TITLE_LENGTH:
        raise InvalidInput(
            f"Title must be {TBConstants.MAX_TITLE_LENGTH} characters or less"
        )
    return title or None


class ConversationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ConversationRepository(db)

    async def create_conversation(
        self, *, user_id: Optional[int], title: Optional[str] = None
    ) -> Conversation:
        return await self.repo.create_conversation(
            user_id=user_id,
            title=_clean_title(title) or TBConstants.DEFAULT_CONVERSATION_TITLE,
        )

    async def get_conversation(
        self, conversation_id: str, *, owner_id: Optional[int] = None
    ) -> Conversation:
        conv = await self.repo.get_conversation_by_id(conversation_id, owner_id=owner_id)
        if conv is None:
            raise ConversationNotFound()
        return conv

    async def list_conversations(
        self, *, owner_id: Optional[int] = None, offset: int = 0, limit: int = 20
    ) -> Dict[str, Any]:
        total = await self.repo.count_conversations(owner_id=owner_id)
        rows = await self.repo.list_conversations(
            owner_id=owner_id, offset=offset, limit=limit
        )
        return {
            "items": [ConversationRead.model_validate(c) for c in rows],
            "limit": limit,
            "offset": offset,
            "total": total,
        }

    async def rename_conversation(
        self, conversation_id: str, title: str, *, owner_id: Optional[int] = None
    ) -> Conversation:
        cleaned = _clean_title(title)
        if not cleaned:
            raise InvalidInput("Title is required and must be a string")
        conv = await self.repo.update_title(conversation_id, cleaned, owner_id=owner_id)
        if conv is None:
            raise ConversationNotFound()
        return conv

    async def delete_conversation(
        self, conversation_id: str, *, owner_id: Optional[int] = None
    ) -> None:
        # messages go with it through ON DELETE CASCADE
        if not await self.repo.delete_conversation(conversation_id, owner_id=owner_id):
            raise ConversationNotFound()
