from __future__ import annotations

import uuid
from typing import Optional, List

from sqlalchemy import select, desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.errors import PersistenceError
from chatstream.model.conversation import Conversation


class ConversationRepository:
    """Conversation rows, optionally scoped to one owner.

    ``owner_id`` of ``None`` means no ownership filter; callers pass the user id
    only while the identity gate is enforced.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped(self, q, owner_id: Optional[int]):
        if owner_id is not None:
            q = q.where(Conversation.user_id == owner_id)
        return q

    async def create_conversation(
        self,
        *,
        user_id: Optional[int],
        title: str,
    ) -> Conversation:
        conv = Conversation(id=str(uuid.uuid4()), user_id=user_id, title=title)
        try:
            self.db.add(conv)
            await self.db.flush()
            await self.db.refresh(conv)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to create conversation") from e
        return conv

    async def get_conversation_by_id(
        self, conversation_id: str, *, owner_id: Optional[int] = None
    ) -> Optional[Conversation]:
        q = self._scoped(
            select(Conversation).where(Conversation.id == conversation_id), owner_id
        )
        try:
            res = await self.db.execute(q)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to fetch conversation") from e
        return res.scalar_one_or_none()

    async def exists(
        self, conversation_id: str, *, owner_id: Optional[int] = None
    ) -> bool:
        q = self._scoped(
            select(Conversation.id).where(Conversation.id == conversation_id), owner_id
        )
        try:
            res = await self.db.execute(select(q.exists()))
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to fetch conversation") from e
        return bool(res.scalar())

    async def list_conversations(
        self,
        *,
        owner_id: Optional[int] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Conversation]:
        q = self._scoped(select(Conversation), owner_id)
        q = (
            q.order_by(desc(Conversation.updated_at), desc(Conversation.id))
            .offset(offset)
            .limit(limit)
        )
        try:
            res = await self.db.execute(q)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to fetch conversations") from e
        return list(res.scalars().all())

    async def count_conversations(self, *, owner_id: Optional[int] = None) -> int:
        q = self._scoped(select(func.count()).select_from(Conversation), owner_id)
        try:
            res = await self.db.execute(q)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to count conversations") from e
        return int(res.scalar() or 0)

    async def update_title(
        self, conversation_id: str, title: str, *, owner_id: Optional[int] = None
    ) -> Optional[Conversation]:
        conv = await self.get_conversation_by_id(conversation_id, owner_id=owner_id)
        if conv is None:
            return None
        conv.title = title
        try:
            await self.db.flush()
            await self.db.refresh(conv)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to update conversation") from e
        return conv

    async def delete_conversation(
        self, conversation_id: str, *, owner_id: Optional[int] = None
    ) -> bool:
        conv = await self.get_conversation_by_id(conversation_id, owner_id=owner_id)
        if conv is None:
            return False
        try:
            await self.db.delete(conv)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to delete conversation") from e
        return True
