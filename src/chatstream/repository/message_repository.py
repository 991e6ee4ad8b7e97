from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.errors import PersistenceError
from chatstream.model.message import Message


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRepository:
    """Point and range operations on the append-only message log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_message(
        self,
        *,
        conversation_id: str,
        role: str,  # "user" | "assistant" | "system"
        content: str,
        created_at: Optional[datetime] = None,
        message_id: Optional[str] = None,
    ) -> Message:
        msg = Message(
            id=message_id or str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=created_at or _now(),
        )
        try:
            self.db.add(msg)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to save message") from e
        return msg

    async def delete_message(self, conversation_id: str, message_id: str) -> bool:
        try:
            res = await self.db.execute(
                delete(Message).where(
                    Message.id == message_id,
                    Message.conversation_id == conversation_id,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to delete message") from e
        return (res.rowcount or 0) > 0

    # ---------- keyset range scans ----------
    async def latest(self, conversation_id: str, *, limit: int) -> List[Message]:
        q = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return await self._fetch(q)

    async def after(
        self,
        conversation_id: str,
        created_at: datetime,
        message_id: str,
        *,
        limit: int,
    ) -> List[Message]:
        # (created_at, id) > (cursor) spelled out for backends without row values
        q = (
            select(Message)
            .where(
                Message.conversation_id == conversation_id,
                or_(
                    Message.created_at > created_at,
                    and_(Message.created_at == created_at, Message.id > message_id),
                ),
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
            .limit(limit)
        )
        return await self._fetch(q)

    async def before(
        self,
        conversation_id: str,
        created_at: datetime,
        message_id: str,
        *,
        limit: int,
    ) -> List[Message]:
        q = (
            select(Message)
            .where(
                Message.conversation_id == conversation_id,
                or_(
                    Message.created_at < created_at,
                    and_(Message.created_at == created_at, Message.id < message_id),
                ),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return await self._fetch(q)

    async def _fetch(self, q) -> List[Message]:
        try:
            res = await self.db.execute(q)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to fetch messages") from e
        return list(res.scalars().all())
