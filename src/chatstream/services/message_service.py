from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.errors import (
    ConversationNotFound,
    InvalidDirection,
    InvalidInput,
    MessageNotFound,
)
from chatstream.model.message import Message
from chatstream.repository.conversation_repository import ConversationRepository
from chatstream.repository.message_repository import MessageRepository
from chatstream.utils.cursor import decode_cursor, encode_cursor
from chatstream.utils.tbconstants import DIRECTION, MESSAGE_ROLE, TBConstants


@dataclass
class MessagePage:
    limit: int
    messages: List[Message] = field(default_factory=list)
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None
    has_more: bool = False


def normalize_limit(raw: Any) -> int:
    """Out-of-range or unparseable limits fall back to the default instead of failing."""
    if raw is None or isinstance(raw, bool):
        return TBConstants.DEFAULT_PAGE_LIMIT
    try:
        value = int(str(raw).strip())
    except ValueError:
        return TBConstants.DEFAULT_PAGE_LIMIT
    if value <= 0:
        return TBConstants.DEFAULT_PAGE_LIMIT
    return min(value, TBConstants.MAX_PAGE_LIMIT)


def normalize_direction(raw: Optional[str]) -> DIRECTION:
    if not raw:
        return DIRECTION.AFTER
    try:
        return DIRECTION(raw)
    except ValueError:
        raise InvalidDirection() from None


def validate_content(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InvalidInput("content must be a non-empty string")
    if len(content) > TBConstants.MAX_CONTENT_LENGTH:
        raise InvalidInput(
            f"content must be {TBConstants.MAX_CONTENT_LENGTH:,} characters or less"
        )
    return content


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.messages = MessageRepository(db)
        self.conversations = ConversationRepository(db)

    async def _require_conversation(
        self, conversation_id: str, owner_id: Optional[int]
    ) -> None:
        if not await self.conversations.exists(conversation_id, owner_id=owner_id):
            raise ConversationNotFound()

    async def page(
        self,
        conversation_id: str,
        *,
        cursor: Optional[str] = None,
        direction: Optional[str] = None,
        limit: Any = None,
        owner_id: Optional[int] = None,
    ) -> MessagePage:
        """Keyset page over ``(created_at, id)``.

        Without a cursor the newest ``limit`` messages come back newest first;
        callers reverse them for display. With a cursor, ``after`` walks
        forward in ascending order and ``before`` walks back in descending
        order, both strictly excluding the cursor row.
        """
        size = normalize_limit(limit)
        way = normalize_direction(direction)
        await self._require_conversation(conversation_id, owner_id)

        if not cursor:
            rows = await self.messages.latest(conversation_id, limit=size)
        else:
            position = decode_cursor(cursor)
            fetch = (
                self.messages.after if way is DIRECTION.AFTER else self.messages.before
            )
            rows = await fetch(
                conversation_id, position.created_at, position.id, limit=size
            )

        page = MessagePage(limit=size, messages=rows)
        if rows:
            full = len(rows) == size
            page.has_more = full
            if full:
                last = rows[-1]
                page.next_cursor = encode_cursor(last.created_at, last.id)
            if cursor:
                first = rows[0]
                page.prev_cursor = encode_cursor(first.created_at, first.id)
        return page

    async def history_before(
        self,
        conversation_id: str,
        created_at: datetime,
        message_id: str,
        *,
        limit: int,
    ) -> List[Message]:
        """Up to ``limit`` turns preceding a message, oldest first."""
        if limit <= 0:
            return []
        rows = await self.messages.before(
            conversation_id, created_at, message_id, limit=limit
        )
        rows.reverse()
        return rows

    async def create_message(
        self,
        conversation_id: str,
        *,
        role: str,
        content: Any,
        owner_id: Optional[int] = None,
    ) -> Message:
        validate_content(content)
        if role not in {r.value for r in MESSAGE_ROLE}:
            raise InvalidInput("role must be 'user', 'assistant', or 'system'")
        await self._require_conversation(conversation_id, owner_id)
        return await self.messages.add_message(
            conversation_id=conversation_id, role=role, content=content.strip()
        )

    async def delete_message(
        self,
        conversation_id: str,
        message_id: str,
        *,
        owner_id: Optional[int] = None,
    ) -> None:
        await self._require_conversation(conversation_id, owner_id)
        if not await self.messages.delete_message(conversation_id, message_id):
            raise MessageNotFound()
