from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class MessageCreate(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class MessageRead(BaseModel):
    id: str
    conversation_id: str
    role: Literal["user", "assistant", "system"]
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageEnvelope(BaseModel):
    message: MessageRead


class PaginationInfo(BaseModel):
    limit: int
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None
    has_more: bool


class MessagePageResponse(BaseModel):
    messages: List[MessageRead] = Field(default_factory=list)
    pagination: PaginationInfo
