from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from chatstream.utils.tbconstants import TBConstants


class ConversationCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=TBConstants.MAX_TITLE_LENGTH)


class ConversationUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=TBConstants.MAX_TITLE_LENGTH)


class ConversationRead(BaseModel):
    id: str
    title: str
    message_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationEnvelope(BaseModel):
    conversation: ConversationRead


# List conversations
class ConversationListResponse(BaseModel):
    items: List[ConversationRead]
    limit: int
    offset: int
    total: int


class DeletedResponse(BaseModel):
    message: str
