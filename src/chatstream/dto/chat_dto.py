from pydantic import BaseModel
from typing import Any, Optional


# Body of POST /conversations/{id}/messages/stream; content and role are
# checked by ChatService so that bad input is reported before the stream opens
class StreamMessageRequest(BaseModel):
    content: Optional[str] = None
    role: Any = "user"
