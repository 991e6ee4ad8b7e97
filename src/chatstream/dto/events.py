from typing import Literal, Union
from pydantic import BaseModel, ConfigDict, Field


class TokenEvent(BaseModel):
    type: Literal["token"] = "token"
    content: str


class DoneEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["done"] = "done"
    message_id: str = Field(alias="messageId")


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Union[TokenEvent, DoneEvent, ErrorEvent]


def encode_event(event: StreamEvent) -> bytes:
    """One SSE frame: ``data: <json>`` followed by a blank line."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n".encode("utf-8")
