from __future__ import annotations
from enum import Enum
from typing import Final


class MESSAGE_ROLE(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class DIRECTION(str, Enum):
    AFTER = "after"
    BEFORE = "before"


class TBConstants:
    MAX_CONTENT_LENGTH: Final[int] = 10_000
    DEFAULT_PAGE_LIMIT: Final[int] = 50
    MAX_PAGE_LIMIT: Final[int] = 100
    DEFAULT_CONVERSATION_TITLE: Final[str] = "New Chat"
    MAX_TITLE_LENGTH: Final[int] = 100
