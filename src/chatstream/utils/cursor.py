"""Opaque keyset cursors of the form ``<created_at>_<id>``.

``created_at`` is always written in UTC with a fixed microsecond precision
and a ``Z`` suffix, so the rendered timestamp never contains the ``_``
separator and sorts lexically in chronological order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import NamedTuple

from chatstream.core.errors import MalformedCursor

SEPARATOR = "_"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class CursorPosition(NamedTuple):
    created_at: datetime
    id: str


def format_timestamp(value: datetime) -> str:
    # naive values come back from SQLite and are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def encode_cursor(created_at: datetime, message_id: str) -> str:
    message_id = str(message_id)
    if not message_id or SEPARATOR in message_id:
        raise ValueError(f"message id {message_id!r} cannot be used in a cursor")
    return f"{format_timestamp(created_at)}{SEPARATOR}{message_id}"


def decode_cursor(cursor: str) -> CursorPosition:
    parts = cursor.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedCursor()

    raw_ts, message_id = parts
    try:
        created_at = datetime.strptime(raw_ts, TIMESTAMP_FORMAT)
    except ValueError:
        raise MalformedCursor() from None

    return CursorPosition(created_at.replace(tzinfo=timezone.utc), message_id)
