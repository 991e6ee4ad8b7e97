"""Shared fixtures: in-memory database, fake generation provider, recording transport."""

import json
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from pydantic import SecretStr  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import chatstream.model.triggers  # noqa: E402,F401
from chatstream.ai.configuration import GenerationConfig  # noqa: E402
from chatstream.core.db import (  # noqa: E402
    Base,
    enable_sqlite_foreign_keys,
    make_session_factory,
)
from chatstream.core.errors import StreamClosed  # noqa: E402
from chatstream.repository.conversation_repository import ConversationRepository  # noqa: E402
from chatstream.repository.message_repository import MessageRepository  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
BASE_TIME = datetime(2025, 10, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
def test_session_factory(session_maker):
    return make_session_factory(session_maker)


@pytest.fixture
async def conversation_id(test_session_factory):
    async with test_session_factory() as db:
        conv = await ConversationRepository(db).create_conversation(
            user_id=None, title="Test chat"
        )
    return conv.id


async def seed_messages(session_factory, conversation_id, rows):
    """Insert ``(message_id, seconds_after_base, role, content)`` rows."""
    async with session_factory() as db:
        repo = MessageRepository(db)
        for message_id, offset, role, content in rows:
            await repo.add_message(
                conversation_id=conversation_id,
                role=role,
                content=content,
                created_at=BASE_TIME + timedelta(seconds=offset),
                message_id=message_id,
            )


async def fetch_messages(session_factory, conversation_id):
    """All messages of a conversation, oldest first."""
    async with session_factory() as db:
        rows = await MessageRepository(db).latest(conversation_id, limit=1000)
    rows.reverse()
    return rows


@pytest.fixture
def generation_config():
    return GenerationConfig(
        model="openai/gpt-4o-mini",
        system_prompt=None,
        openai_api_key=SecretStr("sk-test"),
    )


class FakeProvider:
    """Yields fixed increments, then optionally raises.

    ``after_yield(index)`` runs when the consumer asks for the increment after
    ``index``, which is where a test can simulate a client disconnect.
    """

    def __init__(self, tokens, *, error=None, after_yield=None):
        self.tokens = list(tokens)
        self.error = error
        self.after_yield = after_yield
        self.calls = []
        self.closed = False

    async def open_stream(self, messages):
        self.calls.append(messages)
        try:
            for index, token in enumerate(self.tokens):
                yield token
                if self.after_yield is not None:
                    self.after_yield(index)
            if self.error is not None:
                raise self.error
        except GeneratorExit:
            self.closed = True
            raise


class FakeStatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"provider returned {status_code}")
        self.status_code = status_code


class RecordingTransport:
    """Transport double that flushes every write and keeps the frames."""

    def __init__(self):
        self.frames = []
        self.ended = False
        self.destroyed = False
        self._callbacks = []

    def write(self, chunk):
        if self.ended or self.destroyed:
            raise StreamClosed()
        self.frames.append(chunk)
        return True

    async def wait_drained(self):
        return None

    def end(self):
        self.ended = True

    def on_close(self, callback):
        self._callbacks.append(callback)

    def destroy(self):
        if self.destroyed:
            return
        self.destroyed = True
        for callback in self._callbacks:
            callback()

    async def body(self):
        for frame in self.frames:
            yield frame

    def events(self):
        return parse_frames(b"".join(self.frames).decode("utf-8"))


def parse_frames(text):
    events = []
    for block in text.split("\n\n"):
        block = block.strip()
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: "):]))
    return events
