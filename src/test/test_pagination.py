import pytest
from sqlalchemy.exc import OperationalError

from chatstream.core.errors import (
    ConversationNotFound,
    InvalidDirection,
    MalformedCursor,
    PersistenceError,
)
from chatstream.repository.conversation_repository import ConversationRepository
from chatstream.repository.message_repository import MessageRepository
from chatstream.repository.user_repository import UserRepository
from chatstream.services.message_service import MessageService, normalize_limit
from chatstream.utils.cursor import encode_cursor

from conftest import BASE_TIME, seed_messages

# m2 and m3 share a timestamp; the id breaks the tie
SEED = [
    ("m1", 0, "user", "one"),
    ("m2", 1, "assistant", "two"),
    ("m3", 1, "user", "three"),
    ("m4", 2, "assistant", "four"),
    ("m5", 3, "user", "five"),
]


def ids(page):
    return [m.id for m in page.messages]


def cursor_of(message):
    return encode_cursor(message.created_at, message.id)


@pytest.fixture
async def seeded(test_session_factory, conversation_id):
    await seed_messages(test_session_factory, conversation_id, SEED)
    return conversation_id


class TestNormalizeLimit:
    @pytest.mark.parametrize("raw", [None, 0, -5, "abc", "10abc", "", True, "1.5"])
    def test_falls_back_to_default(self, raw):
        assert normalize_limit(raw) == 50

    @pytest.mark.parametrize("raw, expected", [(1, 1), ("7", 7), (100, 100), (500, 100)])
    def test_clamps(self, raw, expected):
        assert normalize_limit(raw) == expected


class TestMessagePage:
    async def test_initial_page_is_newest_first(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            page = await MessageService(db).page(seeded, limit=2)
        assert ids(page) == ["m5", "m4"]
        assert page.has_more is True
        assert page.prev_cursor is None
        assert page.next_cursor == cursor_of(page.messages[-1])

    async def test_initial_page_smaller_than_limit(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            page = await MessageService(db).page(seeded, limit=10)
        assert ids(page) == ["m5", "m4", "m3", "m2", "m1"]
        assert page.has_more is False
        assert page.next_cursor is None
        assert page.prev_cursor is None

    async def test_limit_is_normalized(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            service = MessageService(db)
            assert (await service.page(seeded, limit=0)).limit == 50
            assert (await service.page(seeded, limit="abc")).limit == 50
            assert (await service.page(seeded, limit=500)).limit == 100

    async def test_walking_forward_has_no_gaps_or_duplicates(
        self, test_session_factory, seeded
    ):
        async with test_session_factory() as db:
            service = MessageService(db)
            oldest = (await service.page(seeded, limit=50)).messages[-1]
            assert oldest.id == "m1"

            seen = []
            cursor = cursor_of(oldest)
            while cursor:
                page = await service.page(
                    seeded, cursor=cursor, direction="after", limit=2
                )
                seen.extend(ids(page))
                cursor = page.next_cursor
        assert seen == ["m2", "m3", "m4", "m5"]

    async def test_walking_back_has_no_gaps_or_duplicates(
        self, test_session_factory, seeded
    ):
        async with test_session_factory() as db:
            service = MessageService(db)
            first = await service.page(seeded, limit=1)
            seen = ids(first)
            cursor = first.next_cursor
            while cursor:
                page = await service.page(
                    seeded, cursor=cursor, direction="before", limit=2
                )
                seen.extend(ids(page))
                cursor = page.next_cursor
        assert seen == ["m5", "m4", "m3", "m2", "m1"]

    async def test_before_then_after_returns_to_anchor(
        self, test_session_factory, seeded
    ):
        async with test_session_factory() as db:
            service = MessageService(db)
            rows = (await service.page(seeded, limit=50)).messages
            anchor = next(m for m in rows if m.id == "m4")

            older = await service.page(
                seeded, cursor=cursor_of(anchor), direction="before", limit=2
            )
            assert ids(older) == ["m3", "m2"]

            newer = await service.page(
                seeded, cursor=older.next_cursor, direction="after", limit=2
            )
        assert ids(newer) == ["m3", "m4"]

    async def test_cursor_row_is_excluded(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            service = MessageService(db)
            rows = (await service.page(seeded, limit=50)).messages
            m3 = next(m for m in rows if m.id == "m3")
            after = await service.page(seeded, cursor=cursor_of(m3), limit=50)
            before = await service.page(
                seeded, cursor=cursor_of(m3), direction="before", limit=50
            )
        assert ids(after) == ["m4", "m5"]
        assert ids(before) == ["m2", "m1"]

    async def test_partial_cursor_page(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            service = MessageService(db)
            m4 = next(
                m for m in (await service.page(seeded, limit=50)).messages if m.id == "m4"
            )
            page = await service.page(seeded, cursor=cursor_of(m4), limit=5)
        assert ids(page) == ["m5"]
        assert page.has_more is False
        assert page.next_cursor is None
        assert page.prev_cursor == cursor_of(page.messages[0])

    async def test_empty_cursor_page(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            service = MessageService(db)
            newest = (await service.page(seeded, limit=1)).messages[0]
            page = await service.page(seeded, cursor=cursor_of(newest), direction="after")
        assert page.messages == []
        assert page.has_more is False
        assert page.next_cursor is None
        assert page.prev_cursor is None

    async def test_empty_conversation(self, test_session_factory, conversation_id):
        async with test_session_factory() as db:
            page = await MessageService(db).page(conversation_id)
        assert page.messages == []
        assert page.limit == 50
        assert page.has_more is False


class TestMessagePageErrors:
    async def test_invalid_direction(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            with pytest.raises(InvalidDirection):
                await MessageService(db).page(seeded, direction="sideways")

    async def test_direction_checked_before_existence(self, test_session_factory):
        async with test_session_factory() as db:
            with pytest.raises(InvalidDirection):
                await MessageService(db).page("missing", direction="up")

    async def test_unknown_conversation(self, test_session_factory):
        async with test_session_factory() as db:
            with pytest.raises(ConversationNotFound):
                await MessageService(db).page("missing")

    async def test_malformed_cursor(self, test_session_factory, seeded):
        async with test_session_factory() as db:
            with pytest.raises(MalformedCursor):
                await MessageService(db).page(seeded, cursor="garbage")

    async def test_other_owner_sees_not_found(self, test_session_factory):
        async with test_session_factory() as db:
            users = UserRepository(db)
            alice = await users.create_basic_user(
                username="alice", email="alice@example.com", password_hash="x"
            )
            bob = await users.create_basic_user(
                username="bob", email="bob@example.com", password_hash="x"
            )
            conv = await ConversationRepository(db).create_conversation(
                user_id=alice.id, title="private"
            )

        async with test_session_factory() as db:
            service = MessageService(db)
            assert (await service.page(conv.id, owner_id=alice.id)).messages == []
            with pytest.raises(ConversationNotFound):
                await service.page(conv.id, owner_id=bob.id)


class TestMessageRepositoryErrors:
    async def test_store_failure_becomes_persistence_error(
        self, test_session_factory, seeded, monkeypatch
    ):
        async with test_session_factory() as db:

            async def broken_execute(*args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

            monkeypatch.setattr(db, "execute", broken_execute)
            repo = MessageRepository(db)
            with pytest.raises(PersistenceError):
                await repo.latest(seeded, limit=10)
            with pytest.raises(PersistenceError):
                await repo.after(seeded, BASE_TIME, "m1", limit=10)

    async def test_page_surfaces_store_failure(
        self, test_session_factory, seeded, monkeypatch
    ):
        async def broken_latest(self, conversation_id, *, limit):
            raise PersistenceError("Failed to fetch messages")

        monkeypatch.setattr(MessageRepository, "latest", broken_latest)
        async with test_session_factory() as db:
            with pytest.raises(PersistenceError) as exc:
                await MessageService(db).page(seeded)
        assert exc.value.status_code == 503
