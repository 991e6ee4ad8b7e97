"""Database triggers keeping ``conversations.message_count`` and
``conversations.updated_at`` in step with the message log.

The application never writes either column; they are side effects of
inserting or deleting a message row.
"""

from sqlalchemy import DDL, event

from chatstream.model.message import Message

_PG_STATEMENTS = (
    """
    CREATE OR REPLACE FUNCTION increment_conversation_message_count() RETURNS TRIGGER AS $$
    BEGIN
        UPDATE conversations
        SET message_count = COALESCE(message_count, 0) + 1,
            updated_at = NOW()
        WHERE id = NEW.conversation_id;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE OR REPLACE FUNCTION decrement_conversation_message_count() RETURNS TRIGGER AS $$
    BEGIN
        UPDATE conversations
        SET message_count = GREATEST(COALESCE(message_count, 0) - 1, 0)
        WHERE id = OLD.conversation_id;
        RETURN OLD;
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE TRIGGER increment_message_count_after_insert
    AFTER INSERT ON messages
    FOR EACH ROW EXECUTE FUNCTION increment_conversation_message_count()
    """,
    """
    CREATE TRIGGER decrement_message_count_after_delete
    AFTER DELETE ON messages
    FOR EACH ROW EXECUTE FUNCTION decrement_conversation_message_count()
    """,
)

_SQLITE_STATEMENTS = (
    """
    CREATE TRIGGER IF NOT EXISTS increment_message_count_after_insert
    AFTER INSERT ON messages
    BEGIN
        UPDATE conversations
        SET message_count = COALESCE(message_count, 0) + 1,
            updated_at = strftime('%%Y-%%m-%%d %%H:%%M:%%f', 'now')
        WHERE id = NEW.conversation_id;
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS decrement_message_count_after_delete
    AFTER DELETE ON messages
    BEGIN
        UPDATE conversations
        SET message_count = MAX(COALESCE(message_count, 0) - 1, 0)
        WHERE id = OLD.conversation_id;
    END
    """,
)

for _stmt in _PG_STATEMENTS:
    event.listen(
        Message.__table__,
        "after_create",
        DDL(_stmt).execute_if(dialect="postgresql"),
    )

for _stmt in _SQLITE_STATEMENTS:
    event.listen(
        Message.__table__,
        "after_create",
        DDL(_stmt).execute_if(dialect="sqlite"),
    )
