from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from chatstream.core.config import settings


DB_URL = settings.database_url


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""

    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    DB_URL,
    echo=settings.debug,
    pool_pre_ping=True,
    future=True,
)
enable_sqlite_foreign_keys(engine)

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def make_session_factory(maker: async_sessionmaker[AsyncSession]) -> SessionFactory:
    @asynccontextmanager
    async def _factory() -> AsyncGenerator[AsyncSession, None]:
        async with maker() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    return _factory


session_factory = make_session_factory(SessionLocal)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db:
        yield db


async def create_all() -> None:
    # importing the models registers their tables; triggers ride on DDL events
    import chatstream.model.user  # noqa: F401
    import chatstream.model.conversation  # noqa: F401
    import chatstream.model.triggers  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
