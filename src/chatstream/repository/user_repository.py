from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.errors import PersistenceError
from chatstream.model.user import User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: int) -> Optional[User]:
        res = await self.db.execute(select(User).where(User.id == user_id))
        return res.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        res = await self.db.execute(select(User).where(User.username == username))
        return res.scalar_one_or_none()

    async def exists_username(self, username: str) -> bool:
        stmt = select(select(User.id).where(User.username == username).exists())
        return bool((await self.db.execute(stmt)).scalar())

    async def exists_email(self, email: str) -> bool:
        stmt = select(select(User.id).where(User.email == email).exists())
        return bool((await self.db.execute(stmt)).scalar())

    async def create_basic_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
    ) -> User:
        user = User(
            username=username.strip(),
            email=email.lower().strip(),
            is_active=True,
            password_hash=password_hash,
        )
        try:
            self.db.add(user)
            await self.db.flush()
            await self.db.refresh(user)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to create user") from e
        return user
