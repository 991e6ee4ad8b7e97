from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.errors import ConflictError
from chatstream.dto.user import UserLogin, UserRegister
from chatstream.model.user import User
from chatstream.repository.user_repository import UserRepository
from chatstream.security.password import PasswordHandler


class UserService:
    def __init__(
        self,
        db: AsyncSession,
        pwd_handler: Optional[PasswordHandler] = None,
    ):
        self.db = db
        self.repo = UserRepository(db)
        self.pwd_handler = pwd_handler or PasswordHandler()

    async def authenticate_user(self, login_data: UserLogin) -> Optional[User]:
        user = await self.repo.get_by_username(login_data.username)
        if not user or not user.is_active:
            return None

        if not self.pwd_handler.verify_password(
            login_data.password, user.password_hash
        ):
            return None
        return user

    async def register(self, dto: UserRegister) -> User:
        if await self.repo.exists_username(
            dto.username
        ) or await self.repo.exists_email(dto.email.lower()):
            raise ConflictError("Username/Email exists")

        return await self.repo.create_basic_user(
            username=dto.username,
            email=dto.email,
            password_hash=self.pwd_handler.hash_password(dto.password),
        )
