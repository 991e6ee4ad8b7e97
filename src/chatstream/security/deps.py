from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from chatstream.core.config import settings
from chatstream.core.db import get_db
from chatstream.repository.user_repository import UserRepository
from chatstream.security.jwt_tokens import decode_token

oauth2 = OAuth2PasswordBearer(tokenUrl="/auth/signin", auto_error=False)


class CurrentUser:
    id: int
    username: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status.HTTP_401_UNAUTHORIZED,
        detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Optional[str] = Depends(oauth2), db: AsyncSession = Depends(get_db)
) -> CurrentUser:
    if not token:
        raise _unauthorized("Missing or invalid Authorization header")

    try:
        payload = decode_token(token)
    except ValueError:
        raise _unauthorized("Invalid token")

    if payload.get("type") != "access":
        raise _unauthorized("Wrong token type")

    user_id = payload.get("sub")
    if not user_id or not str(user_id).isdigit():
        raise _unauthorized("Bad token payload")

    user = await UserRepository(db).get_by_id(int(user_id))
    if not user or not getattr(user, "is_active", True):
        raise _unauthorized("User not active")

    cu = CurrentUser()
    cu.id = int(user_id)
    cu.username = user.username
    return cu


async def get_request_user(
    token: Optional[str] = Depends(oauth2), db: AsyncSession = Depends(get_db)
) -> Optional[CurrentUser]:
    """Identity gate for conversation routes.

    With AUTH_REQUIRED on this is ``get_current_user``. With it off, callers
    may be anonymous and a bad token is treated as no token.
    """
    if settings.auth_required:
        return await get_current_user(token, db)
    if not token:
        return None
    try:
        return await get_current_user(token, db)
    except HTTPException:
        return None


def owner_scope(user: Optional[CurrentUser]) -> Optional[int]:
    """User id to filter conversations by, or None when ownership is not enforced."""
    if settings.auth_required and user is not None:
        return user.id
    return None
