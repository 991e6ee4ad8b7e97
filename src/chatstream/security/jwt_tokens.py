from typing import Any, Dict
from jose import jwt, JWTError
from chatstream.core.config import settings
from datetime import datetime, timedelta, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(sub: str) -> str:
    expire = _now() + timedelta(seconds=settings.access_expire_seconds)

    payload: Dict[str, Any] = {
        "sub": str(sub),
        "type": "access",
        "iat": int(_now().timestamp()),
        "exp": int(expire.timestamp()),
    }

    return jwt.encode(
        payload,
        settings.require_jwt_secret(),
        algorithm=settings.jwt_alg,
    )


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token, settings.require_jwt_secret(), algorithms=[settings.jwt_alg]
        )
    except JWTError as e:
        raise ValueError("invalid_token") from e
