from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt

from app.core.config import settings
from app.core.constants import RoleEnum


def create_access_token(user_id: str, role: RoleEnum = RoleEnum.USER, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a token shaped like the identity provider's. Used for local development and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user_id), "role": RoleEnum(role).value, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
