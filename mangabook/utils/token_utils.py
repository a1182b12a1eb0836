import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from mangabook.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from mangabook.database import get_async_session
from mangabook.models.user_model import User

logger = logging.getLogger(__name__)

token_header = APIKeyHeader(name="x-auth-token", auto_error=False)


def _get_secret_key() -> str:
    if not SECRET_KEY:
        # Fail fast with a clear message instead of a generic 500
        raise RuntimeError("SECRET_KEY is not configured in the backend environment")
    if len(SECRET_KEY) < 32:
        raise RuntimeError("SECRET_KEY is too short; use at least 32 characters")
    return SECRET_KEY


def create_access_token(user: User, issued_at: Optional[datetime] = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "id": user.id,          # what authenticate() resolves
        "sub": user.username,   # helpful for auditing/logs
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    try:
        return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)
    except JWTError as e:
        raise RuntimeError(f"JWT encode failed: {e}")


def authenticate(token: Optional[str]) -> int:
    """Verify signature and expiry; return the user id the token was issued to."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token",
    )
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")
    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info("[auth] token rejected: %s", e)
        raise credentials_exception

    user_id = payload.get("id")
    if user_id is None:
        raise credentials_exception
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise credentials_exception


def read_token(request: Request, header_token: Optional[str]) -> Optional[str]:
    if header_token:
        return header_token.strip()
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return None


async def get_current_user(
    request: Request,
    header_token: Optional[str] = Depends(token_header),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    user_id = authenticate(read_token(request, header_token))

    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user
