import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from mangabook.config import AUTH_RATE_LIMIT
from mangabook.database import get_async_session
from mangabook.deps.auth import require_active_user
from mangabook.limiter import limiter
from mangabook.models.manga_list import MangaList
from mangabook.models.user_model import User
from mangabook.schemas.user_schemas import (
    AuthResponse,
    PasswordReset,
    PreferencesUpdate,
    UserLogin,
    UserRegister,
)
from mangabook.services.list_documents import default_categories, touch_document
from mangabook.utils.password_utils import hash_secret, verify_secret
from mangabook.utils.token_utils import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

NULLABLE_PREFERENCES = {"display_name"}


async def find_user(db: AsyncSession, email_or_username: str) -> Optional[User]:
    """Case-insensitive lookup on either email or username."""
    needle = email_or_username.strip().lower()
    result = await db.execute(
        select(User).where(
            or_(func.lower(User.email) == needle, func.lower(User.username) == needle)
        )
    )
    return result.scalars().first()


async def find_conflicts(db: AsyncSession, username: str, email: str) -> List[User]:
    """Users already holding this username or email, in one round-trip."""
    result = await db.execute(
        select(User).where(
            (func.lower(User.username) == username) | (func.lower(User.email) == email)
        )
    )
    return result.scalars().all()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
async def register(request: Request, payload: UserRegister, db: AsyncSession = Depends(get_async_session)):
    username_norm = payload.username.lower()
    email_norm = payload.email  # already stripped + lowercased by the schema

    existing = await find_conflicts(db, username_norm, email_norm)

    if any((u.email or "").lower() == email_norm for u in existing):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    if any(u.username.lower() == username_norm for u in existing):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    new_user = User(
        username=username_norm,
        email=email_norm,
        password=hash_secret(payload.password),
        recovery_keyword=hash_secret(payload.security_word),
        display_name=payload.username,
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent registration took the name or email after the check above
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email or username already registered")
    logger.info("[auth] registered user id=%s", new_user.id)

    token = create_access_token(new_user)
    user_out = new_user.to_safe_dict()
    user_id = new_user.id

    # Second write, not in the same transaction as the user. If it fails,
    # GET /list creates the defaults on first access.
    try:
        manga_list = MangaList(user_id=user_id, is_public=False, revision=0)
        touch_document(manga_list, default_categories())
        db.add(manga_list)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("[auth] default list creation failed for user id=%s; will be created lazily", user_id)

    return AuthResponse(
        message="User registered successfully",
        token=token,
        user=user_out,
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, payload: UserLogin, db: AsyncSession = Depends(get_async_session)):
    db_user = await find_user(db, payload.email_or_username)

    if not db_user:
        raise HTTPException(status_code=404, detail="User does not exist")

    if not db_user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    if not verify_secret(payload.password, db_user.password):
        logger.info("[auth] bad password for user id=%s", db_user.id)
        raise HTTPException(status_code=401, detail="Incorrect password")

    db_user.last_login = datetime.now(timezone.utc)
    await db.commit()

    return AuthResponse(token=create_access_token(db_user), user=db_user.to_safe_dict())


@router.get("/me")
async def me(user: User = Depends(require_active_user)):
    return {"user": user.to_safe_dict()}


@router.put("/me/preferences")
async def update_preferences(
    payload: PreferencesUpdate,
    user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        # only display_name may be cleared; the other columns are NOT NULL
        if value is not None or field in NULLABLE_PREFERENCES:
            setattr(user, field, value)

    if changes.get("lists_public") is not None:
        manga_list = (
            await db.execute(select(MangaList).where(MangaList.user_id == user.id))
        ).scalars().first()
        if manga_list:
            manga_list.is_public = changes["lists_public"]

    await db.commit()
    return {"user": user.to_safe_dict()}


@router.post("/reset-password")
@limiter.limit(AUTH_RATE_LIMIT)
async def reset_password(request: Request, payload: PasswordReset, db: AsyncSession = Depends(get_async_session)):
    if payload.new_password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    user = await find_user(db, payload.email_or_username)
    if not user or not user.is_active:
        raise HTTPException(status_code=404, detail="User does not exist")

    if not verify_secret(payload.security_word.strip(), user.recovery_keyword):
        raise HTTPException(status_code=401, detail="Incorrect security word")

    user.password = hash_secret(payload.new_password)
    await db.commit()
    logger.info("[auth] password reset for user id=%s", user.id)

    return {"message": "Password reset successfully"}
