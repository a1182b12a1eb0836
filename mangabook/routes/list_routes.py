# mangabook/routes/list_routes.py
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Response, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mangabook.database import get_async_session
from mangabook.deps.auth import require_active_user
from mangabook.models.manga_list import MangaList
from mangabook.models.user_model import User
from mangabook.schemas.list_schemas import (
    AddMangaRequest,
    CategoryCreate,
    CategoryMapPayload,
    CategoryRename,
    MangaEntryPatch,
    PaginatedEntries,
    PublicListOut,
)
from mangabook.services.list_documents import (
    apply_patch,
    build_entry,
    categories_from_map,
    categories_to_map,
    default_categories,
    editable_categories,
    find_category,
    new_category,
    touch_document,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/list", tags=["list"])


def _etag(manga_list: MangaList) -> str:
    return f'"{manga_list.revision}"'


def _parse_if_match(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip().strip('"').removeprefix("W/").strip('"'))
    except ValueError:
        raise HTTPException(status_code=400, detail="If-Match must be a list revision")


async def get_or_create_list(session: AsyncSession, user: User) -> MangaList:
    """The caller's document; created with the defaults if registration never got that far."""
    stmt = select(MangaList).where(MangaList.user_id == user.id)
    manga_list = (await session.execute(stmt)).scalars().first()
    if manga_list:
        return manga_list

    logger.info("[list] creating missing default list for user id=%s", user.id)
    manga_list = MangaList(user_id=user.id, is_public=bool(user.lists_public), revision=0)
    touch_document(manga_list, default_categories())
    session.add(manga_list)
    await session.commit()
    return manga_list


async def _save(session: AsyncSession, manga_list: MangaList, categories: list, response: Response) -> dict:
    touch_document(manga_list, categories)
    await session.commit()
    response.headers["ETag"] = _etag(manga_list)
    return categories_to_map(manga_list.categories)


@router.get("")
async def get_list(
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    response.headers["ETag"] = _etag(manga_list)
    return categories_to_map(manga_list.categories)


@router.post("")
async def replace_list(
    response: Response,
    payload: CategoryMapPayload = Body(...),
    if_match: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)

    expected = _parse_if_match(if_match)
    if expected is not None and expected != manga_list.revision:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="List was modified elsewhere")

    for name in payload:
        if not name.strip() or len(name) > 50:
            raise HTTPException(status_code=400, detail=f"Invalid category name: {name!r}")

    categories = categories_from_map(payload, existing=manga_list.categories)
    return await _save(session, manga_list, categories, response)


# ---- Categories

@router.post("/category", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    categories = editable_categories(manga_list)

    if find_category(categories, payload.name):
        raise HTTPException(status_code=400, detail="Category already exists")

    categories.append(new_category(payload.name, len(categories) + 1))
    return await _save(session, manga_list, categories, response)


@router.put("/category/{name}")
async def rename_category(
    name: str,
    payload: CategoryRename,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    categories = editable_categories(manga_list)

    category = find_category(categories, name)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if payload.name != name and find_category(categories, payload.name):
        raise HTTPException(status_code=400, detail="Category already exists")

    category["name"] = payload.name
    return await _save(session, manga_list, categories, response)


@router.delete("/category/{name}")
async def delete_category(
    name: str,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    categories = editable_categories(manga_list)

    if not find_category(categories, name):
        raise HTTPException(status_code=404, detail="Category not found")

    remaining = [c for c in categories if c["name"] != name]
    for position, category in enumerate(remaining, start=1):
        category["sortOrder"] = position
    return await _save(session, manga_list, remaining, response)


# ---- Entries

@router.post("/manga", status_code=status.HTTP_201_CREATED)
async def add_manga(
    payload: AddMangaRequest,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    categories = editable_categories(manga_list)

    category = find_category(categories, payload.category_name)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    # always a fresh id and addedAt, whatever the client sent
    entry = build_entry(payload.manga.model_copy(update={"id": None, "added_at": None}))
    category["entries"].append(entry)
    await _save(session, manga_list, categories, response)
    return entry


@router.put("/manga/{category_name}/{manga_id}")
async def update_manga(
    category_name: str,
    manga_id: str,
    payload: MangaEntryPatch,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    categories = editable_categories(manga_list)

    category = find_category(categories, category_name)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    for index, stored in enumerate(category["entries"]):
        if stored.get("id") == manga_id:
            break
    else:
        raise HTTPException(status_code=404, detail="Manga not found in this category")

    patch = payload.model_dump(exclude_unset=True, by_alias=True, mode="json")
    try:
        updated = apply_patch(stored, patch)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False, include_context=False))

    category["entries"][index] = updated
    await _save(session, manga_list, categories, response)
    return updated


@router.delete("/manga/{category_name}/{manga_id}")
async def delete_manga(
    category_name: str,
    manga_id: str,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    categories = editable_categories(manga_list)

    category = find_category(categories, category_name)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    kept = [e for e in category["entries"] if e.get("id") != manga_id]
    if len(kept) == len(category["entries"]):
        raise HTTPException(status_code=404, detail="Manga not found in this category")

    category["entries"] = kept
    return await _save(session, manga_list, categories, response)


# ---- Read-only views

@router.get("/entries", response_model=PaginatedEntries)
async def list_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    entry_status: Optional[str] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)

    entries = [
        {**entry, "categoryName": c["name"]}
        for c in manga_list.categories
        if not category or c["name"] == category
        for entry in c.get("entries", [])
        if not entry_status or entry.get("status") == entry_status
    ]
    # most recently added first
    entries.sort(key=lambda e: e.get("addedAt") or "", reverse=True)

    start = (page - 1) * limit
    end = start + limit
    return PaginatedEntries(
        entries=entries[start:end],
        total_entries=len(entries),
        current_page=page,
        total_pages=math.ceil(len(entries) / limit),
        has_next_page=end < len(entries),
        has_prev_page=page > 1,
    )


@router.get("/search")
async def search_entries(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_active_user),
):
    manga_list = await get_or_create_list(session, current_user)
    needle = q.strip().lower()

    matches = []
    for c in manga_list.categories:
        for entry in c.get("entries", []):
            if needle in entry.get("name", "").lower() or needle in (entry.get("author") or "").lower():
                matches.append({**entry, "categoryName": c["name"]})
    return matches[:limit]


@router.get("/public", response_model=List[PublicListOut])
async def public_lists(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(MangaList, User)
        .join(User, User.id == MangaList.user_id)
        .where(MangaList.is_public.is_(True), User.is_active.is_(True))
        .order_by(MangaList.last_activity.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await session.execute(stmt)).all()
    return [
        PublicListOut(
            username=owner.username,
            display_name=owner.display_name,
            total_entries=manga_list.total_entries,
            last_activity=manga_list.last_activity,
            categories=categories_to_map([c for c in manga_list.categories if c.get("isPublic")]),
        )
        for manga_list, owner in rows
    ]
