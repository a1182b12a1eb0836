"""
Steps that every write to a ``MangaList`` goes through.

The routes call these explicitly before committing: validate and stamp
entries, project the name -> entries map onto stored category objects,
then recompute the derived document fields.
"""
import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from mangabook.models.manga_list import MangaList
from mangabook.schemas.list_schemas import MangaEntry

DEFAULT_CATEGORY_NAMES = ["Currently Reading", "Plan to Read", "Completed", "Dropped", "On Hold"]
DEFAULT_CATEGORY_COLOR = "#3b82f6"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_category(name: str, sort_order: int) -> dict:
    return {
        "name": name,
        "entries": [],
        "sortOrder": sort_order,
        "description": None,
        "color": DEFAULT_CATEGORY_COLOR,
        "isPublic": False,
    }


def default_categories() -> List[dict]:
    return [new_category(name, i + 1) for i, name in enumerate(DEFAULT_CATEGORY_NAMES)]


def build_entry(data, existing: Optional[dict] = None) -> dict:
    """Validate one entry and return its stored (camelCase) form.

    A missing id gets a fresh one, ``addedAt`` is kept when known (from the
    payload or the stored entry) and ``lastUpdated`` is always refreshed.
    Raises ``pydantic.ValidationError`` for bad data.
    """
    entry = data if isinstance(data, MangaEntry) else MangaEntry.model_validate(data)
    stored = entry.model_dump(by_alias=True, mode="json")

    if existing:
        stored["id"] = stored.get("id") or existing.get("id")
        stored["addedAt"] = stored.get("addedAt") or existing.get("addedAt")
    if not stored.get("id"):
        stored["id"] = str(uuid.uuid4())
    if not stored.get("addedAt"):
        stored["addedAt"] = _now_iso()
    stored["lastUpdated"] = _now_iso()
    return stored


def apply_patch(stored: dict, patch: dict) -> dict:
    """Field-level update of a stored entry; id and addedAt never change."""
    merged = dict(stored)
    merged.update(patch)
    merged["id"] = stored["id"]
    merged["addedAt"] = stored.get("addedAt")
    return build_entry(merged, existing=stored)


def categories_from_map(category_map: Dict[str, list], existing: Optional[List[dict]] = None) -> List[dict]:
    """Project a name -> entries mapping onto stored category objects.

    Metadata (description, color, isPublic) of categories whose name is kept
    carries over; sortOrder follows the mapping's order.
    """
    previous = {c["name"]: c for c in (existing or [])}
    previous_entries = {
        e.get("id"): e
        for c in (existing or [])
        for e in c.get("entries", [])
        if e.get("id")
    }

    categories = []
    for position, (name, entries) in enumerate(category_map.items(), start=1):
        category = new_category(name, position)
        old = previous.get(name)
        if old:
            for key in ("description", "color", "isPublic"):
                category[key] = old.get(key, category[key])

        built = []
        for raw in entries:
            raw_id = raw.id if isinstance(raw, MangaEntry) else (raw or {}).get("id")
            built.append(build_entry(raw, existing=previous_entries.get(raw_id)))
        category["entries"] = built
        categories.append(category)
    return categories


def categories_to_map(categories: List[dict]) -> Dict[str, List[dict]]:
    return {c["name"]: list(c.get("entries", [])) for c in categories}


def find_category(categories: List[dict], name: str) -> Optional[dict]:
    for category in categories:
        if category["name"] == name:
            return category
    return None


def editable_categories(manga_list: MangaList) -> List[dict]:
    # JSON columns only notice reassignment, so work on a copy
    return copy.deepcopy(manga_list.categories or [])


def touch_document(manga_list: MangaList, categories: Optional[List[dict]] = None) -> MangaList:
    """Recompute derived fields and bump the revision before a commit."""
    if categories is not None:
        manga_list.categories = categories
    manga_list.total_entries = sum(len(c.get("entries", [])) for c in manga_list.categories or [])
    manga_list.last_activity = datetime.now(timezone.utc)
    manga_list.revision = (manga_list.revision or 0) + 1
    return manga_list
