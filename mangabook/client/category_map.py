import copy
import uuid
from collections.abc import MutableMapping
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from mangabook.client.errors import CategoryExists, CategoryNotFound, EntryNotFound
from mangabook.config import DEFAULT_IMAGE_URL


class CategoryMap(MutableMapping):
    """Ordered mapping of category name -> list of entry dicts.

    Key order is the display order (tables and sidebar), so it is kept
    explicitly: reordering swaps neighbours instead of sorting. Entries are
    plain dicts in the wire (camelCase) shape the list server speaks.
    """

    def __init__(self, data: Optional[Dict[str, List[dict]]] = None):
        self._data: Dict[str, List[dict]] = {}
        for name, entries in (data or {}).items():
            self._data[name] = [dict(e) for e in entries]

    @classmethod
    def from_dict(cls, data: Dict[str, List[dict]]) -> "CategoryMap":
        return cls(data)

    # MutableMapping protocol

    def __getitem__(self, name: str) -> List[dict]:
        return self._data[name]

    def __setitem__(self, name: str, entries: List[dict]) -> None:
        self._data[name] = list(entries)

    def __delitem__(self, name: str) -> None:
        del self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"CategoryMap({self._data!r})"

    def __eq__(self, other) -> bool:
        # order matters here, unlike plain dict equality
        if isinstance(other, CategoryMap):
            return list(self._data.items()) == list(other._data.items())
        if isinstance(other, dict):
            return list(self._data.items()) == list(other.items())
        return NotImplemented

    def copy(self) -> "CategoryMap":
        return CategoryMap(copy.deepcopy(self._data))

    def to_dict(self) -> Dict[str, List[dict]]:
        return copy.deepcopy(self._data)

    # categories

    def _require(self, name: str) -> List[dict]:
        if name not in self._data:
            raise CategoryNotFound(name)
        return self._data[name]

    def add_category(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise ValueError("Category name is required")
        if name in self._data:
            raise CategoryExists(name)
        self._data[name] = []

    def rename_category(self, old: str, new: str) -> None:
        """Rename in place: same position, same entries in the same order."""
        self._require(old)
        new = (new or "").strip()
        if not new:
            raise ValueError("Category name is required")
        if new == old:
            return
        if new in self._data:
            raise CategoryExists(new)
        self._data = {(new if key == old else key): entries for key, entries in self._data.items()}

    def delete_category(self, name: str) -> List[dict]:
        self._require(name)
        return self._data.pop(name)

    def move_category(self, name: str, direction: int) -> bool:
        """Swap with the neighbour above (-1) or below (+1); False at the edges."""
        self._require(name)
        if direction not in (-1, 1):
            raise ValueError("direction must be -1 or 1")
        keys = list(self._data)
        index = keys.index(name)
        target = index + direction
        if target < 0 or target >= len(keys):
            return False
        keys[index], keys[target] = keys[target], keys[index]
        self._data = {key: self._data[key] for key in keys}
        return True

    # entries

    def add_entry(self, category: str, entry: dict) -> dict:
        entries = self._require(category)
        now = _now_iso()
        stored = {"chapter": 0, "imageUrl": DEFAULT_IMAGE_URL, "status": "plan-to-read", **entry}
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("addedAt", now)
        stored["lastUpdated"] = now
        entries.append(stored)
        return stored

    def find_entry(self, category: str, entry_id: str) -> dict:
        for entry in self._require(category):
            if entry.get("id") == entry_id:
                return entry
        raise EntryNotFound(entry_id)

    def update_entry(self, category: str, entry_id: str, patch: dict) -> dict:
        entry = self.find_entry(category, entry_id)
        entry.update({k: v for k, v in patch.items() if k not in ("id", "addedAt")})
        entry["lastUpdated"] = _now_iso()
        return entry

    def delete_entry(self, category: str, entry_id: str) -> dict:
        entry = self.find_entry(category, entry_id)
        self._data[category].remove(entry)
        return entry

    def move_entry(self, source: str, entry_id: str, destination: str) -> dict:
        self._require(destination)
        entry = self.delete_entry(source, entry_id)
        self._data[destination].append(entry)
        return entry

    # views

    def total_entries(self) -> int:
        return sum(len(entries) for entries in self._data.values())

    def entries_missing_cover(self) -> List[dict]:
        return [
            entry
            for entries in self._data.values()
            for entry in entries
            if not entry.get("imageUrl") or entry.get("imageUrl") == DEFAULT_IMAGE_URL
        ]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
