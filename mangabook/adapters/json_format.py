import json
from typing import Dict, List, Mapping

from pydantic import ValidationError

from mangabook.client.errors import ImportFormatError
from mangabook.schemas.list_schemas import MangaEntry


def parse_list_json(text: str) -> Dict[str, List[dict]]:
    """Load a JSON export; anything but ``{category: [entry, ...]}`` is rejected."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ImportFormatError("Expected an object of category name -> entries")

    categories: Dict[str, List[dict]] = {}
    for name, entries in data.items():
        if not name.strip():
            raise ImportFormatError("Category names cannot be blank")
        if not isinstance(entries, list):
            raise ImportFormatError(f"Category {name!r} must hold a list of entries")
        checked = []
        for position, entry in enumerate(entries, start=1):
            try:
                MangaEntry.model_validate(entry)
            except ValidationError as e:
                raise ImportFormatError(f"Entry {position} in {name!r} is invalid: {e.errors()[0]['msg']}") from e
            checked.append(dict(entry))
        categories[name] = checked
    return categories


def export_list_json(category_map: Mapping[str, List[dict]]) -> str:
    return json.dumps(dict(category_map), indent=2, ensure_ascii=False)
