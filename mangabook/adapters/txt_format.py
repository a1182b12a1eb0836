import logging
import re
from typing import Dict, List, Mapping

from mangabook.config import DEFAULT_IMAGE_URL

logger = logging.getLogger(__name__)

# [One Piece Ch 1100](http://x/y.jpg); the (url) part is optional on older exports
ENTRY_RE = re.compile(
    r"^\[(?P<name>.+?)\s+Ch\s+(?P<chapter>\d+(?:\.\d+)?)\]\s*(?:\((?P<url>[^)]*)\))?$",
    re.IGNORECASE,
)


def _chapter(value: str):
    number = float(value)
    return int(number) if number.is_integer() else number


def parse_list_text(text: str) -> Dict[str, List[dict]]:
    """Single forward pass: entry lines belong to the latest heading above them.

    Any non-blank line that is not an entry is a category heading. Entry
    lines seen before the first heading have nowhere to go and are dropped.
    """
    categories: Dict[str, List[dict]] = {}
    current = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue

        match = ENTRY_RE.match(line)
        if not match:
            current = line
            categories.setdefault(current, [])
            continue

        if current is None:
            logger.warning("[import] line %d: entry before any category heading, skipped: %r", lineno, line)
            continue

        categories[current].append({
            "name": match.group("name").strip(),
            "chapter": _chapter(match.group("chapter")),
            "imageUrl": (match.group("url") or "").strip() or DEFAULT_IMAGE_URL,
        })

    return categories


def export_list_text(category_map: Mapping[str, List[dict]]) -> str:
    blocks = []
    for name, entries in category_map.items():
        lines = [name]
        for entry in sorted(entries, key=lambda e: e.get("name", "").lower()):
            lines.append(
                f"[{entry.get('name', '')} Ch {entry.get('chapter') or 0}]({entry.get('imageUrl') or DEFAULT_IMAGE_URL})"
            )
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + ("\n" if blocks else "")
