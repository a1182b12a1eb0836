import io
import textwrap
from typing import Dict, Iterable, List, Mapping

from PIL import Image, ImageDraw, ImageFont

from mangabook.adapters.txt_format import parse_list_text

# A4 at 72 dpi
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 40
WRAP_CHARS = 80


def parse_pdf_pages(pages: Iterable[str]) -> Dict[str, List[dict]]:
    """Parse text already extracted from a PDF, one string per page."""
    return parse_list_text("\n".join(pages))


def _printable(font, text: str) -> str:
    # the bitmap fallback font only knows latin-1
    if isinstance(font, ImageFont.FreeTypeFont):
        return text
    return text.encode("latin-1", "replace").decode("latin-1")


def _layout(category_map: Mapping[str, List[dict]], title: str) -> List[tuple]:
    """(text, is_heading) lines in reading order."""
    lines = [(title, True), ("", False)]
    for name, entries in category_map.items():
        lines.append((f"{name} ({len(entries)})", True))
        ordered = sorted(entries, key=lambda e: e.get("name", "").lower())
        for number, entry in enumerate(ordered, start=1):
            text = f"{number}. {entry.get('name', '')} - Ch {entry.get('chapter') or 0} [{entry.get('status') or 'plan-to-read'}]"
            for i, chunk in enumerate(textwrap.wrap(text, WRAP_CHARS) or [""]):
                lines.append(("    " + chunk if i else chunk, False))
        lines.append(("", False))
    total = sum(len(entries) for entries in category_map.values())
    lines.append((f"Total manga: {total}", True))
    return lines


def export_list_pdf(category_map: Mapping[str, List[dict]], title: str = "Manga List") -> bytes:
    font = ImageFont.load_default()
    _, top, _, bottom = font.getbbox("Ag")
    line_height = (bottom - top) + 6

    pages = []
    page = draw = None
    y = PAGE_HEIGHT  # forces a first page

    for text, is_heading in _layout(category_map, title):
        # manual page break: start a new page when the next line would cross the bottom margin
        if y + line_height > PAGE_HEIGHT - MARGIN:
            page = Image.new("RGB", (PAGE_WIDTH, PAGE_HEIGHT), "white")
            draw = ImageDraw.Draw(page)
            pages.append(page)
            y = MARGIN
        if text:
            fill = (185, 28, 28) if is_heading else (0, 0, 0)
            draw.text((MARGIN, y), _printable(font, text), font=font, fill=fill)
        y += line_height

    buf = io.BytesIO()
    pages[0].save(buf, format="PDF", save_all=True, append_images=pages[1:], resolution=72.0)
    return buf.getvalue()
