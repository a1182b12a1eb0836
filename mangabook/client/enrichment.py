"""
Best-effort cover lookup against the Jikan (MyAnimeList) catalog.

Jikan rate-limits aggressively, so lookups go out in small batches with a
stagger between requests and a pause between batches. Any single failure
just leaves that entry on the placeholder image.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import httpx

from mangabook.config import JIKAN_BASE_URL

logger = logging.getLogger(__name__)

BATCH_SIZE = 2
REQUEST_DELAY = 0.5  # seconds between requests inside a batch
BATCH_DELAY = 1.0    # seconds between batches

Lookup = Callable[[str], Awaitable[Optional[dict]]]


class JikanClient:
    def __init__(self, base_url: str = JIKAN_BASE_URL, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def lookup(self, title: str) -> Optional[dict]:
        """First catalog hit for ``title`` as entry fields, or None."""
        res = await self._client.get("/manga", params={"q": title, "limit": 1})
        res.raise_for_status()
        hits = res.json().get("data") or []
        if not hits:
            return None

        manga = hits[0]
        images = (manga.get("images") or {}).get("jpg") or {}
        image_url = images.get("large_image_url") or images.get("image_url")
        authors = manga.get("authors") or []
        return {
            "imageUrl": image_url,
            "synopsis": manga.get("synopsis"),
            "malId": manga.get("mal_id"),
            "author": authors[0].get("name") if authors else None,
        }


async def _lookup_one(lookup: Lookup, entry: dict, delay: float) -> Optional[str]:
    if delay:
        await asyncio.sleep(delay)
    found = await lookup(entry["name"])
    if not found:
        return None
    return found.get("imageUrl") or None


async def enrich_missing_covers(
    entries: List[dict],
    lookup: Lookup,
    batch_size: int = BATCH_SIZE,
    request_delay: float = REQUEST_DELAY,
    batch_delay: float = BATCH_DELAY,
    on_batch: Optional[Callable[[int, int], None]] = None,
    on_found: Optional[Callable[[dict, str], bool]] = None,
) -> int:
    """Fill ``imageUrl`` on each entry from ``lookup``; returns how many got a cover.

    Entries are updated in place unless ``on_found(entry, image_url)`` is
    given, in which case it receives each cover and returns whether it was
    applied. ``on_batch(done, total)`` runs after every batch so a UI can
    render partial progress.
    """
    enriched = 0
    total = len(entries)
    for start in range(0, total, batch_size):
        batch = entries[start:start + batch_size]
        results = await asyncio.gather(
            *(_lookup_one(lookup, entry, i * request_delay) for i, entry in enumerate(batch)),
            return_exceptions=True,
        )
        for entry, result in zip(batch, results):
            if isinstance(result, Exception):
                logger.warning("[enrich] lookup failed for %r: %r", entry.get("name"), result)
            elif result:
                if on_found is None:
                    entry["imageUrl"] = result
                    enriched += 1
                elif on_found(entry, result):
                    enriched += 1

        done = min(start + batch_size, total)
        if on_batch:
            on_batch(done, total)
        if done < total and batch_delay:
            await asyncio.sleep(batch_delay)
    return enriched
