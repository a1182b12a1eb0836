"""
In-session owner of the category map.

Every change goes through ``SyncEngine.dispatch``: the local map is updated
first (optimistically), subscribers re-render, then the whole map is pushed
to ``POST /list``. A failed push is reported as an error notification and
the local map stays as it is; there is no rollback and no retry queue.

States: UNAUTHENTICATED -> LOADING -> READY <-> SAVING.
"""
import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from mangabook.adapters.json_format import export_list_json, parse_list_json
from mangabook.adapters.pdf_format import export_list_pdf, parse_pdf_pages
from mangabook.adapters.txt_format import export_list_text, parse_list_text
from mangabook.client.api_client import ListApiClient
from mangabook.client.category_map import CategoryMap
from mangabook.client.enrichment import Lookup, enrich_missing_covers
from mangabook.client.errors import ApiError, ImportFormatError
from mangabook.config import API_BASE_URL

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"


class SessionError(RuntimeError):
    """Mutation attempted without a loaded session."""


@dataclass
class Notification:
    message: str
    level: str = "info"  # info | success | warn | error


class SyncEngine:
    def __init__(self, api=None, use_revisions: bool = False, base_url: str = API_BASE_URL):
        self.api = api if api is not None else ListApiClient(base_url)
        self.use_revisions = use_revisions
        self.state = SessionState.UNAUTHENTICATED
        self.categories = CategoryMap()
        self.user: Optional[dict] = None
        self.is_empty = False
        self.notifications: List[Notification] = []

        self._listeners: List[Callable[["SyncEngine"], None]] = []
        self._notify_listeners: List[Callable[[Notification], None]] = []
        self._version = 0   # local mutation counter
        self._in_flight = 0
        # one save at a time, so each sends the map and revision left by the previous one
        self._save_lock = asyncio.Lock()

    # subscriptions

    def subscribe(self, listener: Callable[["SyncEngine"], None]) -> Callable[[], None]:
        """Call ``listener(engine)`` after every map or state change. Returns an unsubscribe."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def on_notification(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._notify_listeners.append(listener)
        return lambda: self._notify_listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _notify(self, message: str, level: str = "info") -> None:
        note = Notification(message, level)
        self.notifications.append(note)
        for listener in list(self._notify_listeners):
            listener(note)

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        self._changed()

    # session

    async def login(self, email_or_username: str, password: str) -> None:
        self._notify("Signing in...")
        try:
            data = await self.api.login(email_or_username, password)
        except ApiError as e:
            self._notify(e.message, "error")
            raise
        self.user = data.get("user")
        self._notify("Successfully signed in!", "success")
        await self.load()

    async def register(self, username: str, email: str, password: str, security_word: str) -> None:
        self._notify("Creating account...")
        try:
            data = await self.api.register(username, email, password, security_word)
        except ApiError as e:
            self._notify(e.message, "error")
            raise
        self.user = data.get("user")
        self._notify("Account created successfully!", "success")
        await self.load()

    def logout(self) -> None:
        self.api.logout()
        self.user = None
        self.categories = CategoryMap()
        self.is_empty = False
        self._notify("Successfully signed out", "success")
        self._set_state(SessionState.UNAUTHENTICATED)

    async def load(self) -> None:
        """Fetch the server's map; an empty one leaves ``is_empty`` set for a getting-started view."""
        self._set_state(SessionState.LOADING)
        self._notify("Loading your manga data...")
        try:
            data = await self.api.get_list()
        except ApiError as e:
            # stay in LOADING: saving an unknown map would wipe the server copy
            logger.warning("[sync] load failed: %s", e.message)
            self._notify("Error loading your manga data", "error")
            raise

        self.categories = CategoryMap(data or {})
        self.is_empty = len(self.categories) == 0
        self._version += 1
        self._notify("Manga data loaded successfully", "success")
        self._set_state(SessionState.READY)

    # mutations

    async def dispatch(self, action: str, **params):
        """Apply ``action`` locally, then persist the whole map.

        Returns whatever the action produced (e.g. the new entry). Local
        validation errors are raised before anything is sent.
        """
        if self.state not in (SessionState.READY, SessionState.SAVING):
            raise SessionError(f"Cannot {action} while {self.state.value}")
        handler = getattr(self, f"_do_{action}", None)
        if handler is None:
            raise ValueError(f"Unknown action: {action}")

        result = handler(**params)
        if inspect.isawaitable(result):
            result = await result

        self._version += 1
        self.is_empty = len(self.categories) == 0
        self._changed()
        await self._push()
        return result

    async def _push(self) -> bool:
        self._in_flight += 1
        self._set_state(SessionState.SAVING)
        self._notify("Saving your manga data...")
        try:
            async with self._save_lock:
                version = self._version
                revision = getattr(self.api, "last_revision", None) if self.use_revisions else None
                saved = await self.api.replace_list(self.categories.to_dict(), revision=revision)
        except ApiError as e:
            logger.warning("[sync] save failed: %s", e.message)
            self._notify(f"Error saving data: {e.message}", "error")
            return False
        finally:
            self._in_flight -= 1
            if self._in_flight == 0 and self.state is SessionState.SAVING:
                self._set_state(SessionState.READY)

        # adopt the server's normalized copy only if nothing changed meanwhile
        if saved is not None and version == self._version:
            self.categories = CategoryMap(saved)
            self._changed()
        self._notify("Data saved successfully!", "success")
        return True

    def _do_create_category(self, name: str):
        self.categories.add_category(name)
        return name.strip()

    def _do_rename_category(self, name: str, new_name: str):
        self.categories.rename_category(name, new_name)
        return new_name.strip()

    def _do_delete_category(self, name: str):
        return self.categories.delete_category(name)

    def _do_move_category(self, name: str, direction: int):
        return self.categories.move_category(name, direction)

    def _do_add_entry(self, category: str, entry: dict):
        return self.categories.add_entry(category, entry)

    def _do_update_entry(self, category: str, entry_id: str, patch: dict):
        return self.categories.update_entry(category, entry_id, patch)

    def _do_delete_entry(self, category: str, entry_id: str):
        return self.categories.delete_entry(category, entry_id)

    def _do_move_entry(self, source: str, entry_id: str, destination: str):
        return self.categories.move_entry(source, entry_id, destination)

    def _do_import_text(self, text: str):
        # replaces the whole map; nothing is merged into existing categories
        parsed = parse_list_text(text)
        if not parsed:
            raise ImportFormatError("File is empty or contains no valid data.")
        self.categories = CategoryMap(parsed)
        return self.categories.total_entries()

    def _do_import_json(self, text: str):
        self.categories = CategoryMap(parse_list_json(text))
        return self.categories.total_entries()

    def _do_import_pdf(self, pages: List[str]):
        parsed = parse_pdf_pages(pages)
        if not parsed:
            raise ImportFormatError("PDF contains no valid data.")
        self.categories = CategoryMap(parsed)
        return self.categories.total_entries()

    def _apply_cover(self, entry: dict, image_url: str) -> bool:
        # other dispatches may have replaced the map while lookups were pending
        for entries in self.categories.values():
            for live in entries:
                if live is entry["ref"] or (entry["id"] and live.get("id") == entry["id"]):
                    live["imageUrl"] = image_url
                    self._version += 1
                    return True
        return False

    async def _do_apply_enrichment(self, lookup: Lookup, **options):
        # lookups work on snapshots; covers land on whatever map is current
        missing = [
            {"id": e.get("id"), "name": e.get("name", ""), "ref": e}
            for e in self.categories.entries_missing_cover()
        ]
        if not missing:
            return 0
        self._notify(f"Fetching covers for {len(missing)} manga...")
        count = await enrich_missing_covers(
            missing,
            lookup,
            on_batch=lambda done, total: self._changed(),
            on_found=self._apply_cover,
            **options,
        )
        self._notify(f"Found covers for {count} of {len(missing)} manga", "success")
        return count

    # export

    def export(self, fmt: str, title: str = "Manga List") -> Union[str, bytes]:
        """The current map as ``txt`` or ``json`` text, or ``pdf`` bytes."""
        data = self.categories.to_dict()
        if fmt == "txt":
            return export_list_text(data)
        if fmt == "json":
            return export_list_json(data)
        if fmt == "pdf":
            return export_list_pdf(data, title=title)
        raise ValueError(f"Unknown export format: {fmt}")
