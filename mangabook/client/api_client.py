import logging
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from mangabook.client.errors import UpstreamError, error_for_status

logger = logging.getLogger(__name__)

AUTH_TIMEOUT = 30.0  # seconds; list and enrichment calls use the transport default


class ListApiClient:
    """Async client for the Manga-Book REST API.

    Holds the bearer token after login/register and sends it as
    ``x-auth-token`` on every later call. Failures are raised as the
    ``mangabook.client.errors`` taxonomy.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.last_revision: Optional[int] = None
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {}
        if self.token:
            headers["x-auth-token"] = self.token
        if extra:
            headers.update(extra)
        return headers

    async def _request(self, method: str, path: str, *, json=None, params=None, headers=None, timeout=httpx.USE_CLIENT_DEFAULT):
        try:
            res = await self._client.request(
                method, path, json=json, params=params, headers=self._headers(headers), timeout=timeout
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Request to {path} failed: {e}") from e

        if res.is_success:
            etag = res.headers.get("etag")
            if etag and etag.strip('"').isdigit():
                self.last_revision = int(etag.strip('"'))
            return res.json() if res.content else None

        try:
            body = res.json()
        except ValueError:
            body = {}
        detail = body.get("detail") if isinstance(body, dict) else None
        message = detail if isinstance(detail, str) else f"{method} {path} failed with {res.status_code}"
        raise error_for_status(res.status_code, message, detail=body)

    # auth

    async def register(self, username: str, email: str, password: str, security_word: str) -> dict:
        data = await self._request(
            "POST",
            "/auth/register",
            json={"username": username, "email": email, "password": password, "securityWord": security_word},
            timeout=AUTH_TIMEOUT,
        )
        self.token = data["token"]
        return data

    async def login(self, email_or_username: str, password: str) -> dict:
        data = await self._request(
            "POST",
            "/auth/login",
            json={"emailOrUsername": email_or_username, "password": password},
            timeout=AUTH_TIMEOUT,
        )
        self.token = data["token"]
        return data

    async def me(self) -> dict:
        data = await self._request("GET", "/auth/me", timeout=AUTH_TIMEOUT)
        return data["user"]

    async def reset_password(self, email_or_username: str, security_word: str, new_password: str, confirm_password: str) -> dict:
        return await self._request(
            "POST",
            "/auth/reset-password",
            json={
                "emailOrUsername": email_or_username,
                "securityWord": security_word,
                "newPassword": new_password,
                "confirmPassword": confirm_password,
            },
            timeout=AUTH_TIMEOUT,
        )

    def logout(self) -> None:
        self.token = None
        self.last_revision = None

    # list

    async def get_list(self) -> Dict[str, List[dict]]:
        return await self._request("GET", "/list")

    async def replace_list(self, category_map: Dict[str, List[dict]], revision: Optional[int] = None) -> Dict[str, List[dict]]:
        headers = {"If-Match": f'"{revision}"'} if revision is not None else None
        return await self._request("POST", "/list", json=category_map, headers=headers)

    async def create_category(self, name: str) -> Dict[str, List[dict]]:
        return await self._request("POST", "/list/category", json={"name": name})

    async def rename_category(self, name: str, new_name: str) -> Dict[str, List[dict]]:
        return await self._request("PUT", f"/list/category/{quote(name, safe='')}", json={"name": new_name})

    async def delete_category(self, name: str) -> Dict[str, List[dict]]:
        return await self._request("DELETE", f"/list/category/{quote(name, safe='')}")

    async def add_entry(self, category_name: str, manga: dict) -> dict:
        return await self._request("POST", "/list/manga", json={"categoryName": category_name, "manga": manga})

    async def update_entry(self, category_name: str, manga_id: str, patch: dict) -> dict:
        return await self._request("PUT", f"/list/manga/{quote(category_name, safe='')}/{quote(manga_id, safe='')}", json=patch)

    async def delete_entry(self, category_name: str, manga_id: str) -> Dict[str, List[dict]]:
        return await self._request("DELETE", f"/list/manga/{quote(category_name, safe='')}/{quote(manga_id, safe='')}")

    async def search(self, q: str, limit: int = 20) -> List[dict]:
        return await self._request("GET", "/list/search", params={"q": q, "limit": limit})
