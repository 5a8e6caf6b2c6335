"""HTTP gateway for the admin backend: transport, error normalization, 401 interception."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from ..config import ConsoleConfig
from ..logging import get_logger
from ..session.persistence import SessionStore, StoreEvent, load_cookies, save_cookies
from .errors import HttpError, MalformedResponse, NetworkUnavailable, SessionExpired

logger = get_logger("api.client")


def encode_query(params: Mapping[str, Any] | None) -> str:
    """Encode query params in insertion order, dropping None values.

    Booleans become ``true``/``false``; list values repeat the key.
    """
    if not params:
        return ""
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            if item is None:
                continue
            if isinstance(item, bool):
                item = "true" if item else "false"
            pairs.append((key, str(item)))
    return urlencode(pairs, quote_via=quote)


def _body_message(resp: httpx.Response) -> str | None:
    """Pull a human-readable message out of a JSON error body, if any."""
    try:
        data = resp.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    for field in ("detail", "message", "error"):
        value = data.get(field)
        if isinstance(value, str) and value:
            return value
        # FastAPI validation errors: [{"loc": ..., "msg": ...}, ...]
        if isinstance(value, list) and value:
            return "; ".join(
                str(item.get("msg", item)) if isinstance(item, dict) else str(item)
                for item in value
            )
    return None


def _generic_message(resp: httpx.Response) -> str:
    if resp.status_code == 404:
        return "Backend API endpoint not found. Check that the backend is deployed correctly."
    if resp.status_code >= 500:
        return "Backend server error. Please try again later."
    return f"API Error: {resp.status_code} {resp.reason_phrase}".rstrip()


class GatewayClient:
    """Async HTTP client for the admin backend API.

    Credentials travel in the cookie jar; there is no bearer token. Every
    non-ok response is turned into an ``ApiError``. A 401 invalidates the
    shared session store no matter which caller issued the request.
    """

    def __init__(
        self,
        config: ConsoleConfig,
        session_store: SessionStore,
        *,
        cookie_file: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self.service_root = config.service_root
        self.session_store = session_store
        self._cookie_file = cookie_file
        self._client = httpx.AsyncClient(
            timeout=config.request_timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        for cookie in load_cookies(cookie_file):
            self._client.cookies.set(
                cookie["name"],
                cookie.get("value", ""),
                domain=cookie.get("domain", ""),
                path=cookie.get("path", "/"),
            )
        self._saved_cookies = self._cookie_snapshot()
        self._unsubscribe = session_store.subscribe(self._on_store_event)

    async def close(self):
        self._unsubscribe()
        await self._client.aclose()

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        query: Mapping[str, Any] | None = None,
        files: list[tuple[str, tuple]] | None = None,
        data: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one request and return the ok response, or raise ``ApiError``."""
        url = self.url_for(path)
        encoded = encode_query(query)
        if encoded:
            url = f"{url}{'&' if '?' in url else '?'}{encoded}"

        kwargs: dict[str, Any] = {}
        if files is not None:
            kwargs["files"] = files
            kwargs["data"] = dict(data or {})
        elif data is not None:
            kwargs["data"] = dict(data)
        elif body is not None:
            kwargs["json"] = body

        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise NetworkUnavailable(
                f"Backend unreachable ({type(e).__name__})", cause=e
            ) from e

        if resp.status_code == 401:
            message = _body_message(resp) or "Session expired"
            logger.warning(f"{method} {path} returned 401, invalidating session")
            self.session_store.invalidate()
            raise SessionExpired(message)

        if not resp.is_success:
            message = _body_message(resp) or _generic_message(resp)
            logger.debug(f"{method} {path} -> {resp.status_code}: {message}")
            raise HttpError(resp.status_code, message)

        self._persist_cookies()
        return resp

    async def request_json(self, path: str, method: str = "GET", **kwargs) -> Any:
        """Like ``request`` but parses the JSON body (``{}`` for 204)."""
        resp = await self.request(path, method, **kwargs)
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponse(
                f"{method} {path} returned a non-JSON body "
                f"(content-type {resp.headers.get('content-type', 'unknown')})"
            ) from e

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request_json(path, "GET", query=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request_json(path, "POST", body=body)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.request_json(path, "PUT", body=body)

    async def patch(self, path: str, body: Any = None) -> Any:
        return await self.request_json(path, "PATCH", body=body)

    async def delete(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request_json(path, "DELETE", query=params)

    async def upload(
        self,
        path: str,
        files: list[tuple[str, tuple]],
        fields: Mapping[str, str] | None = None,
        method: str = "POST",
    ) -> Any:
        """Multipart upload: ``files`` as httpx file tuples plus plain form fields."""
        return await self.request_json(path, method, files=files, data=fields)

    async def ping(self) -> dict:
        """Connection test against ``<service root>/health``. Never raises."""
        url = f"{self.service_root}/health"
        try:
            resp = await self._client.get(url)
            if not resp.is_success:
                return {"success": False, "error": f"HTTP {resp.status_code}: {resp.reason_phrase}"}
            return {"success": True, "data": resp.json()}
        except httpx.TransportError as e:
            return {"success": False, "error": f"{type(e).__name__}: {e}"}
        except ValueError:
            return {"success": False, "error": "Health endpoint returned a non-JSON body"}

    def _on_store_event(self, event: StoreEvent) -> None:
        if event in (StoreEvent.CLEARED, StoreEvent.EXPIRED):
            self._client.cookies.clear()
            self._persist_cookies()

    def _cookie_snapshot(self) -> list[dict]:
        return [
            {"name": c.name, "value": c.value, "domain": c.domain, "path": c.path}
            for c in self._client.cookies.jar
        ]

    def _persist_cookies(self) -> None:
        snapshot = self._cookie_snapshot()
        if snapshot == self._saved_cookies:
            return
        try:
            save_cookies(self._cookie_file, snapshot)
            self._saved_cookies = snapshot
        except OSError as e:
            logger.warning(f"Could not persist cookie jar: {e}")
