"""HTTP client for the hosted database/auth service.

Rows go through the PostgREST endpoint (``/rest/v1/<table>``), sessions
through GoTrue (``/auth/v1/...``). Change notifications are produced by
polling each watched table and comparing a digest of the result, so any
insert/update/delete shows up as one "something changed" callback.
"""
import asyncio
import hashlib
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

import httpx

from config import BackendConfig, REALTIME_POLL_SECONDS, REMOTE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"

ChangeCallback = Callable[[str], Any]


class RemoteError(Exception):
    """Base class for failures talking to the remote store."""
    pass


class RemoteUnavailableError(RemoteError):
    """The remote store could not be reached or failed on its side (5xx)."""
    pass


class RemoteRequestError(RemoteError):
    """The remote store rejected the request (4xx)."""

    def __init__(self, status_code: int, code: str = "", message: str = "") -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}".strip())


class ChangeFeed(Protocol):
    """Source of per-table change notifications."""

    def subscribe(self, table: str, callback: ChangeCallback) -> str: ...

    def unsubscribe(self, handle: str) -> None: ...


def _error_from_response(resp: httpx.Response) -> RemoteRequestError:
    code = ""
    message = resp.text
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = str(body.get("code") or body.get("error") or body.get("error_code") or "")
        message = str(
            body.get("message")
            or body.get("error_description")
            or body.get("msg")
            or message
        )
    return RemoteRequestError(resp.status_code, code, message)


def _eq_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {col: f"eq.{value}" for col, value in (filters or {}).items()}


class RemoteClient:
    """Async client for rows, auth and change polling.

    One instance per process, built by ``core.bootstrap`` when the backend
    config is usable. ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: BackendConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = REALTIME_POLL_SECONDS,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
    ) -> None:
        self._config = config
        self._transport = transport
        self._timeout = timeout
        self.poll_interval = poll_interval
        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = None
        self._polls: Dict[str, asyncio.Task] = {}

    @property
    def config(self) -> BackendConfig:
        return self._config

    def set_access_token(self, token: Optional[str]) -> None:
        """Use a user session token instead of the anon key for requests."""
        self._access_token = token

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._config.anon_key,
            "Authorization": f"Bearer {self._access_token or self._config.anon_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one request and map failures onto RemoteError subclasses.

        Raises:
            RemoteUnavailableError: Connection failure, timeout or 5xx.
            RemoteRequestError: 4xx response.
        """
        client = self._get_client()
        try:
            resp = await client.request(
                method, path, params=params, json=json, headers=self._headers(headers)
            )
        except httpx.TimeoutException as e:
            raise RemoteUnavailableError(f"Timeout on {method} {path}") from e
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"Cannot reach remote store: {e}") from e

        if resp.status_code >= 500:
            raise RemoteUnavailableError(f"{method} {path} failed with {resp.status_code}")
        if resp.status_code >= 400:
            raise _error_from_response(resp)
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            # Proxies and captive portals answer 2xx with HTML
            raise RemoteUnavailableError(
                f"Unexpected non-JSON response from {resp.request.url.path}"
            ) from e

    @classmethod
    def _rows(cls, resp: httpx.Response) -> List[Dict[str, Any]]:
        if not resp.content:
            return []
        data = cls._json(resp)
        if isinstance(data, list):
            return data
        return [data]

    # ── Rows ───────────────────────────────────────────────────────────

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
    ) -> List[Dict[str, Any]]:
        params = {"select": columns}
        params.update(_eq_filters(filters))
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        resp = await self._request("GET", f"{REST_PATH}/{table}", params=params)
        return self._rows(resp)

    async def select_one(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, columns=columns, filters=filters)
        return rows[0] if rows else None

    async def insert(
        self,
        table: str,
        rows: Union[Dict[str, Any], List[Dict[str, Any]]],
    ) -> List[Dict[str, Any]]:
        """Insert one or many rows and return them as stored."""
        payload = rows if isinstance(rows, list) else [rows]
        resp = await self._request(
            "POST",
            f"{REST_PATH}/{table}",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(resp)

    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        resp = await self._request(
            "PATCH",
            f"{REST_PATH}/{table}",
            params=_eq_filters(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(resp)

    async def delete(self, table: str, filters: Dict[str, Any]) -> None:
        if not filters:
            raise ValueError("Refusing to delete without a filter")
        await self._request("DELETE", f"{REST_PATH}/{table}", params=_eq_filters(filters))

    # ── Auth ───────────────────────────────────────────────────────────

    async def auth_sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Password grant. Returns the token payload (access_token, user, ...)."""
        resp = await self._request(
            "POST",
            f"{AUTH_PATH}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._json(resp)

    async def auth_sign_out(self) -> None:
        await self._request("POST", f"{AUTH_PATH}/logout")

    # ── Change feed ────────────────────────────────────────────────────

    def subscribe(self, table: str, callback: ChangeCallback) -> str:
        """Start polling ``table``; ``callback(table)`` runs on every change.

        Must be called from inside the running event loop.
        """
        handle = str(uuid.uuid4())
        self._polls[handle] = asyncio.create_task(self._poll_loop(table, callback))
        logger.info(f"Watching remote table {table}")
        return handle

    def unsubscribe(self, handle: str) -> None:
        task = self._polls.pop(handle, None)
        if task is not None:
            task.cancel()

    async def _table_digest(self, table: str) -> str:
        resp = await self._request("GET", f"{REST_PATH}/{table}", params={"select": "*"})
        return hashlib.sha256(resp.content).hexdigest()

    async def _poll_loop(self, table: str, callback: ChangeCallback) -> None:
        last_digest: Optional[str] = None
        try:
            while True:
                try:
                    digest = await self._table_digest(table)
                except RemoteError as e:
                    logger.warning(f"Polling {table} failed: {e}")
                else:
                    if last_digest is not None and digest != last_digest:
                        try:
                            callback(table)
                        except Exception as e:
                            logger.error(f"Change handler for {table} failed: {e}")
                    last_digest = digest
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.debug(f"Stopped watching {table}")
            raise

    async def close(self) -> None:
        for handle in list(self._polls):
            self.unsubscribe(handle)
        if self._client is not None:
            await self._client.aclose()
            self._client = None
