"""PostgREST + GoTrue backend over HTTP.

A thin async HTTP client for a hosted backend-as-a-service that exposes its
tables through PostgREST and its sessions through a GoTrue-style auth API.

Routes used
-----------
GET    /rest/v1/{table}?select=..&col=eq.v&order=col.asc   – select
POST   /rest/v1/{table}                                     – insert
PATCH  /rest/v1/{table}?col=eq.v                            – update
DELETE /rest/v1/{table}?col=eq.v                            – delete
GET    /auth/v1/user                                        – resolve a token
GET    /auth/v1/authorize?provider=..&redirect_to=..        – OAuth redirect
POST   /auth/v1/logout                                      – end the session

Every request carries the project's ``apikey`` header and an
``Authorization: Bearer <token>`` header (the user's access token once
signed in, the anonymous key before that).

Environment variables (all optional; direct kwargs take precedence):
    TABNOTE_URL        – project base URL (e.g. https://abc.example.co)
    TABNOTE_ANON_KEY   – public anonymous API key
"""

from __future__ import annotations

import inspect
import logging
import os
from typing import Any, Callable
from urllib.parse import urlencode

import httpx

from tabnote.errors import RemoteError
from tabnote.models import Session, User
from tabnote.remote.base import SIGNED_IN, SIGNED_OUT, AuthListener, Row

log = logging.getLogger(__name__)

_SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        raise RemoteError.from_body(body, fallback=f"HTTP {response.status_code}")
    raise RemoteError(f"HTTP {response.status_code}: {response.text[:200]}", code=str(response.status_code))


class RestDataService:
    """Table backend talking to PostgREST under ``/rest/v1``."""

    def __init__(
        self,
        url: str | None = None,
        *,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (url or os.getenv("TABNOTE_URL", "")).rstrip("/")
        self._api_key = api_key or os.getenv("TABNOTE_ANON_KEY", "")
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers={"apikey": self._api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self.set_access_token(access_token)

    def set_access_token(self, token: str | None) -> None:
        """Authenticate subsequent requests as *token* (``None`` -> anonymous)."""
        self._client.headers["Authorization"] = f"Bearer {token or self._api_key}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        log.debug("%s /rest/v1/%s %s", method, table, params or "")
        try:
            response = await self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {table} failed: {exc}") from exc
        _raise_for_error(response)
        return response

    @staticmethod
    def _params(
        columns: str = "*",
        eq: Row | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> dict[str, str]:
        params: dict[str, str] = {"select": columns}
        for column, value in (eq or {}).items():
            params[column] = _filter_value(value)
        if order_by:
            params["order"] = f"{order_by}.{'asc' if ascending else 'desc'}"
        return params

    # ------------------------------------------------------------------
    # DataService
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Row | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[Row]:
        r = await self._request("GET", table, params=self._params(columns, eq, order_by, ascending))
        return r.json() or []

    async def select_one(self, table: str, *, columns: str = "*", eq: Row | None = None) -> Row:
        r = await self._request(
            "GET", table, params=self._params(columns, eq), headers={"Accept": _SINGLE_OBJECT}
        )
        return r.json()

    async def maybe_one(self, table: str, *, columns: str = "*", eq: Row | None = None) -> Row | None:
        rows = await self.select(table, columns=columns, eq=eq)
        if len(rows) > 1:
            raise RemoteError(f"{table}: expected at most one row, got {len(rows)}")
        return rows[0] if rows else None

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        r = await self._request("POST", table, json=rows, headers={"Prefer": "return=representation"})
        return r.json() or []

    async def update(self, table: str, values: Row, *, eq: Row) -> list[Row]:
        r = await self._request(
            "PATCH",
            table,
            params={column: _filter_value(value) for column, value in eq.items()},
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return r.json() or []

    async def delete(self, table: str, *, eq: Row) -> None:
        await self._request("DELETE", table, params={column: _filter_value(value) for column, value in eq.items()})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RestDataService":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


class RestSessionStore:
    """GoTrue-style session store under ``/auth/v1``.

    The OAuth round-trip happens in the browser; the application hands the
    resulting tokens to :meth:`set_session`, which resolves the user and
    emits :data:`SIGNED_IN`.  An optional *data* service is kept in step with
    the current access token.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        api_key: str | None = None,
        data: RestDataService | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (url or os.getenv("TABNOTE_URL", "")).rstrip("/")
        self._api_key = api_key or os.getenv("TABNOTE_ANON_KEY", "")
        self._data = data
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/auth/v1",
            headers={"apikey": self._api_key},
            timeout=timeout,
            transport=transport,
        )

    async def _emit(self, event: str) -> None:
        if self._data is not None:
            self._data.set_access_token(self._session.access_token if self._session else None)
        for listener in list(self._listeners):
            result = listener(event, self._session)
            if inspect.isawaitable(result):
                await result

    # ------------------------------------------------------------------
    # SessionStore
    # ------------------------------------------------------------------

    async def get_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in_with_oauth(self, provider: str, *, redirect_to: str | None = None) -> str:
        params = {"provider": provider}
        if redirect_to:
            params["redirect_to"] = redirect_to
        return f"{self._base_url}/auth/v1/authorize?{urlencode(params)}"

    async def set_session(self, access_token: str, refresh_token: str | None = None) -> Session:
        """Adopt tokens returned by the OAuth redirect and emit :data:`SIGNED_IN`."""
        try:
            r = await self._client.get("/user", headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as exc:
            raise RemoteError(f"resolving session failed: {exc}") from exc
        _raise_for_error(r)
        self._session = Session(access_token=access_token, user=User.from_row(r.json()), refresh_token=refresh_token)
        await self._emit(SIGNED_IN)
        return self._session

    async def sign_out(self) -> None:
        if self._session is not None:
            try:
                r = await self._client.post(
                    "/logout", headers={"Authorization": f"Bearer {self._session.access_token}"}
                )
            except httpx.HTTPError as exc:
                raise RemoteError(f"sign-out failed: {exc}") from exc
            # An already-expired token is as good as signed out
            if r.status_code not in (401, 404):
                _raise_for_error(r)
        self._session = None
        await self._emit(SIGNED_OUT)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RestSessionStore":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
