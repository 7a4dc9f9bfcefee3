"""Shared fixtures: a DuckDB-backed data service that records every call.

``RecordingDataService`` wraps :class:`DuckDBDataService` and appends
``(op, table, detail)`` to ``calls`` before each operation runs, so tests
can assert on the order of remote requests.  ``fail(op, table)`` makes the
matching calls raise, and ``hold(op, table)`` parks the next matching call
on an :class:`asyncio.Event` until the test sets it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import pytest

from tabnote.editor import NotebookEditor
from tabnote.errors import RemoteError
from tabnote.models import User
from tabnote.remote.duckdb_local import DuckDBDataService
from tabnote.remote.local_auth import LocalSessionStore
from tabnote.session import SessionContext

#: Debounce window used by editor fixtures (seconds)
DELAY = 0.05


class RecordingDataService:
    def __init__(self, inner: DuckDBDataService) -> None:
        self.inner = inner
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self._failures: dict[tuple[str, str], RemoteError] = {}
        self._gates: dict[tuple[str, str], asyncio.Event] = {}

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def fail(self, op: str, table: str, error: RemoteError | None = None) -> None:
        self._failures[(op, table)] = error or RemoteError(f"{op} {table} failed")

    def recover(self, op: str, table: str) -> None:
        self._failures.pop((op, table), None)

    def hold(self, op: str, table: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[(op, table)] = gate
        return gate

    def ops(self, op: str | None = None, table: str | None = None) -> list[tuple[str, str, dict[str, Any]]]:
        return [c for c in self.calls if (op is None or c[0] == op) and (table is None or c[1] == table)]

    def index_of(self, op: str, table: str, **detail: Any) -> int:
        for i, (c_op, c_table, c_detail) in enumerate(self.calls):
            if c_op == op and c_table == table and all(c_detail.get(k) == v for k, v in detail.items()):
                return i
        raise AssertionError(f"no {op} on {table} with {detail} in {self.calls}")

    async def _call(self, op: str, table: str, detail: dict[str, Any], run: Callable[[], Awaitable[Any]]) -> Any:
        self.calls.append((op, table, detail))
        gate = self._gates.pop((op, table), None)
        if gate is not None:
            await gate.wait()
        error = self._failures.get((op, table))
        if error is not None:
            raise error
        return await run()

    # ------------------------------------------------------------------
    # DataService
    # ------------------------------------------------------------------

    async def select(self, table, *, columns="*", eq=None, order_by=None, ascending=True):
        return await self._call(
            "select",
            table,
            dict(eq or {}),
            lambda: self.inner.select(table, columns=columns, eq=eq, order_by=order_by, ascending=ascending),
        )

    async def select_one(self, table, *, columns="*", eq=None):
        return await self._call(
            "select_one", table, dict(eq or {}), lambda: self.inner.select_one(table, columns=columns, eq=eq)
        )

    async def maybe_one(self, table, *, columns="*", eq=None):
        return await self._call(
            "maybe_one", table, dict(eq or {}), lambda: self.inner.maybe_one(table, columns=columns, eq=eq)
        )

    async def insert(self, table, rows):
        detail = dict(rows[0]) if rows else {}
        return await self._call("insert", table, detail, lambda: self.inner.insert(table, rows))

    async def update(self, table, values, *, eq):
        return await self._call(
            "update", table, {**eq, **values}, lambda: self.inner.update(table, values, eq=eq)
        )

    async def delete(self, table, *, eq):
        return await self._call("delete", table, dict(eq), lambda: self.inner.delete(table, eq=eq))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> DuckDBDataService:
    db = DuckDBDataService()
    yield db
    db.close()


@pytest.fixture()
def data(store: DuckDBDataService) -> RecordingDataService:
    return RecordingDataService(store)


@pytest.fixture()
def user() -> User:
    return User(id="user-1", email="ada@example.com")


@pytest.fixture()
async def recipes(store: DuckDBDataService, user: User) -> dict[str, str]:
    """Notebook "Recipes" with tabs Breakfast (0) and Lunch (1); Breakfast has a note."""
    [nb] = await store.insert("notebooks", [{"title": "Recipes", "user_id": user.id}])
    [breakfast] = await store.insert("tabs", [{"notebook_id": nb["id"], "title": "Breakfast", "position": 0}])
    [lunch] = await store.insert("tabs", [{"notebook_id": nb["id"], "title": "Lunch", "position": 1}])
    await store.insert("notes", [{"tab_id": breakfast["id"], "content": "eggs"}])
    return {"notebook": nb["id"], "breakfast": breakfast["id"], "lunch": lunch["id"]}


@pytest.fixture()
def navigated() -> list[str]:
    return []


@pytest.fixture()
async def editor(data: RecordingDataService, navigated: list[str]) -> NotebookEditor:
    ed = NotebookEditor(data, confirm=lambda _msg: True, navigate=navigated.append, autosave_delay=DELAY)
    yield ed
    ed.saver.close()
    await ed.background.drain()


@pytest.fixture()
async def loaded(editor: NotebookEditor, recipes: dict[str, str], user: User, data: RecordingDataService):
    """Editor with "Recipes" loaded and the call log cleared."""
    assert await editor.load(recipes["notebook"], user)
    data.calls.clear()
    return editor


@pytest.fixture()
def auth_store() -> LocalSessionStore:
    return LocalSessionStore()


@pytest.fixture()
async def session(auth_store: LocalSessionStore, store: DuckDBDataService, user: User) -> SessionContext:
    """Started context with *user* signed in and a profile row present."""
    await store.insert("profiles", [{"id": user.id, "full_name": "Ada Lovelace", "email": user.email}])
    ctx = SessionContext(auth_store, store)
    await ctx.start()
    await auth_store.sign_in_as(user)
    yield ctx
    ctx.close()
