"""Unit tests for tabnote.remote.duckdb_local.DuckDBDataService."""

import pytest

from tabnote.errors import NotFoundError, RemoteError
from tabnote.remote.base import DataService
from tabnote.remote.duckdb_local import DuckDBDataService


@pytest.fixture()
async def seeded(store: DuckDBDataService) -> dict[str, str]:
    [a] = await store.insert("notebooks", [{"title": "Alpha", "user_id": "u1", "updated_at": "2024-01-01T00:00:00.000000+00:00"}])
    [b] = await store.insert("notebooks", [{"title": "Beta", "user_id": "u1", "updated_at": "2024-03-01T00:00:00.000000+00:00"}])
    [c] = await store.insert("notebooks", [{"title": "Gamma", "user_id": "u2", "updated_at": "2024-02-01T00:00:00.000000+00:00"}])
    [t1] = await store.insert("tabs", [{"notebook_id": a["id"], "title": "One", "position": 0}])
    [t2] = await store.insert("tabs", [{"notebook_id": a["id"], "title": "Two", "position": 1}])
    await store.insert("notes", [{"tab_id": t1["id"], "content": "hello"}])
    return {"a": a["id"], "b": b["id"], "c": c["id"], "t1": t1["id"], "t2": t2["id"]}


class TestProtocol:
    def test_satisfies_data_service(self, store):
        assert isinstance(store, DataService)


# ---------------------------------------------------------------------------
# select / select_one / maybe_one
# ---------------------------------------------------------------------------


class TestSelect:
    async def test_filter_and_order(self, store, seeded):
        rows = await store.select("notebooks", eq={"user_id": "u1"}, order_by="updated_at", ascending=False)
        assert [r["title"] for r in rows] == ["Beta", "Alpha"]

    async def test_column_projection(self, store, seeded):
        rows = await store.select("notebooks", columns="id, title", eq={"id": seeded["a"]})
        assert rows == [{"id": seeded["a"], "title": "Alpha"}]

    async def test_empty_result(self, store):
        assert await store.select("tabs", eq={"notebook_id": "missing"}) == []

    async def test_select_one_not_found(self, store):
        with pytest.raises(NotFoundError) as info:
            await store.select_one("notes", eq={"tab_id": "missing"})
        assert info.value.code == "PGRST116"

    async def test_maybe_one(self, store, seeded):
        assert (await store.maybe_one("notes", eq={"tab_id": seeded["t1"]}))["content"] == "hello"
        assert await store.maybe_one("notes", eq={"tab_id": seeded["t2"]}) is None

    async def test_maybe_one_rejects_many(self, store, seeded):
        with pytest.raises(RemoteError):
            await store.maybe_one("notebooks", eq={"user_id": "u1"})

    async def test_unknown_column_is_remote_error(self, store):
        with pytest.raises(RemoteError) as info:
            await store.select("tabs", eq={"title; DROP TABLE tabs": "x"})
        assert info.value.code == "42703"

    async def test_unknown_table(self, store):
        with pytest.raises(RemoteError):
            await store.select("secrets")


# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------


class TestTabCountView:
    async def test_counts_tabs(self, store, seeded):
        rows = await store.select("notebooks_with_tab_count", order_by="updated_at", ascending=False)
        counts = {r["title"]: r["tab_count"] for r in rows}
        assert counts == {"Alpha": 2, "Beta": 0, "Gamma": 0}
        assert [r["title"] for r in rows] == ["Beta", "Gamma", "Alpha"]

    async def test_view_is_read_only(self, store):
        with pytest.raises(RemoteError):
            await store.insert("notebooks_with_tab_count", [{"title": "x"}])


# ---------------------------------------------------------------------------
# insert / update / delete
# ---------------------------------------------------------------------------


class TestWrites:
    async def test_insert_assigns_id_and_timestamps(self, store):
        [row] = await store.insert("notebooks", [{"title": "New", "user_id": "u1"}])
        assert row["id"]
        assert row["updated_at"] == row["created_at"]

    async def test_update_returns_rows(self, store, seeded):
        rows = await store.update("tabs", {"title": "Uno"}, eq={"id": seeded["t1"]})
        assert [r["title"] for r in rows] == ["Uno"]

    async def test_update_without_match(self, store):
        assert await store.update("tabs", {"title": "x"}, eq={"id": "missing"}) == []

    async def test_delete_notebook_cascades(self, store, seeded):
        await store.delete("notebooks", eq={"id": seeded["a"]})
        assert await store.select("tabs") == []
        assert await store.select("notes") == []
        assert len(await store.select("notebooks")) == 2

    async def test_delete_tab_cascades_to_note(self, store, seeded):
        await store.delete("tabs", eq={"id": seeded["t1"]})
        assert await store.select("notes") == []
        assert [t["title"] for t in await store.select("tabs")] == ["Two"]
