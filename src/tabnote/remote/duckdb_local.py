"""Local DuckDB table backend.

Holds the same four tables and read view as the hosted backend inside a
DuckDB database (in-memory by default), so the view models can run offline
and in tests without a network.  Rows are read back through :mod:`polars`
(``.pl().to_dicts()``).

Differences from the hosted service
-----------------------------------
* Ownership / row-level policies are not enforced.
* Cascade deletes (notebook -> tabs -> notes) are emulated here, since
  DuckDB foreign keys do not cascade.
* ``id`` values are uuid4 strings generated client-side when not supplied.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

import duckdb

from tabnote.errors import NotFoundError, RemoteError
from tabnote.models import utc_now_iso
from tabnote.remote.base import Row

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id          VARCHAR PRIMARY KEY,
        full_name   VARCHAR,
        avatar_url  VARCHAR,
        email       VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notebooks (
        id          VARCHAR PRIMARY KEY,
        user_id     VARCHAR,
        title       VARCHAR NOT NULL,
        description VARCHAR,
        created_at  VARCHAR,
        updated_at  VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tabs (
        id          VARCHAR PRIMARY KEY,
        notebook_id VARCHAR NOT NULL,
        title       VARCHAR NOT NULL,
        position    INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notes (
        id          VARCHAR PRIMARY KEY,
        tab_id      VARCHAR NOT NULL,
        content     TEXT
    )
    """,
    """
    CREATE OR REPLACE VIEW notebooks_with_tab_count AS
    SELECT
        n.id, n.user_id, n.title, n.description, n.updated_at,
        COUNT(t.id) AS tab_count
    FROM notebooks n
    LEFT JOIN tabs t ON t.notebook_id = n.id
    GROUP BY n.id, n.user_id, n.title, n.description, n.updated_at
    """,
)

_VIEWS = frozenset({"notebooks_with_tab_count"})

# Parent table -> (child table, foreign key column)
_CASCADES: dict[str, tuple[str, str]] = {
    "notebooks": ("tabs", "notebook_id"),
    "tabs": ("notes", "tab_id"),
}


class DuckDBDataService:
    """In-process :class:`~tabnote.remote.base.DataService` backed by DuckDB."""

    def __init__(self, path: str = ":memory:") -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(str(path))
        for statement in _SCHEMA:
            self.conn.execute(statement)
        self._columns: dict[str, list[str]] = {
            table: [row[0] for row in self.conn.execute(f"DESCRIBE {table}").fetchall()]
            for table in ("profiles", "notebooks", "tabs", "notes", *_VIEWS)
        }

    # ------------------------------------------------------------------
    # SQL helpers
    # ------------------------------------------------------------------

    def _check_table(self, table: str, *, writable: bool = False) -> None:
        if table not in self._columns:
            raise RemoteError(f'relation "{table}" does not exist', code="42P01")
        if writable and table in _VIEWS:
            raise RemoteError(f'cannot modify view "{table}"', code="42809")

    def _check_columns(self, table: str, columns: list[str]) -> None:
        for column in columns:
            if not _IDENT_RE.match(column) or column not in self._columns[table]:
                raise RemoteError(f'column "{column}" of "{table}" does not exist', code="42703")

    def _projection(self, table: str, columns: str) -> str:
        if columns.strip() == "*":
            return "*"
        names = [c.strip() for c in columns.split(",") if c.strip()]
        self._check_columns(table, names)
        return ", ".join(names)

    def _where(self, table: str, eq: Row | None) -> tuple[str, list[Any]]:
        if not eq:
            return "", []
        self._check_columns(table, list(eq))
        clauses = [f"{column} IS NULL" if value is None else f"{column} = ?" for column, value in eq.items()]
        params = [value for value in eq.values() if value is not None]
        return "WHERE " + " AND ".join(clauses), params

    def _fetch(self, sql: str, params: list[Any]) -> list[Row]:
        try:
            return self.conn.execute(sql, params).pl().to_dicts()
        except duckdb.Error as exc:
            raise RemoteError(str(exc)) from exc

    def _run(self, sql: str, params: list[Any]) -> None:
        try:
            self.conn.execute(sql, params)
        except duckdb.Error as exc:
            raise RemoteError(str(exc)) from exc

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
        self._check_table(table)
        where, params = self._where(table, eq)
        order = ""
        if order_by:
            self._check_columns(table, [order_by])
            order = f"ORDER BY {order_by} {'ASC' if ascending else 'DESC'}"
        return self._fetch(f"SELECT {self._projection(table, columns)} FROM {table} {where} {order}", params)

    async def select_one(self, table: str, *, columns: str = "*", eq: Row | None = None) -> Row:
        rows = await self.select(table, columns=columns, eq=eq)
        if len(rows) != 1:
            raise NotFoundError(f"JSON object requested, {len(rows)} rows returned from {table}")
        return rows[0]

    async def maybe_one(self, table: str, *, columns: str = "*", eq: Row | None = None) -> Row | None:
        rows = await self.select(table, columns=columns, eq=eq)
        if len(rows) > 1:
            raise RemoteError(f"{table}: expected at most one row, got {len(rows)}")
        return rows[0] if rows else None

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        self._check_table(table, writable=True)
        inserted: list[Row] = []
        for row in rows:
            record = dict(row)
            record.setdefault("id", str(uuid.uuid4()))
            if table == "notebooks":
                now = utc_now_iso()
                record.setdefault("created_at", now)
                record.setdefault("updated_at", now)
            names = list(record)
            self._check_columns(table, names)
            placeholders = ", ".join("?" for _ in names)
            self._run(
                f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
                list(record.values()),
            )
            inserted.extend(self._fetch(f"SELECT * FROM {table} WHERE id = ?", [record["id"]]))
        return inserted

    async def update(self, table: str, values: Row, *, eq: Row) -> list[Row]:
        self._check_table(table, writable=True)
        if not values:
            return []
        self._check_columns(table, list(values))
        where, params = self._where(table, eq)
        ids = [row["id"] for row in self._fetch(f"SELECT id FROM {table} {where}", params)]
        if not ids:
            return []
        assignments = ", ".join(f"{column} = ?" for column in values)
        self._run(f"UPDATE {table} SET {assignments} {where}", [*values.values(), *params])
        placeholders = ", ".join("?" for _ in ids)
        return self._fetch(f"SELECT * FROM {table} WHERE id IN ({placeholders})", ids)

    async def delete(self, table: str, *, eq: Row) -> None:
        self._check_table(table, writable=True)
        where, params = self._where(table, eq)
        ids = [row["id"] for row in self._fetch(f"SELECT id FROM {table} {where}", params)]
        self._delete_ids(table, ids)

    def _delete_ids(self, table: str, ids: list[str]) -> None:
        if not ids:
            return
        placeholders = ", ".join("?" for _ in ids)
        if table in _CASCADES:
            child, fk = _CASCADES[table]
            child_ids = [
                row["id"]
                for row in self._fetch(f"SELECT id FROM {child} WHERE {fk} IN ({placeholders})", ids)
            ]
            self._delete_ids(child, child_ids)
        self._run(f"DELETE FROM {table} WHERE id IN ({placeholders})", ids)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DuckDBDataService":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
