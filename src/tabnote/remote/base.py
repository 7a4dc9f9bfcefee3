"""Protocols for the hosted backend: table-oriented data service + session store."""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

from tabnote.models import Session

#: Event names emitted by a :class:`SessionStore`
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthListener = Callable[[str, "Session | None"], Any]
Row = dict[str, Any]


@runtime_checkable
class DataService(Protocol):
    """Common interface shared by every table backend.

    Implementations (PostgREST over HTTP, local DuckDB, ...) must satisfy this
    protocol so the view models can swap backends without changing call
    sites.  ``eq`` is a mapping of column -> value equality filters; every
    failure raises :class:`tabnote.errors.RemoteError`.
    """

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Row | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[Row]:
        """Return every matching row (possibly empty)."""
        ...

    async def select_one(self, table: str, *, columns: str = "*", eq: Row | None = None) -> Row:
        """Return exactly one row; raise :class:`NotFoundError` when absent."""
        ...

    async def maybe_one(self, table: str, *, columns: str = "*", eq: Row | None = None) -> Row | None:
        """Return one row or ``None`` when absent."""
        ...

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        """Insert *rows* and return them as stored (ids filled in)."""
        ...

    async def update(self, table: str, values: Row, *, eq: Row) -> list[Row]:
        """Apply *values* to every row matching *eq*; return the updated rows."""
        ...

    async def delete(self, table: str, *, eq: Row) -> None:
        """Delete every row matching *eq* (cascading to dependents)."""
        ...


@runtime_checkable
class SessionStore(Protocol):
    """Holds the authenticated identity and notifies on change."""

    async def get_session(self) -> Session | None:
        """The ambient session, if any."""
        ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register *listener*; return a callable that unsubscribes it."""
        ...

    async def sign_in_with_oauth(self, provider: str, *, redirect_to: str | None = None) -> str:
        """Return the URL the user must be redirected to."""
        ...

    async def sign_out(self) -> None:
        """Clear the session and emit :data:`SIGNED_OUT`."""
        ...
