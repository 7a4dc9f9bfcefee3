"""NotebookList: the dashboard grid and the sidebar list of notebooks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import polars as pl

from tabnote.errors import RemoteError
from tabnote.models import FIRST_TAB_TITLE, Notebook, NotebookSummary

if TYPE_CHECKING:
    from tabnote.remote.base import DataService
    from tabnote.session import SessionContext

log = logging.getLogger(__name__)

NO_MATCHES_MESSAGE = "No notebooks match your search."
NO_NOTEBOOKS_MESSAGE = "You have no notebooks yet. Create one from the sidebar to get started!"

_FRAME_COLUMNS = ["id", "title", "description", "tab_count", "updated_at"]


class NotebookList:
    """Notebooks visible to the signed-in user.

    ``notebooks`` comes from the ``notebooks_with_tab_count`` view (dashboard),
    ``owned`` from ``notebooks`` filtered by owner (sidebar).
    """

    def __init__(self, data: "DataService", session: "SessionContext") -> None:
        self._data = data
        self._session = session
        self.notebooks: list[NotebookSummary] = []
        self.owned: list[Notebook] = []
        self.search_term = ""
        self.loading = False

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Re-fetch the dashboard rows, most recently updated first."""
        self.loading = True
        try:
            rows = await self._data.select("notebooks_with_tab_count", order_by="updated_at", ascending=False)
        except RemoteError as exc:
            log.error("Error fetching notebooks: %s", exc)
            return False
        finally:
            self.loading = False
        self.notebooks = [NotebookSummary.from_row(row) for row in rows]
        return True

    async def refresh_owned(self) -> bool:
        """Re-fetch the sidebar list of the user's own notebooks."""
        user = self._session.user
        if user is None:
            self.owned = []
            return False
        try:
            rows = await self._data.select(
                "notebooks",
                columns="id, title, updated_at",
                eq={"user_id": user.id},
                order_by="updated_at",
                ascending=False,
            )
        except RemoteError as exc:
            log.error("Error fetching notebooks: %s", exc)
            return False
        self.owned = [Notebook.from_row(row) for row in rows]
        return True

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @property
    def visible(self) -> list[NotebookSummary]:
        """Dashboard rows whose title contains the search term (case-insensitive)."""
        q = self.search_term.lower()
        return [n for n in self.notebooks if q in n.title.lower()]

    @property
    def empty_message(self) -> str | None:
        if self.visible:
            return None
        return NO_MATCHES_MESSAGE if self.search_term else NO_NOTEBOOKS_MESSAGE

    def to_frame(self) -> pl.DataFrame:
        """Visible rows as a Polars DataFrame (for table widgets)."""
        return pl.DataFrame(
            [n.to_dict() for n in self.visible],
            schema={
                "id": pl.Utf8,
                "title": pl.Utf8,
                "description": pl.Utf8,
                "tab_count": pl.Int64,
                "updated_at": pl.Utf8,
            },
        ).select(_FRAME_COLUMNS)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_notebook(self, title: str) -> Notebook | None:
        """Create a notebook with its first tab; a blank title is a no-op."""
        title = title.strip()
        user = self._session.user
        if not title or user is None:
            return None
        try:
            rows = await self._data.insert("notebooks", [{"title": title, "user_id": user.id}])
            notebook = Notebook.from_row(rows[0])
            await self._data.insert(
                "tabs", [{"notebook_id": notebook.id, "title": FIRST_TAB_TITLE, "position": 0}]
            )
        except RemoteError as exc:
            log.error("Error creating notebook: %s", exc)
            return None
        await self.refresh_owned()
        return notebook
