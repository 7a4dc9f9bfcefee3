"""NotebookEditor: the state behind one open notebook.

Holds the notebook, its ordered tabs, the active tab's note content and the
autosave state, and keeps them in step with the remote tables.

Ordering rules
--------------
* :meth:`NotebookEditor.load` bumps a generation counter.  Every await in a
  load, a tab operation or a notebook operation is followed by a generation
  check, so an operation overtaken by a newer load drops its results instead
  of applying them to the other notebook.  Remote writes that already
  happened are not undone.
* While a load runs, edits, tab operations and saves are rejected.
* Before the active tab changes, the outgoing tab's draft is flushed, so a
  save for the outgoing tab is always issued before the incoming note is
  fetched.

Failure semantics: a failed remote call is logged and the operation returns
``False`` / ``None`` with local state unchanged.  Secondary ``updated_at``
bumps go through :class:`~tabnote.background.BackgroundWrites` and never
affect the primary operation.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from tabnote.autosave import DEFAULT_DELAY, DebouncedSaver, NoteDraft
from tabnote.background import BackgroundWrites
from tabnote.errors import NotFoundError, RemoteError
from tabnote.models import Note, Notebook, Tab, User, next_position, utc_now_iso
from tabnote.remote.base import DataService

if TYPE_CHECKING:
    from tabnote.config import Settings

log = logging.getLogger(__name__)

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]

LAST_TAB_MESSAGE = "Cannot delete the only tab. Notebooks must have at least one tab."
DELETE_TAB_PROMPT = "Are you sure you want to delete this tab? This action cannot be undone."
DELETE_NOTEBOOK_PROMPT = "Are you sure you want to delete this notebook? This action cannot be undone."


def _decline(_message: str) -> bool:
    return False


class NotebookEditor:
    """Editor state for one notebook.

    *confirm* is asked before destructive operations and may be sync or
    async; without one, deletions are declined.  *navigate* is called with
    ``"/"`` once the notebook itself has been deleted.
    """

    def __init__(
        self,
        data: DataService,
        *,
        confirm: Confirm | None = None,
        navigate: Callable[[str], object] | None = None,
        autosave_delay: float = DEFAULT_DELAY,
    ) -> None:
        self._data = data
        self._confirm = confirm or _decline
        self._navigate = navigate
        self.notebook: Notebook | None = None
        self.tabs: list[Tab] = []
        self.active_tab_id: str | None = None
        self.note_content = ""
        self.last_saved_at: datetime | None = None
        self.is_saving = False
        self.loading = False
        self.dirty = False
        #: Last message meant for the user (e.g. why a deletion was refused)
        self.notice: str | None = None
        self._generation = 0
        self.saver: DebouncedSaver[NoteDraft] = DebouncedSaver(self.save_note, autosave_delay)
        self.background = BackgroundWrites()

    @classmethod
    def from_settings(cls, data: DataService, settings: "Settings", **kwargs: Any) -> "NotebookEditor":
        """Editor using the configured autosave window."""
        kwargs.setdefault("autosave_delay", settings.autosave_delay)
        return cls(data, **kwargs)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def active_tab(self) -> Tab | None:
        return next((t for t in self.tabs if t.id == self.active_tab_id), None)

    @property
    def ready(self) -> bool:
        return self.notebook is not None and not self.loading

    def _tab(self, tab_id: str) -> Tab | None:
        return next((t for t in self.tabs if t.id == tab_id), None)

    def _draft(self) -> NoteDraft | None:
        if self.notebook is None or self.active_tab_id is None:
            return None
        return NoteDraft(self.notebook.id, self.active_tab_id, self.note_content)

    def _clear(self) -> None:
        self.notebook = None
        self.tabs = []
        self.active_tab_id = None
        self.note_content = ""
        self.dirty = False

    async def _ask(self, message: str) -> bool:
        answer = self._confirm(message)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    def _touch(self, notebook_id: str) -> None:
        """Bump the notebook's ``updated_at`` without waiting for it."""
        self.background.fire(
            self._data.update("notebooks", {"updated_at": utc_now_iso()}, eq={"id": notebook_id}),
            label=f"touch notebook {notebook_id}",
        )

    async def _fetch_note(self, tab_id: str) -> str:
        try:
            row = await self._data.select_one("notes", columns="id, tab_id, content", eq={"tab_id": tab_id})
        except NotFoundError:
            return ""
        except RemoteError as exc:
            log.error("Error fetching note content: %s", exc)
            return ""
        return Note.from_row(row).content

    async def _flush_outgoing(self) -> None:
        """Write the active tab's unsaved content before the active tab changes."""
        draft = self._draft()
        if self.dirty and draft is not None and draft.content:
            self.saver.schedule(draft)
        await self.saver.flush_now()

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self, notebook_id: str, user: User | None) -> bool:
        """Fetch the notebook, its tabs and the first tab's note.

        Returns ``False`` when the load failed or was superseded.
        """
        self._generation += 1
        generation = self._generation
        if user is None or not notebook_id:
            self.saver.cancel_pending()
            self.loading = False
            self._clear()
            return False

        # Edits typed while a flush is in flight get flushed too
        while True:
            await self._flush_outgoing()
            if generation != self._generation:
                return False
            if self.saver.pending is None:
                break

        self.loading = True
        self._clear()
        self.last_saved_at = None
        try:
            try:
                notebook_row = await self._data.select_one("notebooks", eq={"id": notebook_id})
                if generation != self._generation:
                    log.debug("Discarding superseded load of notebook %s", notebook_id)
                    return False
                tab_rows = await self._data.select(
                    "tabs", eq={"notebook_id": notebook_id}, order_by="position", ascending=True
                )
            except RemoteError as exc:
                if generation == self._generation:
                    log.error("Error fetching notebook data: %s", exc)
                return False
            if generation != self._generation:
                log.debug("Discarding superseded load of notebook %s", notebook_id)
                return False

            self.notebook = Notebook.from_row(notebook_row)
            self.tabs = [Tab.from_row(row) for row in tab_rows]
            if self.tabs:
                first = self.tabs[0]
                self.active_tab_id = first.id
                content = await self._fetch_note(first.id)
                if generation != self._generation:
                    log.debug("Discarding superseded load of notebook %s", notebook_id)
                    return False
                self.note_content = content
            return True
        finally:
            if generation == self._generation:
                self.loading = False

    # ------------------------------------------------------------------
    # Content + autosave
    # ------------------------------------------------------------------

    def set_content(self, text: str) -> bool:
        """Apply an edit to the active tab and (re)start the autosave window."""
        if not self.ready or self.active_tab_id is None:
            log.debug("Edit rejected: editor not ready")
            return False
        self.note_content = text
        self.dirty = True
        if text:
            self.saver.schedule(self._draft())
        else:
            # Emptying a note is never persisted; drop any older draft too
            self.saver.cancel_pending()
        return True

    async def save_note(self, draft: NoteDraft) -> bool:
        """Insert or update the note of ``draft.tab_id``.

        Empty content and overlapping saves are skipped.
        """
        if not draft.content or self.is_saving:
            return False
        if self.loading:
            log.debug("Save rejected: load in progress")
            return False

        self.is_saving = True
        try:
            existing = await self._data.maybe_one("notes", columns="id", eq={"tab_id": draft.tab_id})
            if existing:
                await self._data.update("notes", {"content": draft.content}, eq={"id": existing["id"]})
            else:
                await self._data.insert("notes", [{"tab_id": draft.tab_id, "content": draft.content}])
        except RemoteError as exc:
            log.error("Error saving note: %s", exc)
            return False
        finally:
            self.is_saving = False

        self.last_saved_at = datetime.now(timezone.utc)
        if draft.tab_id == self.active_tab_id and draft.content == self.note_content:
            self.dirty = False
        self._touch(draft.notebook_id)
        return True

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    async def switch_tab(self, tab_id: str) -> bool:
        """Flush the outgoing tab, then activate *tab_id* and fetch its note."""
        if not self.ready or self._tab(tab_id) is None:
            return False
        if tab_id == self.active_tab_id:
            return True
        generation = self._generation

        await self._flush_outgoing()
        if generation != self._generation:
            return False

        self.active_tab_id = tab_id
        self.note_content = ""
        self.dirty = False
        content = await self._fetch_note(tab_id)
        if generation != self._generation or self.active_tab_id != tab_id:
            return False
        self.note_content = content
        return True

    async def create_tab(self, title: str) -> Tab | None:
        """Append a tab after the highest position and make it active."""
        title = title.strip()
        if not title or not self.ready:
            return None
        generation = self._generation
        notebook_id = self.notebook.id
        position = next_position(self.tabs)
        try:
            rows = await self._data.insert(
                "tabs", [{"notebook_id": notebook_id, "title": title, "position": position}]
            )
        except RemoteError as exc:
            log.error("Error creating new tab: %s", exc)
            return None

        tab = Tab.from_row(rows[0])
        self._touch(notebook_id)
        if generation != self._generation:
            log.debug("Notebook changed while creating tab %s", tab.id)
            return None
        await self._flush_outgoing()
        if generation != self._generation:
            log.debug("Notebook changed while creating tab %s", tab.id)
            return None
        self.tabs = [*self.tabs, tab]
        self.active_tab_id = tab.id
        self.note_content = ""
        self.dirty = False
        return tab

    async def rename_tab(self, tab_id: str, title: str) -> bool:
        """Rename a tab; a blank title cancels the rename."""
        title = title.strip()
        if not title or not self.ready or self._tab(tab_id) is None:
            return False
        generation = self._generation
        notebook_id = self.notebook.id
        try:
            await self._data.update("tabs", {"title": title}, eq={"id": tab_id})
        except RemoteError as exc:
            log.error("Error renaming tab: %s", exc)
            return False
        self._touch(notebook_id)
        if generation != self._generation:
            return False
        self.tabs = [replace(t, title=title) if t.id == tab_id else t for t in self.tabs]
        return True

    async def delete_tab(self, tab_id: str) -> bool:
        """Delete a tab (and its note) after confirmation; never the last one."""
        if not self.ready or self._tab(tab_id) is None:
            return False
        if len(self.tabs) <= 1:
            self.notice = LAST_TAB_MESSAGE
            log.debug("Refusing to delete the last tab %s", tab_id)
            return False
        generation = self._generation
        notebook_id = self.notebook.id
        if not await self._ask(DELETE_TAB_PROMPT) or generation != self._generation:
            return False

        was_active = tab_id == self.active_tab_id
        dropped = self.saver.cancel_pending() if was_active else None
        try:
            await self._data.delete("tabs", eq={"id": tab_id})
        except RemoteError as exc:
            log.error("Error deleting tab: %s", exc)
            if dropped is not None and generation == self._generation:
                self.saver.schedule(dropped)
            return False

        self._touch(notebook_id)
        if generation != self._generation:
            return False
        self.tabs = [t for t in self.tabs if t.id != tab_id]
        if was_active:
            new_active = self.tabs[0].id
            self.active_tab_id = new_active
            self.note_content = ""
            self.dirty = False
            content = await self._fetch_note(new_active)
            if generation == self._generation and self.active_tab_id == new_active:
                self.note_content = content
        return True

    # ------------------------------------------------------------------
    # Notebook
    # ------------------------------------------------------------------

    async def rename_notebook(self, title: str) -> bool:
        """Rename the notebook; a blank title reverts without a request."""
        if not self.ready:
            return False
        title = title.strip()
        if not title:
            return False
        generation = self._generation
        now = utc_now_iso()
        try:
            await self._data.update("notebooks", {"title": title, "updated_at": now}, eq={"id": self.notebook.id})
        except RemoteError as exc:
            log.error("Error updating notebook title: %s", exc)
            return False
        if generation != self._generation:
            return False
        self.notebook = replace(self.notebook, title=title, updated_at=now)
        return True

    async def delete_notebook(self) -> bool:
        """Delete the notebook with all its tabs and notes, then navigate away.

        Returns ``False`` when another notebook was loaded in the meantime;
        the editor then stays on that notebook.
        """
        if not self.ready:
            return False
        generation = self._generation
        notebook_id = self.notebook.id
        if not await self._ask(DELETE_NOTEBOOK_PROMPT) or generation != self._generation:
            return False
        dropped = self.saver.cancel_pending()
        try:
            await self._data.delete("notebooks", eq={"id": notebook_id})
        except RemoteError as exc:
            log.error("Error deleting notebook: %s", exc)
            if dropped is not None and generation == self._generation:
                self.saver.schedule(dropped)
            return False
        if generation != self._generation:
            log.debug("Notebook %s deleted after another was loaded", notebook_id)
            return False

        self._generation += 1
        self._clear()
        if self._navigate is not None:
            self._navigate("/")
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Write any pending draft and wait for background writes."""
        await self.saver.flush_now()
        self.saver.close()
        await self.background.drain()
