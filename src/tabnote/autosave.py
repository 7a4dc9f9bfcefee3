"""Trailing-edge debounced autosave.

:class:`DebouncedSaver` owns the one timer of an editor.  Every
:meth:`~DebouncedSaver.schedule` call replaces the pending draft and restarts
the quiescence window; only the draft still pending when the window closes
is written.

Saves never overlap.  A draft scheduled while a save is in flight is kept
pending without a timer; when the in-flight save completes a fresh window is
started for it.  :meth:`~DebouncedSaver.flush_now` skips the window
entirely (waiting for an in-flight save first), which is what a tab switch
needs before it loads another tab.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

#: Quiescence window used by the editor unless configured otherwise
DEFAULT_DELAY = 1.0


@dataclass(frozen=True)
class NoteDraft:
    """Content of one tab waiting to be written."""

    notebook_id: str
    tab_id: str
    content: str


class DebouncedSaver(Generic[T]):
    def __init__(self, save: Callable[[T], Awaitable[object]], delay: float = DEFAULT_DELAY) -> None:
        self._save = save
        self.delay = delay
        self._pending: T | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def pending(self) -> T | None:
        """Draft waiting for its window to close (or for a save to finish)."""
        return self._pending

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def schedule(self, draft: T) -> None:
        """Replace the pending draft and restart the window."""
        self._pending = draft
        self._cancel_timer()
        if not self.in_flight:
            self._start_timer()

    def cancel_pending(self) -> T | None:
        """Drop the pending draft without saving it; return what was dropped."""
        self._cancel_timer()
        dropped, self._pending = self._pending, None
        return dropped

    async def flush_now(self) -> bool:
        """Save the pending draft immediately; ``False`` when there was none."""
        self._cancel_timer()
        if self.in_flight:
            await self._task
            self._cancel_timer()
        if self._pending is None:
            return False
        await self._start_save()
        return True

    def close(self) -> None:
        self._cancel_timer()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _start_timer(self) -> None:
        self._handle = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self._pending is None or self.in_flight:
            return
        self._start_save()

    def _start_save(self) -> asyncio.Task:
        draft, self._pending = self._pending, None
        self._task = asyncio.ensure_future(self._run(draft))
        self._task.add_done_callback(self._after_save)
        return self._task

    async def _run(self, draft: T) -> None:
        try:
            await self._save(draft)
        except Exception:  # noqa: BLE001
            # Runs from a timer: there is no caller to propagate to
            log.exception("Autosave failed")

    def _after_save(self, _task: asyncio.Task) -> None:
        # A draft captured during the save gets its own window
        if self._pending is not None and self._handle is None:
            self._start_timer()
