"""Fire-and-forget secondary writes.

Some writes only exist to keep derived state fresh, like bumping a
notebook's ``updated_at`` after one of its notes is saved.  They run as
background tasks: the primary operation never waits for them and never
fails because of them.  Failures are logged at ``WARNING`` and dropped.

The tasks are still tracked, so :meth:`BackgroundWrites.drain` can wait for
them on shutdown (and in tests).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable

log = logging.getLogger(__name__)


class BackgroundWrites:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    def fire(self, write: Awaitable[object], *, label: str) -> asyncio.Task:
        """Start *write* without awaiting it."""
        task = asyncio.ensure_future(write)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._done(t, label))
        return task

    def _done(self, task: asyncio.Task, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            log.warning("Background write '%s' failed: %s", label, exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every started write has finished (successfully or not)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
