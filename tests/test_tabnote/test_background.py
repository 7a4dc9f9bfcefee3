"""Unit tests for tabnote.background.BackgroundWrites."""

import asyncio
import logging

from tabnote.background import BackgroundWrites


async def _ok(log: list[str]) -> None:
    await asyncio.sleep(0)
    log.append("done")


async def _fail() -> None:
    raise RuntimeError("network down")


class TestBackgroundWrites:
    async def test_fire_does_not_block(self):
        writes = BackgroundWrites()
        log: list[str] = []
        writes.fire(_ok(log), label="touch")
        assert log == []
        assert writes.pending == 1
        await writes.drain()
        assert log == ["done"]
        assert writes.pending == 0

    async def test_failure_is_logged_not_raised(self, caplog):
        writes = BackgroundWrites()
        with caplog.at_level(logging.WARNING, logger="tabnote.background"):
            writes.fire(_fail(), label="touch notebook")
            await writes.drain()
        assert writes.failures == 1
        assert "Background write 'touch notebook' failed: network down" in caplog.text

    async def test_drain_with_nothing_pending(self):
        await BackgroundWrites().drain()
