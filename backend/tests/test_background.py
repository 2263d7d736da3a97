import asyncio
import logging

import pytest

from sportsfeed.errors import PersistenceError
from sportsfeed.services.background import BackgroundSyncRunner


def test_failed_task_is_logged_and_discarded(caplog: pytest.LogCaptureFixture) -> None:
    runner = BackgroundSyncRunner()

    async def failing() -> None:
        raise PersistenceError("games upsert failed")

    async def run() -> None:
        runner.fire_and_forget(failing(), "persist-scores-nba")
        assert runner.pending == 1
        await runner.drain(timeout=1)

    with caplog.at_level(logging.ERROR):
        asyncio.run(run())

    assert runner.pending == 0
    assert "background sync failed: task=persist-scores-nba" in caplog.text


def test_caller_does_not_wait_for_task() -> None:
    runner = BackgroundSyncRunner()
    finished: list[str] = []

    async def slow() -> None:
        await asyncio.sleep(0.05)
        finished.append("done")

    async def run() -> list[str]:
        runner.fire_and_forget(slow(), "slow")
        before = list(finished)
        await runner.drain(timeout=1)
        return before

    assert asyncio.run(run()) == []
    assert finished == ["done"]


def test_drain_cancels_stragglers(caplog: pytest.LogCaptureFixture) -> None:
    runner = BackgroundSyncRunner()

    async def run() -> None:
        runner.fire_and_forget(asyncio.sleep(10), "stuck")
        await runner.drain(timeout=0.01)
        await asyncio.sleep(0)

    with caplog.at_level(logging.WARNING):
        asyncio.run(run())

    assert "background syncs still running at drain timeout" in caplog.text
