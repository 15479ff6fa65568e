import asyncio
import logging
import threading
import time

import pytest

from stageplan.services.scheduler import RecomputeScheduler


def _recorder():
    calls: list[tuple[int, int]] = []
    lock = threading.Lock()

    def recompute(session_factory, project_id: int, stage_id: int) -> None:
        with lock:
            calls.append((project_id, stage_id))

    return calls, recompute


def test_rapid_edits_to_one_stage_coalesce_into_one_recompute() -> None:
    calls, recompute = _recorder()

    async def scenario() -> None:
        scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.05, recompute=recompute)
        for _ in range(5):
            scheduler.schedule(1, 10)
            await asyncio.sleep(0.01)
        assert scheduler.pending_stage_ids() == {10}
        await scheduler.flush()
        assert scheduler.pending_stage_ids() == set()

    asyncio.run(scenario())
    assert calls == [(1, 10)]


def test_different_stages_are_scheduled_independently() -> None:
    calls, recompute = _recorder()

    async def scenario() -> None:
        scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.02, recompute=recompute)
        scheduler.schedule(1, 10)
        scheduler.schedule(1, 11)
        scheduler.schedule(1, 10)
        await scheduler.flush()

    asyncio.run(scenario())
    assert sorted(calls) == [(1, 10), (1, 11)]


def test_cancelled_stage_is_not_recomputed() -> None:
    calls, recompute = _recorder()

    async def scenario() -> None:
        scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.05, recompute=recompute)
        scheduler.schedule(1, 10)
        scheduler.schedule(1, 11)
        assert scheduler.cancel(10) is True
        assert scheduler.cancel(10) is False
        await scheduler.flush()

    asyncio.run(scenario())
    assert calls == [(1, 11)]


def test_failed_recompute_is_logged_not_raised(caplog) -> None:
    def failing(session_factory, project_id: int, stage_id: int) -> None:
        raise RuntimeError("database unavailable")

    async def scenario() -> None:
        scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.0, recompute=failing)
        scheduler.schedule(1, 10)
        await scheduler.flush()

    with caplog.at_level(logging.ERROR, logger="stageplan.scheduler"):
        asyncio.run(scenario())
    assert "Planned recompute failed for stage 10" in caplog.text


def test_cancel_all_drops_every_pending_recompute() -> None:
    calls, recompute = _recorder()

    async def scenario() -> None:
        scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.05, recompute=recompute)
        scheduler.schedule(1, 10)
        scheduler.schedule(1, 11)
        scheduler.cancel_all()
        assert scheduler.pending_stage_ids() == set()
        await scheduler.flush()

    asyncio.run(scenario())
    assert calls == []


def test_recomputes_for_one_stage_never_overlap() -> None:
    lock = threading.Lock()
    active = 0
    peak = 0
    calls: list[int] = []

    def slow(session_factory, project_id: int, stage_id: int) -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.3)
        with lock:
            active -= 1
            calls.append(stage_id)

    async def scenario() -> None:
        scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.05, recompute=slow)
        scheduler.schedule(1, 10)
        await asyncio.sleep(0.1)
        scheduler.schedule(1, 10)
        await scheduler.flush()

    asyncio.run(scenario())
    assert calls == [10, 10]
    assert peak == 1


def test_schedule_from_worker_thread_runs_on_bound_loop() -> None:
    calls, recompute = _recorder()

    async def scenario() -> None:
        scheduler = RecomputeScheduler(
            lambda: None,
            delay_seconds=0.02,
            recompute=recompute,
            loop=asyncio.get_running_loop(),
        )
        await asyncio.to_thread(scheduler.schedule_threadsafe, 1, 10)
        await asyncio.sleep(0)
        assert scheduler.pending_stage_ids() == {10}
        await scheduler.flush()

    asyncio.run(scenario())
    assert calls == [(1, 10)]


def test_schedule_threadsafe_requires_bound_loop() -> None:
    scheduler = RecomputeScheduler(lambda: None, delay_seconds=0.0)
    with pytest.raises(RuntimeError):
        scheduler.schedule_threadsafe(1, 10)
