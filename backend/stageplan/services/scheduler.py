from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.stage import Stage
from stageplan.services.distribution import PlannedRecomputeResult, recompute_planned_values


logger = logging.getLogger("stageplan.scheduler")


def recompute_stage_planned(
    session_factory: Callable[[], Session],
    project_id: int,
    stage_id: int,
) -> PlannedRecomputeResult | None:
    with session_factory() as db:
        stage = db.scalar(
            select(Stage).where(Stage.id == stage_id, Stage.project_id == project_id)
        )
        if stage is None:
            logger.info("Stage %s no longer exists; skipping planned recompute.", stage_id)
            return None
        try:
            result = recompute_planned_values(db, stage)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result


class RecomputeScheduler:
    """Coalesces planned-value recomputes per stage.

    Each ``schedule`` call for a stage cancels that stage's pending delayed
    task and starts a new one, so a burst of edits produces one recompute
    after ``delay_seconds`` of quiet. Stages never wait on each other. Once
    a recompute has started its store writes it is left to finish; a new
    edit arriving meanwhile schedules a fresh recompute that waits for it
    before writing, so one stage never has two recomputes in flight.

    Request handlers running in worker threads go through
    ``schedule_threadsafe``, which hands the call to the scheduler's loop.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        delay_seconds: float,
        recompute: Callable[[Callable[[], Session], int, int], object] = recompute_stage_planned,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._delay_seconds = delay_seconds
        self._recompute = recompute
        self._loop = loop
        self._pending: dict[int, asyncio.Task] = {}
        self._running: set[asyncio.Task] = set()
        self._running_by_stage: dict[int, asyncio.Task] = {}

    @property
    def delay_seconds(self) -> float:
        return self._delay_seconds

    def pending_stage_ids(self) -> set[int]:
        return set(self._pending)

    def schedule(self, project_id: int, stage_id: int) -> asyncio.Task:
        previous = self._pending.pop(stage_id, None)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.get_running_loop().create_task(self._run_after_delay(project_id, stage_id))
        self._pending[stage_id] = task
        return task

    def schedule_threadsafe(self, project_id: int, stage_id: int) -> None:
        if self._loop is None:
            raise RuntimeError("RecomputeScheduler has no event loop bound for thread-safe scheduling.")
        self._loop.call_soon_threadsafe(self.schedule, project_id, stage_id)

    async def _run_after_delay(self, project_id: int, stage_id: int) -> None:
        await asyncio.sleep(self._delay_seconds)
        current = asyncio.current_task()
        if self._pending.get(stage_id) is current:
            del self._pending[stage_id]
        if current is None:
            return

        previous = self._running_by_stage.get(stage_id)
        self._running_by_stage[stage_id] = current
        self._running.add(current)
        try:
            if previous is not None and not previous.done():
                # does not cancel or re-raise from the earlier task
                await asyncio.wait([previous])
            await asyncio.to_thread(self._recompute, self._session_factory, project_id, stage_id)
        except Exception:
            logger.exception("Planned recompute failed for stage %s", stage_id)
        finally:
            self._running.discard(current)
            if self._running_by_stage.get(stage_id) is current:
                del self._running_by_stage[stage_id]

    def cancel(self, stage_id: int) -> bool:
        task = self._pending.pop(stage_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for stage_id in list(self._pending):
            self.cancel(stage_id)

    async def flush(self) -> None:
        """Wait for every pending and running recompute to finish."""
        while self._pending or self._running:
            tasks = list(self._pending.values()) + list(self._running)
            await asyncio.gather(*tasks, return_exceptions=True)
