"""Recurring-job scheduling for in-process background work.

Services receive a ``Scheduler`` instead of creating timers themselves, so the
application lifespan owns the real event-loop timer and tests can drive a
virtual clock with ``ManualScheduler``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[Any]]


class ScheduledJob(Protocol):
    @property
    def active(self) -> bool: ...

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_every(self, interval_seconds: float, callback: JobCallback) -> ScheduledJob: ...


class _AsyncioJob:
    def __init__(self, interval_seconds: float, callback: JobCallback, name: str):
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._cancelled = False
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run(), name=name)

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._task.done()

    def cancel(self) -> None:
        self._cancelled = True
        self._task.cancel()

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self.interval_seconds)
            if self._cancelled:
                return
            try:
                # Shielded: cancelling the job stops future ticks but lets a
                # callback that already started run to completion.
                await asyncio.shield(self._callback())
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduled job %s failed", self._task.get_name())


class AsyncioScheduler:
    """Runs each job as an asyncio task on the running event loop."""

    def __init__(self, name: str = "scheduled-job"):
        self._name = name

    def call_every(self, interval_seconds: float, callback: JobCallback) -> _AsyncioJob:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        return _AsyncioJob(interval_seconds, callback, self._name)


class _ManualJob:
    def __init__(self, interval_seconds: float, callback: JobCallback, next_run: float):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.next_run = next_run
        self.runs = 0
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler: jobs fire only when ``advance`` moves time past them."""

    def __init__(self) -> None:
        self.now = 0.0
        self.jobs: List[_ManualJob] = []

    def call_every(self, interval_seconds: float, callback: JobCallback) -> _ManualJob:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        job = _ManualJob(interval_seconds, callback, self.now + interval_seconds)
        self.jobs.append(job)
        return job

    @property
    def active_jobs(self) -> List[_ManualJob]:
        return [job for job in self.jobs if job.active]

    def _next_due(self, until: float) -> Optional[_ManualJob]:
        due = [job for job in self.active_jobs if job.next_run <= until]
        return min(due, key=lambda job: job.next_run) if due else None

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        job = self._next_due(target)
        while job is not None:
            self.now = job.next_run
            job.next_run += job.interval_seconds
            job.runs += 1
            await job.callback()
            job = self._next_due(target)
        self.now = target
