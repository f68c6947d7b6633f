# src/omniflow/scheduling/scheduler.py

from __future__ import annotations

"""
Cron scheduler.

A small asyncio timer loop that:
- keeps named jobs (cron expression -> zero-argument callback), one per name,
- sleeps until the earliest next fire (or until a job is added/removed),
- starts each due callback as its own asyncio task, so a slow job never
  blocks the loop or other jobs,
- skips a fire while the previous fire of the same job is still running
  (tracked by name, so replacing a busy job does not bypass it),
- catches and logs anything a callback raises.

To stop the scheduler, call stop() (in-flight callbacks are not interrupted).
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..core.ports import Clock
from .cron import CronExpression, validate_cron

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Any]
# Sync functions and coroutine functions are both accepted.


@dataclass(slots=True)
class ScheduledJob:
    name: str
    cron: CronExpression
    callback: JobCallback
    next_fire: datetime
    running: bool = False
    fire_count: int = 0
    skipped_count: int = 0
    last_fire: datetime | None = None

    @property
    def cron_expression(self) -> str:
        return self.cron.expression

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "cronExpression": self.cron.expression,
            "nextFire": self.next_fire.isoformat(),
            "lastFire": self.last_fire.isoformat() if self.last_fire else None,
            "running": self.running,
            "fireCount": self.fire_count,
            "skippedCount": self.skipped_count,
        }


class Scheduler:
    def __init__(self, clock: Clock, *, max_sleep_seconds: float = 30.0) -> None:
        self._clock = clock
        self._max_sleep = max(0.05, float(max_sleep_seconds))
        self._jobs: dict[str, ScheduledJob] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        # Names with a callback in flight. Kept per name so a replaced job
        # cannot fire next to the old callback.
        self._running: set[str] = set()
        self._wakeup: asyncio.Event | None = None
        self._loop_task: asyncio.Task[None] | None = None

    # ---- registration ----

    def schedule(self, name: str, cron_expression: str, callback: JobCallback) -> ScheduledJob:
        """
        Register (or replace) the job called name.

        The expression is validated first: an invalid expression raises
        SchedulingError and leaves any existing job with that name untouched.
        """
        if not name or not name.strip():
            raise ValueError("job name is required")
        if not callable(callback):
            raise ValueError("callback must be callable")

        cron = validate_cron(cron_expression)
        job = ScheduledJob(
            name=name,
            cron=cron,
            callback=callback,
            next_fire=cron.next_after(self._clock.now()),
            running=name in self._running,
        )

        replaced = self._jobs.get(name) is not None
        # Single dict assignment: the old job stops being eligible in the same step.
        self._jobs[name] = job
        self._wake()

        if replaced:
            logger.info("Replaced automation: %s (%s)", name, cron.expression)
        else:
            logger.info("Scheduled automation: %s (%s) next=%s", name, cron.expression, job.next_fire.isoformat())
        return job

    def unschedule(self, name: str) -> bool:
        """Stop future fires. A callback that is already running is not interrupted."""
        job = self._jobs.pop(name, None)
        if job is None:
            return False
        self._wake()
        logger.info("Stopped automation: %s", name)
        return True

    def list_active(self) -> list[str]:
        return list(self._jobs.keys())

    def get(self, name: str) -> ScheduledJob | None:
        return self._jobs.get(name)

    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    # ---- firing ----

    async def tick(self, now: datetime | None = None) -> list[str]:
        """
        Start every job whose next fire time has passed.

        Returns the names of the jobs started (skipped overlapping fires are not included).
        """
        now = now or self._clock.now()
        started: list[str] = []

        for job in list(self._jobs.values()):
            if job.next_fire > now:
                continue
            # A job replaced or removed while we iterate must not fire.
            if self._jobs.get(job.name) is not job:
                continue

            job.next_fire = job.cron.next_after(now)

            if job.name in self._running:
                job.skipped_count += 1
                logger.warning("Automation %s still running; skipping this fire", job.name)
                continue

            self._mark_running(job)
            job.last_fire = now
            task = asyncio.create_task(self._run_job(job), name=f"job:{job.name}")
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            started.append(job.name)

        return started

    async def run_now(self, name: str) -> bool:
        """Fire a job immediately (outside its cron schedule). Returns False if unknown or busy."""
        job = self._jobs.get(name)
        if job is None or name in self._running:
            return False
        self._mark_running(job)
        job.last_fire = self._clock.now()
        await self._run_job(job)
        return True

    def _mark_running(self, job: ScheduledJob) -> None:
        self._running.add(job.name)
        job.running = True
        job.fire_count += 1

    async def _run_job(self, job: ScheduledJob) -> None:
        logger.info("Running automation: %s", job.name)
        try:
            result = job.callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Automation error in %s", job.name)
        finally:
            self._running.discard(job.name)
            job.running = False
            current = self._jobs.get(job.name)
            if current is not None:
                current.running = False

    async def wait_idle(self) -> None:
        """Wait for every in-flight callback to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ---- loop ----

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    def _seconds_until_next(self, now: datetime) -> float:
        if not self._jobs:
            return self._max_sleep
        nearest = min(j.next_fire for j in self._jobs.values())
        delay = (nearest - now).total_seconds()
        return min(self._max_sleep, max(0.05, delay))

    async def run(self) -> None:
        """Timer loop. Runs until cancelled."""
        self._wakeup = asyncio.Event()
        logger.info("Scheduler started jobs=%s", ", ".join(self._jobs) or "-")

        while True:
            now = self._clock.now()
            try:
                await self.tick(now)
            except Exception:
                logger.exception("Scheduler tick failed")

            delay = self._seconds_until_next(now)
            self._wakeup.clear()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)

    def start(self) -> asyncio.Task[None]:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self.run(), name="scheduler")
        return self._loop_task

    async def stop(self, *, wait_for_jobs: bool = True) -> None:
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if wait_for_jobs:
            await self.wait_idle()
        logger.info("Scheduler stopped")
