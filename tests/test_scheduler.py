# tests/test_scheduler.py

from __future__ import annotations

import asyncio
import logging

import pytest

from omniflow.errors import SchedulingError
from omniflow.scheduling.scheduler import Scheduler

from .conftest import START


@pytest.mark.asyncio
async def test_replacing_a_job_keeps_only_the_new_callback(clock) -> None:
    scheduler = Scheduler(clock)
    fired: list[str] = []

    scheduler.schedule("daily-summary", "0 18 * * *", lambda: fired.append("A"))
    scheduler.schedule("daily-summary", "0 18 * * *", lambda: fired.append("B"))

    assert scheduler.list_active() == ["daily-summary"]

    clock.set(START.replace(hour=18))
    started = await scheduler.tick()
    await scheduler.wait_idle()

    assert started == ["daily-summary"]
    assert fired == ["B"]


@pytest.mark.asyncio
async def test_job_does_not_fire_before_its_time(clock) -> None:
    scheduler = Scheduler(clock)
    fired: list[int] = []
    scheduler.schedule("evening", "0 18 * * *", lambda: fired.append(1))

    clock.set(START.replace(hour=17, minute=59))
    assert await scheduler.tick() == []

    clock.set(START.replace(hour=18))
    await scheduler.tick()
    # same minute again: already advanced to tomorrow
    await scheduler.tick()
    await scheduler.wait_idle()

    assert fired == [1]
    job = scheduler.get("evening")
    assert job.fire_count == 1
    assert job.next_fire == START.replace(day=3, hour=18)


def test_invalid_expression_leaves_existing_job(clock) -> None:
    scheduler = Scheduler(clock)
    first = scheduler.schedule("cleanup", "0 2 * * 0", lambda: None)

    with pytest.raises(SchedulingError):
        scheduler.schedule("cleanup", "not a cron", lambda: None)
    with pytest.raises(SchedulingError):
        scheduler.schedule("other", "61 * * * *", lambda: None)

    assert scheduler.get("cleanup") is first
    assert scheduler.list_active() == ["cleanup"]


def test_unschedule_and_list_active(clock) -> None:
    scheduler = Scheduler(clock)
    for name in ("a", "b", "c"):
        scheduler.schedule(name, "*/5 * * * *", lambda: None)

    assert scheduler.unschedule("b") is True
    assert scheduler.unschedule("b") is False
    assert scheduler.list_active() == ["a", "c"]

    with pytest.raises(ValueError):
        scheduler.schedule("  ", "* * * * *", lambda: None)


@pytest.mark.asyncio
async def test_callback_errors_are_logged_and_job_keeps_running(clock, caplog) -> None:
    scheduler = Scheduler(clock)
    calls: list[int] = []

    def _flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first run fails")

    scheduler.schedule("flaky", "*/5 * * * *", _flaky)

    with caplog.at_level(logging.ERROR, logger="omniflow.scheduling.scheduler"):
        clock.set(START.replace(minute=5))
        await scheduler.tick()
        await scheduler.wait_idle()

    assert "Automation error in flaky" in caplog.text

    clock.set(START.replace(minute=10))
    await scheduler.tick()
    await scheduler.wait_idle()

    assert len(calls) == 2
    assert scheduler.get("flaky").running is False


@pytest.mark.asyncio
async def test_overlapping_fire_is_skipped(clock) -> None:
    scheduler = Scheduler(clock)
    release = asyncio.Event()
    runs: list[int] = []

    async def _slow() -> None:
        runs.append(1)
        await release.wait()

    scheduler.schedule("slow", "* * * * *", _slow)

    clock.set(START.replace(minute=1))
    assert await scheduler.tick() == ["slow"]
    await asyncio.sleep(0)

    clock.set(START.replace(minute=2))
    assert await scheduler.tick() == []

    release.set()
    await scheduler.wait_idle()

    job = scheduler.get("slow")
    assert runs == [1]
    assert job.skipped_count == 1
    assert job.fire_count == 1

    clock.set(START.replace(minute=3))
    assert await scheduler.tick() == ["slow"]
    await scheduler.wait_idle()
    assert runs == [1, 1]


@pytest.mark.asyncio
async def test_replacing_a_busy_job_does_not_overlap(clock) -> None:
    scheduler = Scheduler(clock)
    release = asyncio.Event()
    active = 0
    peak = 0

    async def _slow() -> None:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await release.wait()
        active -= 1

    scheduler.schedule("workflow:w1", "* * * * *", _slow)
    clock.set(START.replace(minute=1))
    assert await scheduler.tick() == ["workflow:w1"]
    await asyncio.sleep(0)

    replacement = scheduler.schedule("workflow:w1", "* * * * *", _slow)
    assert replacement.running is True
    assert await scheduler.run_now("workflow:w1") is False

    clock.set(START.replace(minute=2))
    assert await scheduler.tick() == []
    assert replacement.skipped_count == 1

    release.set()
    await scheduler.wait_idle()
    assert peak == 1
    assert replacement.running is False

    clock.set(START.replace(minute=3))
    assert await scheduler.tick() == ["workflow:w1"]
    await scheduler.wait_idle()
    assert replacement.fire_count == 1


@pytest.mark.asyncio
async def test_unscheduled_job_does_not_fire(clock) -> None:
    scheduler = Scheduler(clock)
    fired: list[int] = []
    scheduler.schedule("gone", "* * * * *", lambda: fired.append(1))
    scheduler.unschedule("gone")

    clock.set(START.replace(minute=5))
    assert await scheduler.tick() == []
    assert fired == []


@pytest.mark.asyncio
async def test_run_now_fires_outside_schedule(clock) -> None:
    scheduler = Scheduler(clock)
    fired: list[int] = []

    async def _job() -> None:
        fired.append(1)

    scheduler.schedule("weekly", "0 2 * * 0", _job)

    assert await scheduler.run_now("weekly") is True
    assert await scheduler.run_now("missing") is False
    assert fired == [1]
    assert scheduler.get("weekly").last_fire == START


@pytest.mark.asyncio
async def test_background_loop_fires_due_jobs(clock) -> None:
    scheduler = Scheduler(clock, max_sleep_seconds=0.05)
    fired = asyncio.Event()

    scheduler.schedule("tick", "* * * * *", fired.set)
    scheduler.start()
    try:
        clock.advance(minutes=1)
        # schedule() wakes the loop so it re-reads the clock
        scheduler.schedule("noop", "0 0 1 1 *", lambda: None)
        await asyncio.wait_for(fired.wait(), timeout=2)
    finally:
        await scheduler.stop()

    assert scheduler.get("tick").fire_count == 1
