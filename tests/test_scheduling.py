import asyncio

import pytest

from lessonplanner.utils.scheduling import Debouncer, ScheduledTask


def test_debouncer_delivers_only_latest_value(scheduler):
    delivered = []
    debounce = Debouncer(0.15, delivered.append, scheduler)

    debounce("a")
    scheduler.advance(0.1)
    debounce("ab")
    scheduler.advance(0.1)
    assert delivered == []
    assert debounce.pending

    scheduler.advance(0.05)
    assert delivered == ["ab"]
    assert not debounce.pending


def test_debouncer_flush_and_cancel(scheduler):
    delivered = []
    debounce = Debouncer(0.15, delivered.append, scheduler)

    debounce(1)
    debounce.flush()
    assert delivered == [1]
    scheduler.advance(1)
    assert delivered == [1]

    debounce(2)
    debounce.cancel()
    scheduler.advance(1)
    debounce.flush()
    assert delivered == [1]


def test_scheduled_task_reschedule_cancels_previous(scheduler):
    runs = []
    task = ScheduledTask(0.5, lambda: runs.append(scheduler.now), scheduler)
    task.schedule()
    scheduler.advance(0.3)
    task.schedule()
    scheduler.advance(0.3)
    assert runs == []
    scheduler.advance(0.2)
    assert runs == [pytest.approx(0.8)]


def test_fire_now_without_pending_run_does_nothing(scheduler):
    runs = []
    task = ScheduledTask(0.5, lambda: runs.append(1), scheduler)
    task.fire_now()
    assert runs == []


def test_default_scheduler_uses_event_loop():
    delivered = []

    async def main():
        debounce = Debouncer(0.01, delivered.append)
        debounce("x")
        debounce("y")
        await asyncio.sleep(0.05)

    asyncio.run(main())
    assert delivered == ["y"]
