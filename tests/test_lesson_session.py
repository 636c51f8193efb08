import asyncio

import pytest

from lessonplanner.models.lesson_plan import GenerationParams, LessonPlan
from lessonplanner.services.ai_lesson_plan_generator import GENERATION_ERROR_MESSAGE, LessonPlanGenerationError
from lessonplanner.services.lesson_session import LessonPlanSession


def _session(scheduler, generator=None):
    async def no_generation(params):
        raise AssertionError("generator should not be called")

    return LessonPlanSession(generator=generator or no_generation, scheduler=scheduler, debounce_seconds=0.15)


def test_burst_of_form_updates_commits_last_only(scheduler):
    session = _session(scheduler)
    seen = []
    session.subscribe(seen.append)

    session.receive_form_update({"topic": "F"})
    scheduler.advance(0.05)
    session.receive_form_update({"topic": "Fr"})
    scheduler.advance(0.05)
    session.receive_form_update({"topic": "Fruits"})
    scheduler.advance(0.1)
    assert session.plan.topic == ""
    assert session.has_pending_update

    scheduler.advance(0.05)
    assert session.plan.topic == "Fruits"
    assert [p.topic for p in seen] == ["Fruits"]
    assert not session.has_pending_update


def test_identical_update_notifies_nobody(scheduler):
    session = _session(scheduler)
    seen = []
    session.subscribe(seen.append)

    assert session.apply_update({"topic": "Fruits"})
    assert not session.apply_update({"topic": "Fruits"})
    assert not session.apply_update(session.plan)
    assert len(seen) == 1


def test_unsubscribe(scheduler):
    session = _session(scheduler)
    seen = []
    unsubscribe = session.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    session.apply_update({"unit": "1"})
    assert seen == []


def test_plan_is_a_copy(scheduler):
    session = _session(scheduler)
    plan = session.plan
    plan.topic = "changed"
    plan.activities.summary = "changed"
    assert session.plan == LessonPlan()


def test_activity_update_keeps_other_slots(scheduler):
    session = _session(scheduler)
    session.apply_update({"activities": {"introduction": "Hi", "summary": "Recap"}})
    session.apply_update({"activities": {"summary": "Wrap up"}})
    assert session.plan.activities.introduction == "Hi"
    assert session.plan.activities.summary == "Wrap up"


def test_flush_pending_commits_immediately(scheduler):
    session = _session(scheduler)
    assert not session.flush_pending()
    session.receive_form_update({"unit": "4"})
    assert session.flush_pending()
    assert session.plan.unit == "4"


def test_close_drops_buffered_edits(scheduler):
    session = _session(scheduler)
    seen = []
    session.subscribe(seen.append)
    session.receive_form_update({"unit": "4"})
    session.close()
    scheduler.advance(1)
    assert session.plan.unit == ""
    assert seen == []


def test_generation_result_is_committed_immediately(scheduler):
    async def generator(params):
        return LessonPlan(topic=params.topic, learning_outcomes="<b>LO</b>")

    session = _session(scheduler, generator)
    seen = []
    session.subscribe(seen.append)

    assert asyncio.run(session.generate(GenerationParams(topic="Fruits")))
    assert session.plan.learning_outcomes == "<b>LO</b>"
    assert len(seen) == 1
    assert session.error is None
    assert not session.is_loading


@pytest.mark.parametrize("error", [LessonPlanGenerationError(), RuntimeError("boom")])
def test_generation_failure_leaves_plan_untouched(scheduler, error):
    async def generator(params):
        raise error

    session = _session(scheduler, generator)
    session.apply_update({"topic": "Fruits"})
    before = session.plan

    assert not asyncio.run(session.generate(GenerationParams(topic="Fruits")))
    assert session.plan == before
    assert session.error == GENERATION_ERROR_MESSAGE
    assert not session.is_loading

    session.clear_error()
    assert session.error is None


def test_second_submit_rejected_while_loading(scheduler):
    calls = []

    async def main():
        release = asyncio.Event()

        async def generator(params):
            calls.append(params.topic)
            await release.wait()
            return LessonPlan(topic="Done")

        session = _session(scheduler, generator)
        first = asyncio.create_task(session.generate(GenerationParams(topic="one")))
        await asyncio.sleep(0)
        assert session.is_loading

        assert not await session.generate(GenerationParams(topic="two"))

        release.set()
        assert await first
        return session

    session = asyncio.run(main())
    assert calls == ["one"]
    assert session.plan.topic == "Done"
    assert not session.is_loading


def test_new_submit_clears_previous_error(scheduler):
    outcomes = [RuntimeError("boom"), LessonPlan(topic="ok")]

    async def generator(params):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    session = _session(scheduler, generator)
    assert not asyncio.run(session.generate(GenerationParams()))
    assert session.error == GENERATION_ERROR_MESSAGE
    assert asyncio.run(session.generate(GenerationParams()))
    assert session.error is None
