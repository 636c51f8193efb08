import base64

import pytest
from pydantic import ValidationError

from lessonplanner.models.lesson_plan import (
    GenerationParams,
    ImagePayload,
    LessonActivities,
    LessonPlan,
    merge_plan,
)


def test_defaults_are_fully_populated():
    plan = LessonPlan()
    assert plan.teacher_designation == "Assistant Teacher"
    assert plan.grade_level == "Class 3"
    assert plan.duration == "40 minutes"
    assert plan.topic == ""
    assert plan.activities == LessonActivities()


def test_none_becomes_empty_string():
    plan = LessonPlan.model_validate({"topic": None, "activities": None, "unit": None})
    assert plan.topic == ""
    assert plan.unit == ""
    assert plan.activities.homework == ""


def test_camel_case_aliases_round_trip():
    plan = LessonPlan.model_validate({"schoolName": "ABC", "activities": {"reviewPriorKnowledge": "x"}})
    assert plan.school_name == "ABC"
    dumped = plan.model_dump(by_alias=True)
    assert dumped["schoolName"] == "ABC"
    assert dumped["activities"]["reviewPriorKnowledge"] == "x"


def test_unknown_designation_rejected():
    with pytest.raises(ValidationError):
        LessonPlan(teacher_designation="Principal")


def test_merge_overwrites_scalars_and_merges_activities():
    current = LessonPlan.model_validate({"topic": "Fruits", "activities": {"introduction": "Hi", "summary": "Recap"}})
    merged = merge_plan(current, {"topic": "Animals", "activities": {"summary": "Wrap up"}})

    assert merged.topic == "Animals"
    assert merged.activities.introduction == "Hi"
    assert merged.activities.summary == "Wrap up"
    # input untouched
    assert current.topic == "Fruits"


def test_merge_ignores_transient_and_unknown_keys():
    params = GenerationParams(
        topic="Fruits",
        textbook_text="An apple a day",
        image=ImagePayload(data=b"img", mime_type="image/png"),
    )
    merged = merge_plan(LessonPlan(), params)
    assert merged.topic == "Fruits"
    assert "textbook_text" not in merged.model_dump()

    merged = merge_plan(LessonPlan(), {"somethingElse": 1, "unit": "2"})
    assert merged.unit == "2"


def test_to_plan_drops_generation_inputs():
    params = GenerationParams(topic="Fruits", textbook_text="text")
    plan = params.to_plan()
    assert type(plan) is LessonPlan
    assert plan.topic == "Fruits"


def test_image_payload_requires_image_type():
    with pytest.raises(ValidationError):
        ImagePayload(data=b"%PDF", mime_type="application/pdf")
    assert ImagePayload(data=b"x", mime_type="IMAGE/PNG").mime_type == "image/png"


def test_image_payload_data_url():
    image = ImagePayload(data=b"\x89PNG", mime_type="image/png")
    url = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
    assert ImagePayload.from_data_url(url) == image


@pytest.mark.parametrize("url", ["not a url", "data:image/png,abc", "data:image/png;base64,@@@"])
def test_image_payload_rejects_bad_data_url(url):
    with pytest.raises(ValueError):
        ImagePayload.from_data_url(url)
