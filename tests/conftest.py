"""Shared fakes for the lesson planner tests."""

import pytest

from lessonplanner.models.lesson_plan import LessonPlan


class _Handle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by hand: callbacks only run when the clock is advanced."""

    def __init__(self):
        self.now = 0.0
        self._handles = []

    def call_later(self, delay, callback):
        handle = _Handle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def scheduled(self):
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds):
        self.now += seconds
        due = sorted((h for h in self.scheduled if h.when <= self.now + 1e-9), key=lambda h: h.when)
        for handle in due:
            self._handles.remove(handle)
            handle.callback()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def filled_plan():
    return LessonPlan.model_validate(
        {
            "schoolName": "Dhanmondi Govt. Primary School",
            "schoolAddress": "Road 7, Dhanmondi, Dhaka",
            "teacherName": "Rahima Khatun",
            "teacherDesignation": "Head Teacher",
            "topic": "Fruits",
            "gradeLevel": "Class 3",
            "unit": "4",
            "lessonNo": "2",
            "sessionNo": "1",
            "pageNo": "18",
            "duration": "40 minutes",
            "learningOutcomes": "<ul><li>name <b>five</b> fruits</li></ul>",
            "teachingAids": "Flashcards",
            "activities": {
                "introduction": "Greeting",
                "presentation": "Show the flashcards",
                "practice": "Pair work",
                "assessment": "Oral questions",
                "feedback": "Correct pronunciation",
                "summary": "Recap",
                "concluding": "Goodbye song",
            },
        }
    )
