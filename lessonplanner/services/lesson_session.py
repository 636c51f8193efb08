# services/lesson_session.py
"""
Lesson plan session: the single owner of the authoritative document.

Form edits arrive on every keystroke and are committed only after a quiet
period; generation results are committed immediately. Every commit goes
through `apply_update`, which merges, compares with the current document
and only notifies listeners (the preview renderers, the form) when
something actually changed.
"""

from typing import Any, Awaitable, Callable, List, Optional

from lessonplanner.core.config import DEBOUNCE_SECONDS
from lessonplanner.core.logging_config import get_logger
from lessonplanner.models.lesson_plan import GenerationParams, LessonPlan, merge_plan
from lessonplanner.services.ai_lesson_plan_generator import (
    GENERATION_ERROR_MESSAGE,
    generate_lesson_plan,
)
from lessonplanner.utils.scheduling import Debouncer, Scheduler

logger = get_logger(__name__)

PlanListener = Callable[[LessonPlan], Any]
Generator = Callable[[GenerationParams], Awaitable[LessonPlan]]


class LessonPlanSession:
    def __init__(
        self,
        generator: Optional[Generator] = None,
        scheduler: Optional[Scheduler] = None,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        initial: Optional[LessonPlan] = None,
    ):
        self._plan = initial or LessonPlan()
        self._generator = generator or generate_lesson_plan
        self._listeners: List[PlanListener] = []
        self._debouncer: Debouncer[Any] = Debouncer(debounce_seconds, self.apply_update, scheduler)
        self._loading = False
        self._error: Optional[str] = None

    # -------------------------
    # Read side
    # -------------------------
    @property
    def plan(self) -> LessonPlan:
        """A copy; the authoritative instance is only changed through this session."""
        return self._plan.model_copy(deep=True)

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    def clear_error(self):
        self._error = None

    def subscribe(self, listener: PlanListener) -> Callable[[], None]:
        """Register a callback for committed documents. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------
    # Updates
    # -------------------------
    def apply_update(self, update: Any) -> bool:
        """Merge an update into the document. Returns False (and notifies nobody) when nothing changed."""
        merged = merge_plan(self._plan, update)
        if merged == self._plan:
            return False
        self._plan = merged
        for listener in list(self._listeners):
            listener(self.plan)
        return True

    def receive_form_update(self, params: Any):
        """Buffer a full form parameter set; the latest one is committed once edits pause."""
        self._debouncer(params)

    @property
    def has_pending_update(self) -> bool:
        return self._debouncer.pending

    def flush_pending(self) -> bool:
        """Commit a buffered form update right away (e.g. before export)."""
        if not self._debouncer.pending:
            return False
        self._debouncer.flush()
        return True

    def apply_generated(self, plan: LessonPlan) -> bool:
        return self.apply_update(plan)

    async def generate(self, params: GenerationParams) -> bool:
        """
        Run one generation request and commit its result.

        Rejected (returns False, no request made) while another request is
        in flight. A failure leaves the document untouched and sets the
        generic error message.
        """
        if self._loading:
            logger.info("Generation already in progress; submit ignored")
            return False

        self._loading = True
        self._error = None
        try:
            plan = await self._generator(params)
        except Exception:
            logger.exception("Failed to generate lesson plan")
            self._error = GENERATION_ERROR_MESSAGE
            return False
        finally:
            self._loading = False

        self.apply_generated(plan)
        return True

    def close(self):
        """Drop buffered edits and listeners; the session is discarded after this."""
        self._debouncer.cancel()
        self._listeners.clear()
