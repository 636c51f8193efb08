# services/lesson_form.py
"""
Editable lesson form.

Keeps its own copy of the full parameter set (document fields plus the
transient generation inputs), one RichTextField per prose field, and
pushes the *whole* parameter set to the session after every change.
"""

from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from lessonplanner.core.logging_config import get_logger
from lessonplanner.models.lesson_plan import (
    ACTIVITY_ALIASES,
    ACTIVITY_SLOTS,
    DESIGNATIONS,
    FIELD_ALIASES,
    GRADE_LEVELS,
    OPTIONAL_ACTIVITY_SLOTS,
    SCALAR_FIELDS,
    GenerationParams,
    ImagePayload,
    LessonPlan,
    field_name,
    merge_plan,
)
from lessonplanner.services.lesson_session import LessonPlanSession
from lessonplanner.services.rich_text_field import RichTextField

logger = get_logger(__name__)

# (field key, label, placeholder) in form order
PROSE_FIELD_SPECS = (
    ("learning_outcomes", "Learning Outcomes", "Students will be able to..."),
    ("teaching_aids", "Teaching Aids", "Textbook, Flashcards, Posters..."),
    ("introduction", "Introduction", "Greeting, Warming up..."),
    ("review_prior_knowledge", "Review of Prior Knowledge", "(Optional) Ask questions about previous learning..."),
    ("review_previous_session", "Review of previous Session", "(Optional) Brief recap of last class..."),
    ("presentation", "Presentation of the class", "Core lesson delivery..."),
    ("practice", "Practice Activities", "Individual or Group work..."),
    ("assessment", "Assessment Learning", "Check understanding..."),
    ("homework", "Homework", "(Optional) Follow up task..."),
    ("feedback", "Feedback", "Corrective feedback..."),
    ("summary", "Summary of the session", "Wrap up..."),
    ("concluding", "Concluding the session", "Goodbye routine..."),
)

SELECT_CHOICES = {
    "teacher_designation": DESIGNATIONS,
    "grade_level": GRADE_LEVELS,
}

TEXT_FIELDS = SCALAR_FIELDS + ("textbook_text",)


class FormFieldError(ValueError):
    pass


class LessonForm:
    def __init__(self, session: LessonPlanSession):
        self.session = session
        self._params = GenerationParams.model_validate(session.plan.model_dump())
        self.fields: Dict[str, RichTextField] = {}
        for key, label, placeholder in PROSE_FIELD_SPECS:
            field = RichTextField(
                key,
                label,
                placeholder,
                optional=key in OPTIONAL_ACTIVITY_SLOTS,
                on_change=lambda html, key=key: self._on_prose_changed(key, html),
            )
            field.set_content(self._prose_value(key))
            self.fields[key] = field
        self._unsubscribe = session.subscribe(self.sync_from_plan)

    # -------------------------
    # State
    # -------------------------
    @property
    def params(self) -> GenerationParams:
        return self._params.model_copy(deep=True)

    @property
    def has_image(self) -> bool:
        return self._params.image is not None

    @property
    def is_loading(self) -> bool:
        return self.session.is_loading

    @property
    def can_submit(self) -> bool:
        return not self.session.is_loading

    @property
    def error_message(self) -> Optional[str]:
        return self.session.error

    def close(self):
        self._unsubscribe()

    def _prose_value(self, key: str) -> str:
        if key in ACTIVITY_SLOTS:
            return getattr(self._params.activities, key)
        return getattr(self._params, key)

    def _set_params(self, params: GenerationParams, notify: bool = True):
        if params == self._params:
            return
        self._params = params
        if notify:
            self.session.receive_form_update(self.params)

    def _with_value(self, key: str, value: Any) -> GenerationParams:
        if key in ACTIVITY_SLOTS:
            activities = self._params.activities.model_copy(update={key: value})
            return self._params.model_copy(update={"activities": activities})
        return self._params.model_copy(update={key: value})

    # -------------------------
    # Edits
    # -------------------------
    def _on_prose_changed(self, key: str, html: str):
        self._set_params(self._with_value(key, html))

    def _checked(self, name: str, value: Any) -> str:
        # every form value is text; anything else would poison later commits
        if value is None:
            return ""
        if not isinstance(value, str):
            raise FormFieldError(f"{name} must be a string, got {type(value).__name__}")
        choices = SELECT_CHOICES.get(name)
        if choices and value not in choices:
            raise FormFieldError(f"{name} must be one of {list(choices)}")
        return value

    def set_field(self, name: str, value: Optional[str]):
        """Plain input or select change."""
        if name not in TEXT_FIELDS:
            raise FormFieldError(f"Unknown form field: {name}")
        self._set_params(self._with_value(name, self._checked(name, value)))

    def _field(self, name: str) -> RichTextField:
        try:
            return self.fields[name]
        except KeyError:
            raise FormFieldError(f"Unknown rich text field: {name}") from None

    def edit_prose(self, name: str, html: Optional[str]):
        """A complete edit of one prose field: focus, input, blur."""
        field = self._field(name)
        html = self._checked(name, html)
        field.focus()
        field.input(html)
        field.blur()

    def format_prose(self, name: str, command: str, start: int, end: Optional[int] = None) -> str:
        """Apply a toolbar command to a selection of one prose field and return the new content."""
        field = self._field(name)
        field.select(start, end)
        try:
            field.apply_command(command)
        except ValueError as e:
            raise FormFieldError(str(e)) from e
        finally:
            field.blur()
        return field.content

    def apply_edits(self, edits: Mapping[str, Any]):
        """
        Apply a batch of edits keyed by field name or camelCase alias.

        `activities` may hold any subset of slots; `image` may hold a
        base64 data URL (a non-image one is ignored). Every key and value
        is checked before anything is applied.
        """
        scalars: Dict[str, str] = {}
        prose: Dict[str, str] = {}
        image_url = None
        for key, value in edits.items():
            name = field_name(key, FIELD_ALIASES)
            if name == "activities":
                if value is None:
                    continue
                if not isinstance(value, Mapping):
                    raise FormFieldError("activities must be an object keyed by activity")
                for slot_key, slot_value in value.items():
                    slot = field_name(slot_key, ACTIVITY_ALIASES)
                    if slot not in ACTIVITY_SLOTS:
                        raise FormFieldError(f"Unknown activity: {slot_key}")
                    prose[slot] = self._checked(slot, slot_value)
            elif name == "image":
                image_url = self._checked(name, value)
            elif name in self.fields:
                prose[name] = self._checked(name, value)
            elif name in TEXT_FIELDS:
                scalars[name] = self._checked(name, value)
            else:
                raise FormFieldError(f"Unknown form field: {key}")

        for name, value in scalars.items():
            self.set_field(name, value)
        for name, value in prose.items():
            if value != self.fields[name].content:
                self.edit_prose(name, value)
        if image_url:
            self.attach_image_data_url(image_url)

    # -------------------------
    # Generation inputs
    # -------------------------
    def attach_image(self, data: bytes, mime_type: Optional[str]) -> bool:
        """Attach a textbook photo. Anything that is not an image is ignored without a state change."""
        try:
            image = ImagePayload(data=data, mime_type=mime_type or "")
        except ValidationError:
            logger.info(f"Ignoring attachment of type {mime_type!r}")
            return False
        self._set_params(self._params.model_copy(update={"image": image}))
        return True

    def attach_image_data_url(self, url: str) -> bool:
        """Attach an image sent as a `data:` URL (what a browser FileReader produces)."""
        try:
            image = ImagePayload.from_data_url(url)
        except (ValueError, ValidationError):
            logger.info("Ignoring attachment that is not an image data URL")
            return False
        self._set_params(self._params.model_copy(update={"image": image}))
        return True

    def clear_image(self):
        self._set_params(self._params.model_copy(update={"image": None}))

    async def submit(self) -> bool:
        """Send the current parameters for generation. Ignored while a request is in flight."""
        if not self.can_submit:
            return False
        return await self.session.generate(self.params)

    # -------------------------
    # Sync from the session
    # -------------------------
    def sync_from_plan(self, plan: LessonPlan):
        """Take over a committed document (e.g. AI results) without losing transient inputs."""
        merged = merge_plan(self._params.to_plan(), plan)
        params = self._params.model_copy(
            update={name: getattr(merged, name) for name in LessonPlan.model_fields}
        )
        for key, field in self.fields.items():
            value = getattr(merged.activities, key) if key in ACTIVITY_SLOTS else getattr(merged, key)
            field.set_content(value)
        self._set_params(params)
