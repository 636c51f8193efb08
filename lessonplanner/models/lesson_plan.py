# models/lesson_plan.py
import base64
import binascii
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

TeacherDesignation = Literal["Assistant Teacher", "Head Teacher"]

DESIGNATIONS = ("Assistant Teacher", "Head Teacher")
GRADE_LEVELS = ("Class 1", "Class 2", "Class 3", "Class 4", "Class 5")

# Fixed document order of the activity slots
ACTIVITY_SLOTS = (
    "introduction",
    "review_prior_knowledge",
    "review_previous_session",
    "presentation",
    "practice",
    "assessment",
    "homework",
    "feedback",
    "summary",
    "concluding",
)
OPTIONAL_ACTIVITY_SLOTS = ("review_prior_knowledge", "review_previous_session", "homework")
REQUIRED_ACTIVITY_SLOTS = tuple(s for s in ACTIVITY_SLOTS if s not in OPTIONAL_ACTIVITY_SLOTS)

PROSE_FIELDS = ("learning_outcomes", "teaching_aids")

# User value wins when non-empty, otherwise the generated value is taken
IDENTITY_FIELDS = ("school_name", "school_address", "teacher_name", "teacher_designation", "topic")
# Never overwritten by generation
LESSON_DETAIL_FIELDS = ("grade_level", "unit", "lesson_no", "session_no", "page_no", "duration")

SCALAR_FIELDS = IDENTITY_FIELDS + LESSON_DETAIL_FIELDS


class _DocumentModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _none_is_empty(cls, v, info: ValidationInfo):
        # no field may be undefined, only empty
        if v is None:
            if info.field_name == "image":
                return None
            if info.field_name == "activities":
                return {}
            return ""
        return v


class LessonActivities(_DocumentModel):
    introduction: str = ""
    review_prior_knowledge: str = ""
    review_previous_session: str = ""
    presentation: str = ""
    practice: str = ""
    assessment: str = ""
    homework: str = ""
    feedback: str = ""
    summary: str = ""
    concluding: str = ""


class LessonPlan(_DocumentModel):
    school_name: str = ""
    school_address: str = ""
    teacher_name: str = ""
    teacher_designation: TeacherDesignation = "Assistant Teacher"
    topic: str = ""
    grade_level: str = "Class 3"
    unit: str = ""
    lesson_no: str = ""
    session_no: str = ""
    page_no: str = ""
    duration: str = "40 minutes"
    learning_outcomes: str = ""
    teaching_aids: str = ""
    activities: LessonActivities = Field(default_factory=LessonActivities)

    def to_plan(self) -> "LessonPlan":
        """Drop anything that is not part of the canonical document."""
        return LessonPlan.model_validate(self.model_dump(include=set(LessonPlan.model_fields)))


class ImagePayload(BaseModel):
    data: bytes
    mime_type: str

    @field_validator("mime_type")
    @classmethod
    def _must_be_image(cls, v: str) -> str:
        if not v or not v.lower().startswith("image/"):
            raise ValueError(f"Not an image type: {v!r}")
        return v.lower()

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_data_url(cls, url: str) -> "ImagePayload":
        """Parse a `data:<mime>;base64,<payload>` URL as produced by a browser FileReader."""
        header, sep, payload = url.partition(",")
        if not sep or not header.startswith("data:") or not header.endswith(";base64"):
            raise ValueError("Expected a base64 data URL")
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(data=data, mime_type=header[len("data:"):-len(";base64")])


class GenerationParams(LessonPlan):
    """
    Everything the form holds: the full document fields plus transient
    generation inputs (attached image, raw textbook text). The transient
    inputs are only used to build the AI request and never reach the
    canonical document.
    """

    image: Optional[ImagePayload] = None
    textbook_text: str = ""


FIELD_ALIASES = {to_camel(name): name for name in GenerationParams.model_fields}
ACTIVITY_ALIASES = {to_camel(name): name for name in LessonActivities.model_fields}


def field_name(key: str, aliases: Mapping[str, str]) -> str:
    return aliases.get(key, key)


def merge_plan(current: LessonPlan, update: Any) -> LessonPlan:
    """
    Merge an update into a plan and return the new plan.

    Scalars and prose fields are overwritten field by field; the nested
    activities group is merged slot by slot, so slots missing from the
    update are kept. Keys that are not document fields (image, textbook
    text, unknown keys) are ignored. Accepts a model or a mapping keyed by
    field names or their camelCase aliases.
    """
    if isinstance(update, BaseModel):
        update = update.model_dump(exclude={"image"})

    data: Dict[str, Any] = current.model_dump()
    for key, value in (update or {}).items():
        name = field_name(key, FIELD_ALIASES)
        if name == "activities":
            if isinstance(value, BaseModel):
                value = value.model_dump()
            for slot_key, slot_value in (value or {}).items():
                slot = field_name(slot_key, ACTIVITY_ALIASES)
                if slot in LessonActivities.model_fields:
                    data["activities"][slot] = slot_value
        elif name in LessonPlan.model_fields:
            data[name] = value

    return LessonPlan.model_validate(data)
