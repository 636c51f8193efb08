import re
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

from lessonplanner.core.config import AIConfig, ai_config
from lessonplanner.core.logging_config import get_logger
from lessonplanner.models.lesson_plan import (
    ACTIVITY_SLOTS,
    IDENTITY_FIELDS,
    LESSON_DETAIL_FIELDS,
    PROSE_FIELDS,
    REQUIRED_ACTIVITY_SLOTS,
    GenerationParams,
    LessonPlan,
)
from lessonplanner.utils.ai_client import AIClientError, call_ai_model, parse_json_object
from lessonplanner.utils.rich_text import is_empty_html, normalize_fragment

logger = get_logger("lesson_plan_generator")

GENERATION_ERROR_MESSAGE = "AI generation failed; check input or image clarity"


class LessonPlanGenerationError(Exception):
    """Any generation failure. Carries only the user-facing message; the cause is chained."""

    def __init__(self, message: str = GENERATION_ERROR_MESSAGE):
        super().__init__(message)


# -------------------------
# Output contract
# -------------------------
_STRING = {"type": "STRING"}

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        **{to_camel(f): _STRING for f in IDENTITY_FIELDS + LESSON_DETAIL_FIELDS},
        "learningOutcomes": _STRING,
        "teachingAids": _STRING,
        "activities": {
            "type": "OBJECT",
            "properties": {to_camel(slot): _STRING for slot in ACTIVITY_SLOTS},
            "required": [to_camel(slot) for slot in REQUIRED_ACTIVITY_SLOTS],
        },
    },
    "required": ["learningOutcomes", "teachingAids", "activities"],
}


class _Generated(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, extra="forbid")


class GeneratedActivities(_Generated):
    introduction: StrictStr
    review_prior_knowledge: StrictStr = ""
    review_previous_session: StrictStr = ""
    presentation: StrictStr
    practice: StrictStr
    assessment: StrictStr
    homework: StrictStr = ""
    feedback: StrictStr
    summary: StrictStr
    concluding: StrictStr


class GeneratedLessonPlan(_Generated):
    school_name: StrictStr = ""
    school_address: StrictStr = ""
    teacher_name: StrictStr = ""
    teacher_designation: StrictStr = ""
    topic: StrictStr = ""
    grade_level: StrictStr = ""
    unit: StrictStr = ""
    lesson_no: StrictStr = ""
    session_no: StrictStr = ""
    page_no: StrictStr = ""
    duration: StrictStr = ""
    learning_outcomes: StrictStr
    teaching_aids: StrictStr
    activities: GeneratedActivities


# -------------------------
# Text Cleanup Utility
# -------------------------
def _cleanup_ai_text(text: str) -> str:
    """Turn stray Markdown into the allowed HTML and drop anything else the fields may not hold."""
    text = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", text)
    text = re.sub(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])", r"<i>\1</i>", text)
    text = re.sub(r"^\s*#+\s*", "", text, flags=re.MULTILINE)
    return normalize_fragment(text.strip())


# -------------------------
# Prompt Builder
# -------------------------
def _activity_notes(params: GenerationParams) -> str:
    notes = []
    for slot in ACTIVITY_SLOTS:
        value = getattr(params.activities, slot)
        if not is_empty_html(value):
            notes.append(f"- {to_camel(slot)}: {value}")
    return "\n".join(notes)


def build_prompt(params: GenerationParams) -> str:
    sections = [
        f"""
Generate a professional Daily Lesson Plan for Primary English (Bangladesh).
Curriculum: NCTB (National Curriculum and Textbook Board) "English for Today".
Language: English.

Context:
- Topic: {params.topic}
- Grade: {params.grade_level}
- Unit: {params.unit}, Lesson: {params.lesson_no}, Session: {params.session_no}
- Duration: {params.duration}
""".strip()
    ]

    if params.textbook_text.strip():
        sections.append(f'Textbook Text: "{params.textbook_text.strip()}"')

    notes = _activity_notes(params)
    if notes:
        sections.append(f"User Provided Activity Notes (Integrate these into the plan):\n{notes}")

    if params.image is not None:
        sections.append("Analyze the attached textbook image to ensure pedagogical alignment.")

    sections.append(
        """
FORMATTING REQUIREMENT:
For 'learningOutcomes', 'teachingAids', and all 'activities' fields, you MUST return the content using basic HTML tags for rich formatting:
- Use <b>...</b> for bold.
- Use <i>...</i> for italics.
- Use <ul><li>...</li></ul> for bullet points.
- Do NOT use Markdown. Use only valid simple HTML.

Structure Requirements:
1. Learning Outcomes: Specific competencies from the NCTB curriculum.
2. Teaching Aids: Specific materials for this lesson.
3. Teaching Learning Activities:
   - Introduction: Hook/Motivation.
   - Review of Prior Knowledge: Connecting to life.
   - Review of Previous Session: Recapping.
   - Presentation of the class: Core instruction.
   - Practice Activities: Active tasks.
   - Assessment: Check understanding.
   - Homework: Simple follow-up.
   - Feedback: Scaffolding/Correction.
   - Summary: Wrap up.
   - Concluding: Closing ritual.
""".strip()
    )
    return "\n\n".join(sections)


# -------------------------
# Precedence
# -------------------------
def apply_precedence(params: GenerationParams, generated: GeneratedLessonPlan) -> LessonPlan:
    """
    Combine user input with a generated plan.

    Identity fields keep the user's value unless it is blank; lesson
    details always keep the user's value, even when blank. Prose comes
    from the generated plan.
    """
    data = generated.model_dump()

    for name in PROSE_FIELDS:
        data[name] = _cleanup_ai_text(data[name])
    data["activities"] = {slot: _cleanup_ai_text(v) for slot, v in data["activities"].items()}

    for name in IDENTITY_FIELDS:
        user_value = getattr(params, name)
        if user_value.strip():
            data[name] = user_value
    for name in LESSON_DETAIL_FIELDS:
        data[name] = getattr(params, name)

    return LessonPlan.model_validate(data)


# -------------------------
# Main AI Generation Logic
# -------------------------
async def generate_lesson_plan(
    params: GenerationParams,
    *,
    config: Optional[AIConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> LessonPlan:
    """
    One request/response round trip to the generation backend.

    Raises LessonPlanGenerationError for every failure (transport, empty
    body, malformed JSON, schema mismatch); nothing is partially recovered.
    """
    config = config or ai_config
    prompt = build_prompt(params)
    logger.info(
        f"Generating lesson plan for topic '{params.topic or '-'}' "
        f"({params.grade_level}), image attached: {params.image is not None}"
    )

    try:
        raw_text = await call_ai_model(
            prompt,
            api_url=config.endpoint,
            api_key=config.api_key,
            response_schema=RESPONSE_SCHEMA,
            image=params.image,
            timeout=config.timeout,
            http_client=http_client,
        )
        generated = GeneratedLessonPlan.model_validate(parse_json_object(raw_text))
        plan = apply_precedence(params, generated)
    except (AIClientError, ValidationError) as e:
        logger.warning(f"Lesson plan generation failed: {e}")
        raise LessonPlanGenerationError() from e

    logger.info(f"Lesson plan generated for topic '{plan.topic or '-'}'")
    return plan
