from lessonplanner.models.lesson_plan import LessonPlan
from lessonplanner.services.renderer import (
    EMPTY_PLACEHOLDER,
    NOT_AVAILABLE,
    PreviewMode,
    build_document,
    render_document_html,
    render_preview,
)


def _rows(doc, title):
    section = next(s for s in doc.sections if s.title == title)
    return [(row.label, row.html) for row in section.rows]


def test_section_order():
    doc = build_document(LessonPlan())
    assert [s.title for s in doc.sections] == [
        "Teacher Introduction",
        "Lesson Introduction",
        "Instructional Design",
        "Teaching Learning Activity",
    ]


def test_empty_plan_shows_placeholders_and_skips_optional_rows():
    doc = build_document(LessonPlan())
    assert _rows(doc, "Instructional Design") == [("Learning Outcomes", None), ("Teaching Aids", None)]
    labels = [label for label, _ in _rows(doc, "Teaching Learning Activity")]
    assert labels == [
        "Introduction",
        "Presentation",
        "Practice Activities",
        "Assessment",
        "Feedback",
        "Summary",
        "Concluding",
    ]
    assert doc.school_name == "Name of School"
    assert doc.school_address == "School Address"

    html = render_document_html(LessonPlan())
    assert html.count(EMPTY_PLACEHOLDER) == 2 + 7 + 1
    assert "Homework" not in html


def test_optional_rows_appear_when_filled(filled_plan):
    plan = filled_plan.model_copy(deep=True)
    plan.activities.homework = "<b>Draw</b> a mango"
    labels = [label for label, _ in _rows(build_document(plan), "Teaching Learning Activity")]
    assert labels.index("Homework") == labels.index("Assessment") + 1
    assert "Prior Knowledge" not in labels


def test_markup_only_prose_counts_as_empty():
    doc = build_document({"learningOutcomes": "<ul><li> </li></ul>", "activities": {"homework": "<br>"}})
    assert _rows(doc, "Instructional Design")[0] == ("Learning Outcomes", None)
    assert "Homework" not in [label for label, _ in _rows(doc, "Teaching Learning Activity")]


def test_lesson_details_use_not_available_for_blanks():
    doc = build_document({"unit": "4", "duration": " "})
    details = next(s for s in doc.sections if s.details is not None).details
    assert dict(details.left) == {"Class": NOT_AVAILABLE, "Session": NOT_AVAILABLE, "Session Duration": NOT_AVAILABLE}
    assert dict(details.right) == {"Unit": "4", "Lesson": NOT_AVAILABLE, "Page": NOT_AVAILABLE}


def test_partial_mapping_with_snake_or_camel_keys():
    assert build_document({"school_name": "A"}).school_name == "A"
    assert build_document({"schoolName": "B"}).school_name == "B"
    assert build_document(None).school_name == "Name of School"


def test_filled_document(filled_plan):
    html = render_document_html(filled_plan)
    assert html.startswith('<div id="printable-area"')
    assert "Dhanmondi Govt. Primary School" in html
    assert "<ul><li>name <b>five</b> fruits</li></ul>" in html
    assert "Head Teacher" in html
    assert EMPTY_PLACEHOLDER not in html
    order = [html.index(f'row-label">{label}<') for label in ("Introduction", "Presentation", "Concluding")]
    assert order == sorted(order)


def test_plain_fields_are_escaped():
    html = render_document_html({"teacherName": "<script>alert(1)</script>", "unit": "<b>"})
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_rendering_does_not_mutate(filled_plan):
    before = filled_plan.model_copy(deep=True)
    render_preview(filled_plan, PreviewMode.REVIEW)
    assert filled_plan == before


def test_inline_preview_is_muted_and_has_no_actions(filled_plan):
    page = render_preview(filled_plan, PreviewMode.INLINE)
    assert 'class="preview-inline"' in page
    assert "Live Editor View" in page
    assert "Download PDF" not in page
    assert "window.print" not in page
    assert "<title>Daily Lesson Plan - Fruits</title>" in page


def test_review_preview_has_actions(filled_plan):
    page = render_preview(filled_plan, "review", pdf_url="/export.pdf")
    assert "Download PDF" in page
    assert 'href="/export.pdf"' in page
    assert "Back to Editor" in page
    assert "@media print" in page


def test_print_view_triggers_print_dialog():
    page = render_preview(LessonPlan(), PreviewMode.REVIEW, auto_print=True)
    assert "window.print()" in page
    assert "<title>Daily Lesson Plan</title>" in page
