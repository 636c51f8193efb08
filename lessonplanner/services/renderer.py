# services/renderer.py
"""
Lesson plan preview renderer.

Pure functions: (possibly partial) lesson plan -> print-formatted document.
Nothing here mutates the plan. `build_document` produces a small view model
that both the HTML preview and the PDF export read, so every output shows
the same rows in the same order:

    Teacher Introduction -> Lesson Introduction -> Instructional Design
    -> Teaching Learning Activity -> signature footer

Required prose rows render an "[Empty]" placeholder when blank; optional
activity rows are left out entirely. Lesson details show "N/A" when blank.
Prose HTML is inserted as-is (it is restricted upstream, not re-validated here).
"""

from dataclasses import dataclass
from enum import Enum
from html import escape
from typing import Any, Mapping, Optional, Tuple, Union

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from lessonplanner.models.lesson_plan import LessonPlan
from lessonplanner.utils.rich_text import is_empty_html

EMPTY_PLACEHOLDER = "[Empty]"
NOT_AVAILABLE = "N/A"
DOCUMENT_TITLE = "Daily Lesson Plan"
SIGNATURES = ("Teacher's Signature", "Headteacher's Signature")

PlanLike = Union[LessonPlan, Mapping[str, Any], None]


class PreviewMode(str, Enum):
    INLINE = "inline"
    REVIEW = "review"


# -------------------------
# View model
# -------------------------
@dataclass(frozen=True)
class DocumentRow:
    label: str
    html: Optional[str]  # None renders the placeholder


@dataclass(frozen=True)
class LessonDetails:
    left: Tuple[Tuple[str, str], ...]
    right: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class DocumentSection:
    title: str
    rows: Tuple[DocumentRow, ...] = ()
    details: Optional[LessonDetails] = None


@dataclass(frozen=True)
class LessonDocument:
    school_name: str
    school_address: str
    sections: Tuple[DocumentSection, ...]
    signatures: Tuple[str, ...] = SIGNATURES


# (slot, label, optional) in document order
ACTIVITY_ROWS = (
    ("introduction", "Introduction", False),
    ("review_prior_knowledge", "Prior Knowledge", True),
    ("review_previous_session", "Previous Session", True),
    ("presentation", "Presentation", False),
    ("practice", "Practice Activities", False),
    ("assessment", "Assessment", False),
    ("homework", "Homework", True),
    ("feedback", "Feedback", False),
    ("summary", "Summary", False),
    ("concluding", "Concluding", False),
)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if value is None:
        return {}
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


def _get(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None:
        value = data.get(to_camel(name))
    return value or ""


def _prose_row(label: str, html: str, optional: bool = False) -> Optional[DocumentRow]:
    if is_empty_html(html):
        return None if optional else DocumentRow(label, None)
    return DocumentRow(label, html)


def _text_row(label: str, text: str) -> DocumentRow:
    if not text.strip():
        return DocumentRow(label, None)
    return DocumentRow(label, escape(text))


def _detail(label: str, value: str) -> Tuple[str, str]:
    return label, value.strip() or NOT_AVAILABLE


def build_document(plan: PlanLike) -> LessonDocument:
    data = _as_mapping(plan)
    activities = _as_mapping(data.get("activities"))

    teacher = DocumentSection(
        "Teacher Introduction",
        rows=(
            _text_row("Teacher’s Name", _get(data, "teacher_name")),
            _text_row("Designation", _get(data, "teacher_designation")),
        ),
    )
    lesson = DocumentSection(
        "Lesson Introduction",
        details=LessonDetails(
            left=(
                _detail("Class", _get(data, "grade_level")),
                _detail("Session", _get(data, "session_no")),
                _detail("Session Duration", _get(data, "duration")),
            ),
            right=(
                _detail("Unit", _get(data, "unit")),
                _detail("Lesson", _get(data, "lesson_no")),
                _detail("Page", _get(data, "page_no")),
            ),
        ),
    )
    design = DocumentSection(
        "Instructional Design",
        rows=(
            _prose_row("Learning Outcomes", _get(data, "learning_outcomes")),
            _prose_row("Teaching Aids", _get(data, "teaching_aids")),
        ),
    )
    activity_rows = (
        _prose_row(label, _get(activities, slot), optional)
        for slot, label, optional in ACTIVITY_ROWS
    )
    activity = DocumentSection(
        "Teaching Learning Activity",
        rows=tuple(row for row in activity_rows if row is not None),
    )

    return LessonDocument(
        school_name=_get(data, "school_name").strip() or "Name of School",
        school_address=_get(data, "school_address").strip() or "School Address",
        sections=(teacher, lesson, design, activity),
    )


# -------------------------
# HTML output
# -------------------------
DOCUMENT_CSS = """
.lesson-document { background: #fff; padding: 3rem; max-width: 800px; margin: 0 auto; font-family: Inter, Arial, sans-serif; color: #0f172a; }
.lesson-document .doc-header { text-align: center; margin-bottom: 2rem; }
.lesson-document .doc-header h1 { font-size: 1.5rem; font-weight: 900; text-transform: uppercase; margin: 0; }
.lesson-document .doc-header .address { font-size: 10px; font-weight: 700; text-transform: uppercase; letter-spacing: .1em; color: #475569; }
.lesson-document .doc-badge { display: inline-block; margin-top: 1.5rem; padding: .375rem 2rem; border: 2px solid #0f172a; border-radius: .5rem; font-size: 10px; font-weight: 900; letter-spacing: .2em; text-transform: uppercase; }
.lesson-document table { width: 100%; border: 2px solid #0f172a; border-collapse: collapse; font-size: 13px; }
.lesson-document tr { border-bottom: 1px solid #cbd5e1; break-inside: avoid; }
.lesson-document td.section-title { padding: .5rem; background: #065f46; color: #fff; font-weight: 900; text-align: center; text-transform: uppercase; letter-spacing: .1em; font-size: 10px; }
.lesson-document td.row-label { width: 33%; padding: .75rem; border-right: 1px solid #cbd5e1; background: #f8fafc; font-weight: 700; font-size: 11px; text-transform: uppercase; vertical-align: top; color: #334155; }
.lesson-document td.row-value { padding: .75rem; vertical-align: top; }
.lesson-document td.row-empty { padding: .75rem; font-style: italic; color: #cbd5e1; font-size: 12px; }
.lesson-document .details { display: grid; grid-template-columns: 1fr 1fr; column-gap: 1.5rem; row-gap: .5rem; }
.lesson-document .details .label { font-weight: 700; }
.lesson-document .signatures { display: flex; justify-content: space-between; margin-top: 5rem; padding: 0 1rem; break-inside: avoid; }
.lesson-document .signature { width: 10rem; text-align: center; border-top: 2px solid #0f172a; padding-top: .25rem; font-size: 9px; font-weight: 900; letter-spacing: .1em; text-transform: uppercase; }
.rich-text-content ul { list-style-type: disc; margin: .5rem 0 .5rem 1.25rem; }
.rich-text-content li { margin-bottom: .25rem; }
.rich-text-content b { font-weight: 800; }
.rich-text-content i { font-style: italic; }
"""

PRINT_CSS = """
@media print {
  @page { margin: 1cm; size: A4; }
  body { background: white !important; -webkit-print-color-adjust: exact !important; print-color-adjust: exact !important; }
  #printable-area { width: 100% !important; max-width: none !important; margin: 0 !important; padding: 0 !important; box-shadow: none !important; border: none !important; }
  .no-print { display: none !important; }
  .preview-inline { opacity: 1 !important; filter: none !important; }
  tr { page-break-inside: avoid; }
  td { border-color: #000 !important; }
}
"""

CHROME_CSS = """
body { margin: 0; background: #f8fafc; }
.preview-inline { opacity: .7; transform: scale(.98); transform-origin: top; pointer-events: none; user-select: none; filter: grayscale(.5); }
.preview-badge { display: inline-block; margin: 1rem; padding: .375rem .75rem; border-radius: 9999px; background: #ecfdf5; color: #065f46; font: 700 12px Inter, Arial, sans-serif; }
.review-overlay { min-height: 100vh; background: rgba(15, 23, 42, .9); padding: 2rem 1rem 5rem; }
.review-toolbar { position: sticky; top: 0; max-width: 56rem; margin: 0 auto 2rem; display: flex; justify-content: space-between; gap: 1rem; padding: 1rem; background: #fff; border-radius: .75rem; border-bottom: 4px solid #059669; font: 700 14px Inter, Arial, sans-serif; }
.review-toolbar a { color: #334155; text-decoration: none; padding: .625rem 1.25rem; border-radius: .5rem; }
.review-toolbar a.primary { background: #059669; color: #fff; }
"""


def _render_row(row: DocumentRow) -> str:
    label = f'<td class="row-label">{escape(row.label)}</td>'
    if row.html is None:
        return f'<tr>{label}<td class="row-empty">{EMPTY_PLACEHOLDER}</td></tr>'
    return f'<tr>{label}<td class="row-value"><div class="rich-text-content">{row.html}</div></td></tr>'


def _render_details(details: LessonDetails) -> str:
    def column(items):
        return "".join(
            f'<div><span class="label">{escape(label)}:</span> {escape(value)}</div>'
            for label, value in items
        )

    return (
        '<tr><td class="row-label">Lesson Details</td><td class="row-value">'
        f'<div class="details"><div>{column(details.left)}</div><div>{column(details.right)}</div></div>'
        "</td></tr>"
    )


def _render_section(section: DocumentSection) -> str:
    parts = [f'<tr><td colspan="2" class="section-title">{escape(section.title)}</td></tr>']
    if section.details is not None:
        parts.append(_render_details(section.details))
    parts.extend(_render_row(row) for row in section.rows)
    return "".join(parts)


def render_document_html(plan: PlanLike) -> str:
    """The printable document itself, identical in every presentation mode."""
    doc = build_document(plan)
    sections = "".join(_render_section(s) for s in doc.sections)
    signatures = "".join(f'<div class="signature">{escape(s)}</div>' for s in doc.signatures)
    return (
        '<div id="printable-area" class="lesson-document">'
        '<div class="doc-header">'
        f"<h1>{escape(doc.school_name)}</h1>"
        f'<p class="address">{escape(doc.school_address)}</p>'
        f'<div class="doc-badge">{DOCUMENT_TITLE}</div>'
        "</div>"
        f"<table><tbody>{sections}</tbody></table>"
        f'<div class="signatures">{signatures}</div>'
        "</div>"
    )


def render_preview(
    plan: PlanLike,
    mode: PreviewMode = PreviewMode.INLINE,
    *,
    auto_print: bool = False,
    print_url: str = "print",
    pdf_url: str = "pdf",
    back_url: str = "preview?mode=inline",
) -> str:
    """
    A complete HTML page around the document.

    INLINE is the muted, non-interactive live preview; REVIEW is the
    full-screen review/export presentation with print and PDF actions.
    """
    mode = PreviewMode(mode)
    document = render_document_html(plan)
    topic = _get(_as_mapping(plan), "topic").strip()
    title = f"{DOCUMENT_TITLE} - {topic}" if topic else DOCUMENT_TITLE

    if mode is PreviewMode.INLINE:
        body = (
            '<div class="preview-badge no-print">Live Editor View</div>'
            f'<div class="preview-inline">{document}</div>'
        )
    else:
        body = (
            '<div class="review-overlay">'
            '<div class="review-toolbar no-print">'
            f'<a href="{escape(back_url)}">&larr; Back to Editor</a>'
            "<span>"
            f'<a href="{escape(print_url)}">Print</a>'
            f'<a class="primary" href="{escape(pdf_url)}">Download PDF</a>'
            "</span>"
            "</div>"
            f"{document}"
            "</div>"
        )

    script = "<script>window.addEventListener('load', function () { window.print(); });</script>" if auto_print else ""
    return (
        "<!DOCTYPE html>"
        '<html lang="en"><head><meta charset="utf-8">'
        f"<title>{escape(title)}</title>"
        f"<style>{CHROME_CSS}{DOCUMENT_CSS}{PRINT_CSS}</style>"
        f'</head><body class="mode-{mode.value}">{body}{script}</body></html>'
    )
