# services/pdf_export.py
import io
import re
from html import escape
from typing import List

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, portrait
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from lessonplanner.core.logging_config import get_logger
from lessonplanner.services.renderer import (
    DOCUMENT_TITLE,
    EMPTY_PLACEHOLDER,
    DocumentRow,
    LessonDetails,
    PlanLike,
    build_document,
)
from lessonplanner.utils.rich_text import Fragment, Run

logger = get_logger(__name__)

PAGE_SIZE = portrait(A4)
PAGE_MARGIN = 10 * mm

SECTION_COLOR = colors.HexColor("#065f46")
LABEL_BACKGROUND = colors.HexColor("#f8fafc")
RULE_COLOR = colors.HexColor("#cbd5e1")
EMPTY_COLOR = colors.HexColor("#94a3b8")

_styles = getSampleStyleSheet()
TITLE_STYLE = ParagraphStyle("PlanTitle", parent=_styles["Title"], fontSize=16, leading=20, spaceAfter=2)
ADDRESS_STYLE = ParagraphStyle("PlanAddress", parent=_styles["Normal"], fontSize=8, alignment=TA_CENTER, textColor=colors.HexColor("#475569"))
BADGE_STYLE = ParagraphStyle("PlanBadge", parent=_styles["Normal"], fontName="Helvetica-Bold", fontSize=9, alignment=TA_CENTER, spaceBefore=8, spaceAfter=12)
SECTION_STYLE = ParagraphStyle("PlanSection", parent=_styles["Normal"], fontName="Helvetica-Bold", fontSize=8, alignment=TA_CENTER, textColor=colors.white)
LABEL_STYLE = ParagraphStyle("PlanLabel", parent=_styles["Normal"], fontName="Helvetica-Bold", fontSize=8, leading=10)
BODY_STYLE = ParagraphStyle("PlanBody", parent=_styles["Normal"], fontSize=9.5, leading=12.5)
BULLET_STYLE = ParagraphStyle("PlanBullet", parent=BODY_STYLE, leftIndent=12, bulletIndent=2)
EMPTY_STYLE = ParagraphStyle("PlanEmpty", parent=BODY_STYLE, fontName="Helvetica-Oblique", textColor=EMPTY_COLOR)
SIGNATURE_STYLE = ParagraphStyle("PlanSignature", parent=_styles["Normal"], fontName="Helvetica-Bold", fontSize=7, alignment=TA_CENTER)


def pdf_filename(topic: str) -> str:
    """`Lesson_Plan_<topic>.pdf`, or `Lesson_Plan_Export.pdf` without a topic."""
    safe = re.sub(r'[\\/:*?"<>|\x00-\x1f]+', "_", (topic or "").strip())
    return f"Lesson_Plan_{safe or 'Export'}.pdf"


def _run_markup(run: Run) -> str:
    text = escape(run.text, quote=False)
    if run.italic:
        text = f"<i>{text}</i>"
    if run.bold:
        text = f"<b>{text}</b>"
    return text


def _prose_flowables(html: str) -> List:
    """Restricted HTML -> paragraphs, bullets become bulleted paragraphs."""
    flowables = []
    for block in Fragment.parse(html).blocks:
        markup = "".join(_run_markup(r) for r in block.runs if r.text)
        if block.bullet:
            flowables.append(Paragraph(markup, BULLET_STYLE, bulletText="•"))
        elif markup.strip():
            flowables.append(Paragraph(markup, BODY_STYLE))
        else:
            flowables.append(Spacer(1, 4))
    return flowables


def _row_cells(row: DocumentRow) -> list:
    label = Paragraph(escape(row.label.upper()), LABEL_STYLE)
    if row.html is None:
        return [label, Paragraph(EMPTY_PLACEHOLDER, EMPTY_STYLE)]
    return [label, _prose_flowables(row.html)]


def _details_cell(details: LessonDetails, width: float) -> Table:
    def line(label, value):
        return Paragraph(f"<b>{escape(label)}:</b> {escape(value)}", BODY_STYLE)

    rows = [[line(*left), line(*right)] for left, right in zip(details.left, details.right)]
    cell = Table(rows, colWidths=[width / 2] * 2)
    cell.setStyle(TableStyle([
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]))
    return cell


def _document_table(doc, width: float) -> Table:
    data = []
    style = [
        ("BOX", (0, 0), (-1, -1), 1.5, colors.black),
        ("LINEBELOW", (0, 0), (-1, -1), 0.5, RULE_COLOR),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]
    for section in doc.sections:
        i = len(data)
        data.append([Paragraph(escape(section.title.upper()), SECTION_STYLE), ""])
        style += [
            ("SPAN", (0, i), (1, i)),
            ("BACKGROUND", (0, i), (1, i), SECTION_COLOR),
        ]
        body = []
        if section.details is not None:
            body.append([Paragraph("LESSON DETAILS", LABEL_STYLE), _details_cell(section.details, width * 2 / 3 - 12)])
        body += [_row_cells(row) for row in section.rows]
        for cells in body:
            i = len(data)
            data.append(cells)
            style += [
                ("BACKGROUND", (0, i), (0, i), LABEL_BACKGROUND),
                ("LINEAFTER", (0, i), (0, i), 0.5, RULE_COLOR),
            ]

    # rows are never split across pages; page breaks fall between rows
    table = Table(data, colWidths=[width / 3, width * 2 / 3], splitByRow=1)
    table.setStyle(TableStyle(style))
    return table


def _signature_block(doc, width: float) -> KeepTogether:
    cells = [[Paragraph(escape(s.upper()), SIGNATURE_STYLE) for s in doc.signatures]]
    table = Table(cells, colWidths=[width / 2] * len(doc.signatures))
    table.setStyle(TableStyle([
        ("LINEABOVE", (0, 0), (-1, 0), 1.5, colors.black),
        ("LEFTPADDING", (0, 0), (-1, -1), 24),
        ("RIGHTPADDING", (0, 0), (-1, -1), 24),
    ]))
    return KeepTogether([Spacer(1, 48), table])


def export_pdf(plan: PlanLike) -> bytes:
    """
    Render the lesson plan to PDF bytes: A4 portrait, fixed 10mm margins,
    same rows and order as the HTML preview.
    """
    doc = build_document(plan)
    buffer = io.BytesIO()
    template = SimpleDocTemplate(
        buffer,
        pagesize=PAGE_SIZE,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=DOCUMENT_TITLE,
    )
    width = template.width

    story = [
        Paragraph(escape(doc.school_name.upper()), TITLE_STYLE),
        Paragraph(escape(doc.school_address.upper()), ADDRESS_STYLE),
        Paragraph(DOCUMENT_TITLE.upper(), BADGE_STYLE),
        _document_table(doc, width),
        _signature_block(doc, width),
    ]
    template.build(story)
    pdf = buffer.getvalue()
    logger.info(f"Exported lesson plan PDF ({len(pdf)} bytes)")
    return pdf
