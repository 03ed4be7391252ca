"""
reports.py — PDF rendering for LLN results and enrolment forms
==============================================================
Both renderers build a reportlab platypus story and return the raw PDF
bytes; the caller decides whether to offer them as a download or file them
in the student's document folder.

  render_assessment_report(record, result)  → bytes   "LLN_Report_<id>.pdf"
  render_enrolment_forms(record, draft)     → bytes   "Enrolment_Form_<id>.pdf"

reportlab is imported inside each function so that importing this module
stays cheap for pages that never render a PDF.
"""

from __future__ import annotations

import io
from datetime import date
from typing import Optional
from xml.sax.saxutils import escape

from nca_enrolment.models import (
    DECLARATION_POINTS,
    REQUIRED_DOCUMENTS,
    EnrollmentDraft,
    Rating,
    ScoreResult,
    StudentRecord,
)

COLLEGE_NAME = "National College Australia"

_RATING_HEX = {
    Rating.EXCELLENT:                 "#107c10",
    Rating.GOOD:                      "#0078d4",
    Rating.NEEDS_SOME_SUPPORT:        "#ca5010",
    Rating.NEEDS_SIGNIFICANT_SUPPORT: "#d13438",
}


def assessment_report_filename(student_id: str) -> str:
    return f"LLN_Report_{student_id}.pdf"


def enrolment_forms_filename(student_id: str) -> str:
    return f"Enrolment_Form_{student_id}.pdf"


def _rl_colour(hex_str: str):
    """Convert a CSS hex colour string to a reportlab Color."""
    from reportlab.lib import colors as rl_colors
    h = hex_str.lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    r, g, b = int(h[0:2], 16) / 255, int(h[2:4], 16) / 255, int(h[4:6], 16) / 255
    return rl_colors.Color(r, g, b)


def _styles():
    from reportlab.lib import colors as rl_colors
    from reportlab.lib.enums import TA_CENTER
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet

    base = getSampleStyleSheet()
    navy  = _rl_colour("#1e3a8a")
    dark  = _rl_colour("#1f2937")
    muted = _rl_colour("#6b7280")
    return {
        "navy":   navy,
        "light":  _rl_colour("#eff6ff"),
        "muted":  muted,
        "h1":     ParagraphStyle("H1", parent=base["Heading1"], textColor=rl_colors.white,
                                 fontSize=16, leading=20, spaceAfter=4),
        "h2":     ParagraphStyle("H2", parent=base["Heading2"], textColor=navy,
                                 fontSize=12, leading=15, spaceBefore=12, spaceAfter=4),
        "body":   ParagraphStyle("Body", parent=base["Normal"], textColor=dark,
                                 fontSize=9, leading=13),
        "small":  ParagraphStyle("Small", parent=base["Normal"], textColor=muted,
                                 fontSize=8, leading=11),
        "centre": ParagraphStyle("Centre", parent=base["Normal"], textColor=dark,
                                 alignment=TA_CENTER, fontSize=9),
        "footer": ParagraphStyle("Footer", parent=base["Normal"], textColor=muted,
                                 fontSize=7.5, alignment=TA_CENTER),
    }


def _banner(title: str, subtitle: str, width: float, st: dict):
    from reportlab.platypus import Paragraph, Table, TableStyle

    table = Table([[Paragraph(
        f"<b>{escape(title)}</b><br/><font size='10'>{escape(subtitle)}</font>", st["h1"],
    )]], colWidths=[width])
    table.setStyle(TableStyle([
        ("BACKGROUND",    (0, 0), (-1, -1), st["navy"]),
        ("TOPPADDING",    (0, 0), (-1, -1), 12),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
        ("LEFTPADDING",   (0, 0), (-1, -1), 10),
    ]))
    return table


def _kv_table(rows: list[tuple[str, str]], width: float, st: dict):
    from reportlab.lib import colors as rl_colors
    from reportlab.platypus import Paragraph, Table, TableStyle

    data = [[Paragraph(f"<b>{escape(k)}</b>", st["body"]), Paragraph(escape(v or "—"), st["body"])]
            for k, v in rows]
    table = Table(data, colWidths=[width * 0.35, width * 0.65])
    table.setStyle(TableStyle([
        ("VALIGN",         (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 0), (-1, -1), [st["light"], rl_colors.white]),
        ("GRID",           (0, 0), (-1, -1), 0.5, rl_colors.lightgrey),
        ("TOPPADDING",     (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING",  (0, 0), (-1, -1), 4),
    ]))
    return table


def _section_heading(story: list, title: str, st: dict) -> None:
    from reportlab.lib.units import cm
    from reportlab.platypus import HRFlowable, Paragraph, Spacer

    story.append(Paragraph(title, st["h2"]))
    story.append(HRFlowable(width="100%", thickness=1, color=st["navy"]))
    story.append(Spacer(1, 0.15 * cm))


def _footer(story: list, st: dict, today: str) -> None:
    from reportlab.lib import colors as rl_colors
    from reportlab.lib.units import cm
    from reportlab.platypus import HRFlowable, Paragraph, Spacer

    story.append(Spacer(1, 0.6 * cm))
    story.append(HRFlowable(width="100%", thickness=0.5, color=rl_colors.lightgrey))
    story.append(Paragraph(f"Generated by <b>{COLLEGE_NAME}</b> enrolment system · {today}", st["footer"]))


# ─── LLN assessment report ───────────────────────────────────────────────────

def render_assessment_report(record: StudentRecord, result: ScoreResult) -> bytes:
    """
    Build the LLN assessment report PDF.
    Returns raw PDF bytes.
    """
    from reportlab.lib import colors as rl_colors
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.units import cm
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=1.8 * cm, rightMargin=1.8 * cm,
        topMargin=1.8 * cm, bottomMargin=1.8 * cm,
        title=f"LLN Assessment Report - {record.full_name}",
    )
    st = _styles()
    story: list = []
    today = date.today().strftime("%B %d, %Y")
    assessed_on = result.completed_at.strftime("%d %B %Y")

    # ── Header banner ─────────────────────────────────────────────────────────
    story.append(_banner(COLLEGE_NAME, "Language, Literacy and Numeracy (LLN) Assessment Report",
                         doc.width, st))
    story.append(Spacer(1, 0.4 * cm))

    # ── Student information ───────────────────────────────────────────────────
    _section_heading(story, "Student Information", st)
    story.append(_kv_table([
        ("Student ID",      record.student_id),
        ("Name",            record.full_name),
        ("Email",           record.email),
        ("Date of Birth",   record.date_of_birth),
        ("Assessment Date", assessed_on),
    ], doc.width, st))

    # ── KPI row: Overall | Rating | Eligibility ───────────────────────────────
    _section_heading(story, "Assessment Results", st)
    rating_hex = _RATING_HEX[result.rating]
    eligible_hex = "#107c10" if result.eligible else "#d13438"
    kpi_data = [
        ["Overall Score", "Rating", "Eligibility"],
        [
            Paragraph(f"<b><font size='14' color='{rating_hex}'>{result.overall}%</font></b><br/>"
                      f"<font size='8'>{result.correct_count} of {result.total_count} questions</font>",
                      st["centre"]),
            Paragraph(f"<b><font color='{rating_hex}'>{result.rating.value}</font></b>", st["centre"]),
            Paragraph(f"<b><font color='{eligible_hex}'>{result.eligibility_label}</font></b>", st["centre"]),
        ],
    ]
    kpi_w = doc.width / 3
    kpi_table = Table(kpi_data, colWidths=[kpi_w] * 3)
    kpi_table.setStyle(TableStyle([
        ("BACKGROUND",     (0, 0), (-1, 0), st["navy"]),
        ("TEXTCOLOR",      (0, 0), (-1, 0), rl_colors.white),
        ("FONTNAME",       (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE",       (0, 0), (-1, 0), 8),
        ("ALIGN",          (0, 0), (-1, -1), "CENTER"),
        ("VALIGN",         (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING",     (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING",  (0, 0), (-1, -1), 6),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [st["light"]]),
        ("GRID",           (0, 0), (-1, -1), 0.5, rl_colors.lightgrey),
    ]))
    story.append(kpi_table)

    # ── Detailed scores ───────────────────────────────────────────────────────
    _section_heading(story, "Detailed Scores", st)
    rows = [["Section", "Score"]] + [[label, f"{pct}%"] for label, pct in result.per_section.items()]
    rows.append(["Overall", f"{result.overall}%"])
    section_table = Table(rows, colWidths=[doc.width * 0.7, doc.width * 0.3])
    section_table.setStyle(TableStyle([
        ("BACKGROUND",     (0, 0), (-1, 0), st["navy"]),
        ("TEXTCOLOR",      (0, 0), (-1, 0), rl_colors.white),
        ("FONTNAME",       (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME",       (0, -1), (-1, -1), "Helvetica-Bold"),
        ("FONTSIZE",       (0, 0), (-1, -1), 9),
        ("ALIGN",          (1, 0), (1, -1), "CENTER"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -2), [rl_colors.white, st["light"]]),
        ("GRID",           (0, 0), (-1, -1), 0.5, rl_colors.lightgrey),
    ]))
    story.append(section_table)

    # ── Recommendations & summary ─────────────────────────────────────────────
    _section_heading(story, "Recommendations", st)
    story.append(Paragraph(result.recommendation, st["body"]))

    _section_heading(story, "Summary", st)
    outcome = ("The student is eligible to proceed with their chosen course."
               if result.eligible else
               "Additional support is recommended before course commencement.")
    story.append(Paragraph(
        f"This Language, Literacy and Numeracy assessment was completed on {assessed_on}. "
        f"The student achieved an overall score of {result.overall}% and received a rating "
        f"of \"{result.rating.value}\". {outcome}",
        st["body"],
    ))

    _footer(story, st, today)
    doc.build(story)
    return buf.getvalue()


# ─── Enrolment forms ─────────────────────────────────────────────────────────

def render_enrolment_forms(
    record: StudentRecord,
    draft: EnrollmentDraft,
    result: Optional[ScoreResult] = None,
) -> bytes:
    """
    Build the completed enrolment form PDF: personal details, course,
    background, USI, signed declaration and the document checklist.
    Returns raw PDF bytes.
    """
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.units import cm
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=1.8 * cm, rightMargin=1.8 * cm,
        topMargin=1.8 * cm, bottomMargin=1.8 * cm,
        title=f"Enrolment Form - {record.full_name}",
    )
    st = _styles()
    story: list = []
    today = date.today().strftime("%B %d, %Y")

    pd = draft.personal_details
    course = draft.course_details
    bg = draft.background
    comp = draft.compliance

    story.append(_banner(COLLEGE_NAME, f"Student Enrolment Form · {record.student_id}", doc.width, st))
    story.append(Spacer(1, 0.4 * cm))

    _section_heading(story, "Personal Details", st)
    if pd:
        full_name = " ".join(p for p in (pd.title, pd.first_name, pd.middle_name, pd.last_name) if p)
        story.append(_kv_table([
            ("Name",             full_name),
            ("Gender",           pd.gender),
            ("Date of Birth",    pd.date_of_birth),
            ("Mobile",           pd.mobile),
            ("Email",            pd.email),
            ("Residential Address", pd.address.one_line()),
            ("Postal Address",   pd.address.postal_address or "Same as residential"),
        ], doc.width, st))
    else:
        story.append(Paragraph("Not provided.", st["small"]))

    _section_heading(story, "Course Details", st)
    if course:
        story.append(_kv_table([
            ("Course",        course.course_name),
            ("Delivery Mode", course.delivery_mode),
            ("Start Date",    course.start_date),
        ], doc.width, st))
    if result is not None:
        story.append(Spacer(1, 0.15 * cm))
        story.append(Paragraph(
            f"LLN assessment: {result.overall}% ({result.rating.value}) · {result.eligibility_label}",
            st["small"],
        ))

    _section_heading(story, "Background Information", st)
    if bg:
        emergency = ", ".join(p for p in (bg.emergency_contact_name, bg.emergency_contact_relation,
                                          bg.emergency_contact_phone) if p)
        story.append(_kv_table([
            ("Emergency Contact",      emergency),
            ("Country of Birth",       bg.country_of_birth),
            ("Country of Citizenship", bg.country_of_citizenship),
            ("Australian Citizen",     "Yes" if bg.australian_citizen else "No"),
            ("Main Language",          bg.main_language),
            ("English Proficiency",    bg.english_proficiency),
            ("Aboriginal / Torres Strait Islander", bg.aboriginal_status),
            ("Employment Status",      bg.employment_status),
            ("Secondary School",       f"{bg.secondary_school} {bg.school_level}".strip()),
            ("Prior Qualifications",   bg.qualifications),
            ("Disability",             bg.disability),
            ("Reason for Study",       bg.course_reason),
        ], doc.width, st))

    _section_heading(story, "Unique Student Identifier", st)
    story.append(Paragraph(escape(comp.usi) if comp and comp.usi else "Not provided.", st["body"]))

    _section_heading(story, "Student Declaration", st)
    for i, point in enumerate(DECLARATION_POINTS, start=1):
        story.append(Paragraph(f"{i}. {escape(point)}", st["small"]))
    story.append(Spacer(1, 0.2 * cm))
    if comp:
        story.append(_kv_table([
            ("Read student policy",   "Yes" if comp.read_policy else "No"),
            ("Read student handbook", "Yes" if comp.read_handbook else "No"),
            ("Agreed to declaration", "Yes" if comp.agrees_to_declaration else "No"),
            ("Signature",             comp.signature_name),
            ("Date",                  comp.signature_date),
        ], doc.width, st))

    _section_heading(story, "Supporting Documents", st)
    story.append(_kv_table([
        (label, "Received" if doc_type in draft.documents else "Missing")
        for doc_type, label in REQUIRED_DOCUMENTS.items()
    ], doc.width, st))

    _footer(story, st, today)
    doc.build(story)
    return buf.getvalue()
