"""
PDF export of a reliability report.

``render_report_pdf`` depends only on its arguments; the report date is
passed in rather than read from the clock.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fpdf import FPDF
from fpdf.enums import XPos, YPos

logger = logging.getLogger(__name__)

CATEGORY_LABELS = [
    ("engine", "Engine"),
    ("transmission", "Transmission"),
    ("electricalSystem", "Electrical System"),
    ("brakes", "Brakes"),
    ("suspension", "Suspension"),
    ("fuelSystem", "Fuel System"),
]


def _latin1(text: Any) -> str:
    # Core fonts only cover latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


def _score_color(score: Optional[int]) -> tuple:
    try:
        score = int(score)
    except (TypeError, ValueError):
        return (148, 163, 184)
    if score >= 80:
        return (22, 163, 74)
    if score >= 60:
        return (202, 138, 4)
    return (220, 38, 38)


def _format_mileage(mileage: Any) -> str:
    try:
        return f"{int(mileage):,}"
    except (TypeError, ValueError):
        return str(mileage)


def render_report_pdf(
    year: Any,
    make: str,
    model: str,
    mileage: Any,
    reliability_data: Dict[str, Any],
    report_date: Optional[date] = None,
) -> bytes:
    """Render a reliability report as PDF bytes. Helvetica core font only."""
    categories = reliability_data.get("categories") or {}
    overall = reliability_data.get("overallScore")

    pdf = FPDF()
    # Fixed metadata date keeps output a function of the inputs
    stamp = report_date or date(2000, 1, 1)
    pdf.set_creation_date(datetime(stamp.year, stamp.month, stamp.day, tzinfo=timezone.utc))
    pdf.set_title(_latin1(f"{year} {make} {model} Reliability Report"))
    pdf.add_page()
    pdf.set_auto_page_break(auto=True, margin=15)

    # Header band
    pdf.set_fill_color(0, 77, 179)
    pdf.rect(0, 0, 210, 32, "F")
    pdf.set_text_color(255, 255, 255)
    pdf.set_font("Helvetica", "B", 20)
    pdf.set_xy(10, 10)
    pdf.cell(0, 12, "Vehicle Reliability Report", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(12)

    # Vehicle
    pdf.set_text_color(15, 23, 42)
    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 9, _latin1(f"{year} {make} {model}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", "", 11)
    pdf.cell(0, 7, _latin1(f"Mileage: {_format_mileage(mileage)} miles"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    if report_date is not None:
        pdf.cell(0, 7, f"Report Date: {report_date.isoformat()}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(4)

    # Overall score
    pdf.set_font("Helvetica", "B", 14)
    pdf.set_text_color(15, 23, 42)
    pdf.cell(45, 10, "Overall Score:")
    pdf.set_text_color(*_score_color(overall))
    pdf.cell(0, 10, f"{overall if overall is not None else 'N/A'}/100", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(4)

    # Category scores
    pdf.set_text_color(15, 23, 42)
    pdf.set_font("Helvetica", "B", 13)
    pdf.cell(0, 8, "Category Scores", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(0, 77, 179)
    pdf.line(10, pdf.get_y(), 200, pdf.get_y())
    pdf.ln(3)

    for key, label in CATEGORY_LABELS:
        score = categories.get(key)
        pdf.set_font("Helvetica", "", 11)
        pdf.set_text_color(51, 65, 85)
        pdf.cell(60, 7, label + ":")
        pdf.set_font("Helvetica", "B", 11)
        pdf.set_text_color(*_score_color(score))
        pdf.cell(0, 7, f"{score}/100" if score is not None else "Premium only", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    issues = reliability_data.get("commonIssues") or []
    if issues:
        pdf.ln(6)
        pdf.set_text_color(15, 23, 42)
        pdf.set_font("Helvetica", "B", 13)
        pdf.cell(0, 8, "Common Issues", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.line(10, pdf.get_y(), 200, pdf.get_y())
        pdf.ln(3)

        for issue in issues:
            pdf.set_font("Helvetica", "B", 10)
            pdf.set_text_color(15, 23, 42)
            pdf.multi_cell(0, 5, _latin1(issue.get("description", "")), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.set_font("Helvetica", "", 9)
            pdf.set_text_color(71, 85, 105)
            details = (
                f"Cost to fix: {issue.get('costToFix', 'N/A')}   "
                f"Occurrence: {issue.get('occurrence', 'N/A')}   "
                f"Mileage: {issue.get('mileage', 'N/A')}"
            )
            pdf.multi_cell(0, 5, _latin1(details), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.ln(2)

    analysis = reliability_data.get("aiAnalysis")
    if analysis:
        pdf.ln(4)
        pdf.set_text_color(15, 23, 42)
        pdf.set_font("Helvetica", "B", 13)
        pdf.cell(0, 8, "Analysis", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.line(10, pdf.get_y(), 200, pdf.get_y())
        pdf.ln(3)
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(30, 41, 59)
        pdf.multi_cell(0, 5, _latin1(analysis), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(8)
    pdf.set_font("Helvetica", "", 7)
    pdf.set_text_color(100, 116, 139)
    pdf.multi_cell(
        0,
        4,
        "This report is an estimate based on aggregated reliability information and does not "
        "replace an inspection by a qualified mechanic.",
        new_x=XPos.LMARGIN,
        new_y=YPos.NEXT,
    )

    raw_out = pdf.output()
    pdf_bytes = raw_out if isinstance(raw_out, (bytes, bytearray)) else raw_out.encode("latin-1")
    logger.debug(f"Rendered report PDF for {year} {make} {model} ({len(pdf_bytes)} bytes)")
    return bytes(pdf_bytes)
