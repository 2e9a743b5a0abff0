from __future__ import annotations  # Printable rendering of compiled interview reports

import os
from datetime import datetime
from typing import Any, List, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from services.models import Interview, Report

DEJAVU_SANS = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"  # System font
DEJAVU_SANS_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"  # System font

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background
SEVERITY_COLORS = {"high": (200, 40, 40), "medium": (200, 120, 0), "low": MUTED}


def _format_datetime(value: str | None) -> str:  # Format ISO timestamp for display
    if not value:
        return "-"
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return value
    return moment.strftime("%d %b %Y, %H:%M UTC")


def _effective_width(pdf: FPDF) -> float:
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


class ReportPDF(FPDF):  # PDF with banner header and paginated footer
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.header_title = "Interview Report"
        self.font_regular = "Helvetica"
        self.font_bold = "Helvetica"
        self.supports_unicode = False

    def use_unicode_font(self) -> None:
        if not (os.path.exists(DEJAVU_SANS) and os.path.exists(DEJAVU_SANS_BOLD)):
            return
        self.add_font("DejaVu", "", DEJAVU_SANS)
        self.add_font("DejaVu", "B", DEJAVU_SANS_BOLD)
        self.font_regular = "DejaVu"
        self.font_bold = "DejaVu"
        self.supports_unicode = True

    def prepare(self, text: Any) -> str:  # Core fonts only cover latin-1
        value = "" if text is None else str(text)
        if self.supports_unicode:
            return value
        return value.replace("•", "-").encode("latin-1", "ignore").decode("latin-1")

    @property
    def bullet(self) -> str:
        return "•" if self.supports_unicode else "-"

    def line_text(self, text: str, height: float = 6) -> None:
        self.set_x(self.l_margin)
        self.multi_cell(_effective_width(self), height, self.prepare(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def header(self) -> None:
        usable = _effective_width(self)
        if self.page_no() == 1:
            self.set_fill_color(*ACCENT)
            self.rect(0, 0, self.w, 20, style="F")
            self.set_text_color(255, 255, 255)
            self.set_font(self.font_bold, "B", 16)
            self.set_xy(self.l_margin, 6)
            self.cell(usable, 8, self.prepare(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self.set_text_color(*TEXT)
            self.ln(6)
            return
        self.set_text_color(80, 80, 80)
        self.set_xy(self.l_margin, 8)
        self.set_font(self.font_bold, "B", 12)
        self.cell(usable, 6, self.prepare(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        mark = self.get_y()
        self.set_draw_color(*ACCENT)
        self.set_line_width(0.4)
        self.line(self.l_margin, mark + 1, self.w - self.r_margin, mark + 1)
        self.set_text_color(*TEXT)
        self.ln(4)

    def footer(self) -> None:
        self.set_y(-12)
        self.set_draw_color(*RULE)
        self.set_line_width(0.2)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(120, 120, 120)
        self.set_font(self.font_regular, "", 9)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="R")


def _section_title(pdf: ReportPDF, title: str) -> None:
    pdf.ln(2)
    pdf.set_text_color(*TEXT)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.cell(0, 9, pdf.prepare(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    y = pdf.get_y()
    pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
    pdf.ln(2)


def _meta_block(pdf: ReportPDF, rows: Sequence[Tuple[str, str]]) -> None:  # Two-column label/value grid
    col = _effective_width(pdf) / 2.0
    for idx in range(0, len(rows), 2):
        left = rows[idx]
        right = rows[idx + 1] if idx + 1 < len(rows) else ("", "")
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.cell(col, 6, pdf.prepare(left[0]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, 6, pdf.prepare(right[0]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_bold, "B", 11)
        pdf.cell(col, 6, pdf.prepare(left[1]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, 6, pdf.prepare(right[1]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _score_banner(pdf: ReportPDF, score: float) -> None:
    width = _effective_width(pdf)
    top = pdf.get_y()
    pdf.set_fill_color(*SOFT_ACCENT_BG)
    pdf.rect(pdf.l_margin, top, width, 16, style="F")
    pdf.set_xy(pdf.l_margin + 6, top + 4)
    pdf.set_text_color(*MUTED)
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.cell(width / 2, 8, "Overall Score")
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 14)
    pdf.cell(width / 2 - 12, 8, f"{score:.1f}/100", align="R")
    pdf.set_y(top + 18)
    pdf.set_text_color(*TEXT)


def _bullets(pdf: ReportPDF, items: Sequence[str], empty: str) -> None:
    pdf.set_font(pdf.font_regular, "", 11)
    if not items:
        pdf.set_text_color(*MUTED)
        pdf.line_text(empty)
        pdf.set_text_color(*TEXT)
        return
    for item in items:
        pdf.line_text(f"{pdf.bullet} {item}")


def _render_flags(pdf: ReportPDF, report: Report) -> None:
    if not report.integrity_flags:
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 11)
        pdf.line_text("No high-severity integrity concerns were recorded.")
        pdf.set_text_color(*TEXT)
        return
    for flag in report.integrity_flags:
        pdf.set_text_color(*SEVERITY_COLORS.get(flag.severity, TEXT))
        pdf.set_font(pdf.font_bold, "B", 10)
        pdf.line_text(f"{flag.type} ({flag.severity})", height=5.5)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.line_text(flag.description or "-", height=5.5)


def _render_transcript(pdf: ReportPDF, interview: Interview) -> None:
    rows: List[Tuple[str, str, str]] = []
    question = None
    for message in interview.transcript:
        if message.role == "assistant":
            question = message.content
            continue
        analysis = message.analysis
        note = (
            f"Confidence {analysis.confidence:.2f}, relevance {analysis.relevance:.2f}, {analysis.emotion_label}"
            if analysis is not None
            else "-"
        )
        rows.append((question or "-", message.content, note))
        question = None
    if not rows:
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.line_text("No answers were recorded for this interview.")
        pdf.set_text_color(*TEXT)
        return
    for number, (asked, answered, note) in enumerate(rows, start=1):
        pdf.set_text_color(*ACCENT)
        pdf.set_font(pdf.font_bold, "B", 10)
        pdf.line_text(f"Q{number}: {asked}", height=5.5)
        pdf.set_text_color(60, 60, 60)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.line_text(f"A: {answered}", height=5.5)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 9)
        pdf.line_text(note, height=5)
        pdf.set_draw_color(*RULE)
        y = pdf.get_y() + 1
        pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
        pdf.ln(3)
    pdf.set_text_color(*TEXT)


def build_report_pdf(report: Report, interview: Interview) -> bytes:  # Build PDF payload for one report
    pdf = ReportPDF()
    pdf.alias_nb_pages()
    pdf.use_unicode_font()
    pdf.header_title = f"{interview.position} - {interview.candidate_name} - Interview Report"
    pdf.set_margins(15, 22, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    _section_title(pdf, "Overview")
    _meta_block(
        pdf,
        [
            ("Candidate", interview.candidate_name),
            ("Position", interview.position),
            ("Questions", str(report.total_questions)),
            ("Status", interview.status.replace("_", " ").title()),
            ("Started", _format_datetime(interview.started_at)),
            ("Report generated", _format_datetime(report.generated_at)),
        ],
    )
    _score_banner(pdf, report.overall_score)

    _section_title(pdf, "Summary")
    pdf.set_font(pdf.font_regular, "", 11)
    pdf.line_text(report.summary or "-")

    _section_title(pdf, "Strengths")
    _bullets(pdf, report.strengths, "No strengths recorded.")
    _section_title(pdf, "Areas to Improve")
    _bullets(pdf, report.weaknesses, "No weaknesses recorded.")
    _section_title(pdf, "Recommendations")
    _bullets(pdf, report.recommendations, "No recommendations recorded.")

    _section_title(pdf, "Integrity Flags")
    _render_flags(pdf, report)

    _section_title(pdf, "Transcript")
    _render_transcript(pdf, interview)

    return bytes(pdf.output())


__all__ = ["ReportPDF", "build_report_pdf"]
