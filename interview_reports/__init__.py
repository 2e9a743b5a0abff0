from __future__ import annotations  # Interview report package exports

from .pdf import ReportPDF, build_report_pdf

__all__ = ["ReportPDF", "build_report_pdf"]
