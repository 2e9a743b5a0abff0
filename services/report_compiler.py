"""Turns a finished transcript into the final interview report."""
from __future__ import annotations

import uuid
from statistics import mean
from typing import Callable, List, Optional, Tuple

from agents import summarizer
from agents.answer_analyzer import NEUTRAL_ANALYSIS
from agents.types import AnswerAnalysis, Flag, SummaryResult, unique_flags
from config.settings import settings
from interview_reports.pdf import build_report_pdf
from observability import span
from services.models import Interview, Report, utc_now


def exchanges(interview: Interview) -> List[Tuple[str, str, AnswerAnalysis]]:
    """(question, answer, analysis) for every answered question, in order."""

    pairs: List[Tuple[str, str, AnswerAnalysis]] = []
    question: Optional[str] = None
    for message in interview.transcript:
        if message.role == "assistant":
            question = message.content
        elif question is not None:
            pairs.append((question, message.content, message.analysis or NEUTRAL_ANALYSIS))
            question = None
    return pairs


def overall_score(analyses: List[AnswerAnalysis]) -> float:
    """Mean answer confidence on a 0-100 scale, ignoring zero-confidence answers."""

    confidences = [a.confidence for a in analyses if a.confidence > 0]
    if not confidences:
        return settings.DEFAULT_REPORT_SCORE
    return round(mean(confidences) * 100, 1)


def all_flags(analyses: List[AnswerAnalysis]) -> List[Flag]:
    return unique_flags(flag for analysis in analyses for flag in analysis.integrity_flags)


def high_severity_flags(analyses: List[AnswerAnalysis]) -> List[Flag]:
    return [flag for flag in all_flags(analyses) if flag.severity == "high"]


class ReportCompiler:
    def __init__(self, summarize: Optional[Callable[..., SummaryResult]] = None) -> None:
        self._summarize = summarize or summarizer.summarize

    def compile(self, interview: Interview) -> Report:
        """Build the report for a transcript; nothing is written to storage."""

        answered = exchanges(interview)
        analyses = [analysis for _, _, analysis in answered]
        summary = self._summary(interview, answered)
        return Report(
            id=uuid.uuid4().hex,
            interview_id=interview.id,
            overall_score=overall_score(analyses),
            summary=summary.summary,
            strengths=summary.strengths,
            weaknesses=summary.weaknesses,
            recommendations=summary.recommendations,
            integrity_flags=high_severity_flags(analyses),
            total_questions=len(interview.questions()),
            generated_at=utc_now(),
        )

    def render_pdf(self, report: Report, interview: Interview) -> bytes:
        return build_report_pdf(report, interview)

    def _summary(self, interview: Interview, answered: List[Tuple[str, str, AnswerAnalysis]]) -> SummaryResult:
        with span("summarizer", interview.id, answers=len(answered)) as extra:
            try:
                return self._summarize(interview.position, answered)
            except Exception as exc:  # noqa: BLE001
                extra.update(fallback=True, error=getattr(exc, "detail", None) or repr(exc))
                return summarizer.FALLBACK_SUMMARY


__all__ = ["ReportCompiler", "all_flags", "exchanges", "high_severity_flags", "overall_score"]
