"""Question sequencing: what to ask next, and when to stop."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from agents import question_generator
from agents.types import AnswerAnalysis, InterviewContext, Question
from observability import span

FIRST_FALLBACK = Question(
    text="Tell me about your experience and why you're interested in this position.",
    category="motivation",
    difficulty="easy",
    time_limit_s=120,
)
NEXT_FALLBACK = Question(
    text="Tell me about a challenging project you worked on and how you overcame obstacles.",
    category="behavioral",
    difficulty="medium",
    time_limit_s=120,
)


@dataclass(frozen=True)
class Ask:
    question: Question


@dataclass(frozen=True)
class Complete:
    pass


Step = Union[Ask, Complete]


class QuestionSequencer:
    """Termination depends only on the counters in the context; content may adapt to answers."""

    def __init__(self, generate: Optional[Callable[..., Question]] = None) -> None:
        self._generate = generate or question_generator.generate

    def first(self, context: InterviewContext) -> Question:
        return self._question(context.model_copy(update={"question_index": 0}), FIRST_FALLBACK)

    def next(
        self,
        context: InterviewContext,
        prior_questions: List[str],
        prior_answer: str,
        prior_analysis: AnswerAnalysis,
    ) -> Step:
        """``context.question_index`` is the index of the question just answered."""

        upcoming = context.question_index + 1
        if upcoming >= context.max_questions:
            return Complete()
        question = self._question(
            context.model_copy(update={"question_index": upcoming}),
            NEXT_FALLBACK,
            previous_questions=prior_questions,
            last_answer=prior_answer,
            last_analysis=prior_analysis,
        )
        return Ask(question)

    def _question(self, context: InterviewContext, fallback: Question, **history) -> Question:
        with span("question_generator", context.interview_id, question_index=context.question_index) as extra:
            try:
                return self._generate(context, **history)
            except Exception as exc:  # noqa: BLE001
                extra.update(fallback=True, error=getattr(exc, "detail", None) or repr(exc))
                return fallback


__all__ = ["Ask", "Complete", "Step", "QuestionSequencer", "FIRST_FALLBACK", "NEXT_FALLBACK"]
