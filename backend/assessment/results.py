"""Aggregate graded questions into an attempt record and a review.

The persisted percentage keeps full precision while pass/fail compares
the half-up rounded percentage with the passing threshold, so a 69.5%
attempt passes a 70% quiz even though 69.5 is what gets stored.

A question counts as correct in the tallies only at full credit; partial
credit still adds to the score.
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .grading import GradedResult, grade_question, round_half_up
from .questions import (
    AssessmentKind,
    BaseQuestion,
    FillBlankQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    NumericInputQuestion,
    OrderingQuestion,
    QuizDefinition,
    ShowAnswersPolicy,
    SingleChoiceQuestion,
)


class AttemptRecord(BaseModel):
    """Summary of one submitted attempt, handed to the persistence sink once."""
    model_config = ConfigDict(frozen=True)

    quiz_id: Optional[int] = None
    kind: AssessmentKind = AssessmentKind.QUIZ
    score: float
    max_score: int
    percentage: float
    elapsed_seconds: int
    passed: bool
    correct_count: int
    question_count: int
    started_at: Optional[datetime] = None
    completed_at: datetime


class QuestionReview(BaseModel):
    position: int
    question_id: str
    type: str
    question_text: str
    points: int
    earned: float
    full_credit: bool
    answer: Any = None
    correct_answer: Any = None
    explanation: Optional[str] = None


class AttemptResult(BaseModel):
    """What the learner sees after submitting."""
    record: AttemptRecord
    name: str = ""
    passing_threshold: int
    show_answers: ShowAnswersPolicy
    correct_count: int
    incorrect_count: int
    breakdown: Optional[List[QuestionReview]] = None


def percentage_of(score: float, max_score: float) -> float:
    return 100.0 * score / max_score if max_score > 0 else 0.0


def passes(percentage: float, threshold: int) -> bool:
    return round_half_up(percentage) >= threshold


def correct_answer_for(question: BaseQuestion) -> Any:
    """Correct-answer disclosure for the review screen."""
    if isinstance(question, (SingleChoiceQuestion, MultipleChoiceQuestion)):
        return [{"id": o.id, "text": o.text} for o in question.options if o.is_correct]
    if isinstance(question, FillBlankQuestion):
        return [
            {
                "index": b.index,
                "answers": [b.correct_answer, *b.acceptable_alternates],
                "tolerance": b.tolerance if b.is_numeric else None,
                "unit": b.unit,
            }
            for b in question.blanks
        ]
    if isinstance(question, NumericInputQuestion):
        return {
            "value": question.correct_answer,
            "tolerance": question.tolerance,
            "tolerance_type": question.tolerance_type.value,
            "unit": question.unit,
        }
    if isinstance(question, OrderingQuestion):
        ordered = sorted(question.items, key=lambda i: i.correct_position)
        return [{"id": i.id, "text": i.text} for i in ordered]
    if isinstance(question, MatchingQuestion):
        return [{"id": p.id, "left": p.left_item, "right": p.right_item} for p in question.pairs]
    return None


def grade_all(questions: Sequence[BaseQuestion], answers: Mapping[str, Any]) -> List[GradedResult]:
    """Grade every question of a session against an answer snapshot."""
    return [grade_question(q, answers.get(q.id)) for q in questions]


def aggregate(
    graded: Sequence[GradedResult],
    definition: QuizDefinition,
    elapsed_seconds: int,
    *,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> AttemptResult:
    """Sum per-question grades into an `AttemptRecord` plus review data.

    The per-question breakdown is omitted when the quiz never shows answers.
    """
    score = round_half_up(sum(g.earned for g in graded), 2)
    max_score = sum(g.max_points for g in graded)
    percentage = percentage_of(score, max_score)
    correct_count = sum(1 for g in graded if g.full_credit)
    record = AttemptRecord(
        quiz_id=definition.id,
        kind=definition.kind,
        score=score,
        max_score=max_score,
        percentage=percentage,
        elapsed_seconds=elapsed_seconds,
        passed=passes(percentage, definition.passing_threshold),
        correct_count=correct_count,
        question_count=len(graded),
        started_at=started_at,
        completed_at=completed_at or datetime.now(timezone.utc),
    )
    breakdown = None
    if definition.show_answers != ShowAnswersPolicy.NEVER:
        breakdown = [review_item(position, g) for position, g in enumerate(graded, start=1)]
    return AttemptResult(
        record=record,
        name=definition.name,
        passing_threshold=definition.passing_threshold,
        show_answers=definition.show_answers,
        correct_count=correct_count,
        incorrect_count=len(graded) - correct_count,
        breakdown=breakdown,
    )


def review_item(position: int, graded: GradedResult) -> QuestionReview:
    question = graded.question
    return QuestionReview(
        position=position,
        question_id=question.id,
        type=question.type,
        question_text=question.question_text,
        points=question.points,
        earned=graded.earned,
        full_credit=graded.full_credit,
        answer=graded.answer,
        correct_answer=correct_answer_for(question),
        explanation=question.explanation,
    )


def _fmt_points(value: float) -> str:
    return f"{value:g}"


def format_report(result: AttemptResult) -> str:
    """Plain-text export of a result, one block per question."""
    record = result.record
    lines = [
        f"Results - {result.name or 'Untitled'}",
        f"Date: {record.completed_at.isoformat(timespec='seconds')}",
        f"Score: {_fmt_points(record.score)}/{record.max_score} ({round_half_up(record.percentage):.0f}%)",
        f"Status: {'PASSED' if record.passed else 'FAILED'}",
        f"Passing Score: {result.passing_threshold}%",
        f"Correct: {result.correct_count}  Incorrect: {result.incorrect_count}",
    ]
    if result.breakdown is None:
        return "\n".join(lines) + "\n"
    lines += ["", "Question Breakdown:", "=" * 60, ""]
    for item in result.breakdown:
        lines.append(f"Q{item.position}. {item.question_text}")
        lines.append(f"   Points: {_fmt_points(item.earned)}/{item.points}")
        lines.append(f"   Result: {'Correct' if item.full_credit else 'Incorrect'}")
        if item.type in ("SINGLE_CHOICE", "MULTIPLE_CHOICE") and item.correct_answer:
            lines.append(f"   Correct Answer(s): {', '.join(o['text'] for o in item.correct_answer)}")
        if item.explanation:
            lines.append(f"   Explanation: {item.explanation}")
        lines.append("")
    return "\n".join(lines)
