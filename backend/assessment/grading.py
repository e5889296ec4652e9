"""Per-question grading rules.

`grade(question, answer)` is a pure function returning the earned
points for one question. It is total over its inputs: a missing answer,
a value of the wrong shape or an unparsable number earns zero and never
raises.

Credit models:
- single/multiple choice and numeric input are all-or-nothing;
- fill blank, ordering and matching split the question's points evenly
  across their parts and sum the parts answered correctly, rounded to
  two decimals.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .questions import (
    BaseQuestion,
    Blank,
    FillBlankQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    NumericInputQuestion,
    OrderingQuestion,
    Question,
    SingleChoiceQuestion,
)

# Absorbs binary float noise such as 0.4 - 0.3 > 0.1.
_EPSILON = 1e-9


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a person would (2.5 -> 3), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class GradedResult(BaseModel):
    """Outcome of grading one question of a submitted session."""
    model_config = ConfigDict(frozen=True)

    question: Question
    answer: Any = None
    earned: float
    max_points: int

    @property
    def full_credit(self) -> bool:
        return self.earned == self.max_points


def grade(question: BaseQuestion, answer: Any) -> float:
    """Return the points earned by `answer` for `question`."""
    if answer is None:
        return 0.0
    match question:
        case SingleChoiceQuestion() | MultipleChoiceQuestion():
            return _grade_choice(question, answer)
        case FillBlankQuestion():
            return _grade_fill_blank(question, answer)
        case NumericInputQuestion():
            return _grade_numeric(question, answer)
        case OrderingQuestion():
            return _grade_ordering(question, answer)
        case MatchingQuestion():
            return _grade_matching(question, answer)
        case _:
            raise TypeError(f"no grading rule for {type(question).__name__}")


def grade_question(question: BaseQuestion, answer: Any) -> GradedResult:
    """Grade `answer` and wrap it with the question for aggregation and review."""
    return GradedResult(
        question=question,
        answer=answer,
        earned=grade(question, answer),
        max_points=question.points,
    )


def _is_scalar_id(value) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def _selected_ids(answer) -> Optional[set]:
    if _is_scalar_id(answer):
        return {str(answer)}
    if isinstance(answer, (list, tuple, set, frozenset)):
        if not all(_is_scalar_id(a) for a in answer):
            return None
        return {str(a) for a in answer}
    return None


def _grade_choice(question, answer) -> float:
    selected = _selected_ids(answer)
    if not selected:
        return 0.0
    correct = {o.id for o in question.options if o.is_correct}
    return float(question.points) if selected == correct else 0.0


def parse_number(value, unit: Optional[str] = None) -> Optional[float]:
    """Parse a learner-entered number, dropping a trailing `unit` if present.

    Returns None for anything that is not a finite number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if unit and text.lower().endswith(unit.strip().lower()):
        text = text[: len(text) - len(unit.strip())].strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _normalize(text: str) -> str:
    return text.strip().lower()


def _blank_matches(blank: Blank, value) -> bool:
    if _is_scalar_id(value) or isinstance(value, float):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return False
    given = _normalize(value)
    if given == _normalize(blank.correct_answer):
        return True
    if given in {_normalize(a) for a in blank.acceptable_alternates}:
        return True
    if blank.is_numeric:
        user_num = parse_number(value, blank.unit)
        correct_num = parse_number(blank.correct_answer, blank.unit)
        if user_num is None or correct_num is None:
            return False
        return abs(user_num - correct_num) <= (blank.tolerance or 0.0) + _EPSILON
    return False


def _partial_credit(points: int, part_count: int, hits: Iterable[bool]) -> float:
    if part_count == 0:
        return 0.0
    share = points / part_count
    return round_half_up(sum(share for hit in hits if hit), 2)


def _grade_fill_blank(question: FillBlankQuestion, answer) -> float:
    if isinstance(answer, (list, tuple)):
        values = list(answer)
    else:
        values = [answer]
    hits = (
        _blank_matches(blank, values[i] if i < len(values) else None)
        for i, blank in enumerate(question.blanks)
    )
    return _partial_credit(question.points, len(question.blanks), hits)


def _grade_numeric(question: NumericInputQuestion, answer) -> float:
    given = parse_number(answer, question.unit)
    if given is None:
        return 0.0
    if abs(given - question.correct_answer) <= question.absolute_tolerance() + _EPSILON:
        return float(question.points)
    return 0.0


def _grade_ordering(question: OrderingQuestion, answer) -> float:
    if not isinstance(answer, (list, tuple)):
        return 0.0
    if len(answer) != len(question.items):
        return 0.0
    positions = {item.id: item.correct_position for item in question.items}
    hits = (
        _is_scalar_id(item_id) and positions.get(str(item_id)) == slot + 1
        for slot, item_id in enumerate(answer)
    )
    return _partial_credit(question.points, len(question.items), hits)


def _grade_matching(question: MatchingQuestion, answer) -> float:
    if not isinstance(answer, Mapping):
        return 0.0
    chosen = {
        str(left): str(right)
        for left, right in answer.items()
        if _is_scalar_id(left) and _is_scalar_id(right)
    }
    hits = (chosen.get(pair.id) == pair.id for pair in question.pairs)
    return _partial_credit(question.points, len(question.pairs), hits)
