"""Question and assessment definition models.

Questions are immutable pydantic models, one class per question kind,
combined into the `Question` tagged union discriminated on `type`. The
grader dispatches on the same tag, so a new question kind needs one new
model here and one new rule in `grading.py`.

All identifiers (question, option, item and pair ids) are kept as
strings. Integer ids coming from the database or from JSON clients are
coerced on validation so comparisons never depend on the caller's type.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class QuestionType(str, Enum):
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    FILL_BLANK = "FILL_BLANK"
    NUMERIC_INPUT = "NUMERIC_INPUT"
    ORDERING = "ORDERING"
    MATCHING = "MATCHING"


CHOICE_TYPES = (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE)


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ToleranceType(str, Enum):
    ABSOLUTE = "ABSOLUTE"
    PERCENTAGE = "PERCENTAGE"


class ShowAnswersPolicy(str, Enum):
    """When correct answers and the per-question breakdown are revealed."""
    EACH_QUESTION = "EACH_QUESTION"
    END_OF_ATTEMPT = "END_OF_ATTEMPT"
    NEVER = "NEVER"


class AssessmentKind(str, Enum):
    QUIZ = "QUIZ"
    EXAM = "EXAM"


def _as_id(value):
    if isinstance(value, bool):
        raise ValueError("id must be a string or integer")
    if isinstance(value, int):
        return str(value)
    return value


Identifier = Annotated[str, BeforeValidator(_as_id)]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Option(_Frozen):
    """A selectable option of a choice question."""
    id: Identifier
    text: str = ""
    is_correct: bool = False


class Blank(_Frozen):
    """One blank of a fill-in question.

    `tolerance` only applies when `is_numeric` is set; a numeric blank
    without a tolerance must match exactly.
    """
    index: int
    correct_answer: str
    acceptable_alternates: List[str] = Field(default_factory=list)
    is_numeric: bool = False
    tolerance: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _stringify_answer(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("acceptable_alternates", mode="before")
    @classmethod
    def _split_alternates(cls, value):
        # Question banks often store alternates as one comma-separated string.
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class OrderItem(_Frozen):
    id: Identifier
    text: str = ""
    correct_position: int = Field(ge=1)


class MatchPair(_Frozen):
    """A left/right pair; `id` identifies both the left entry and its only correct right entry."""
    id: Identifier
    left_item: str
    right_item: str


class BaseQuestion(_Frozen):
    id: Identifier
    points: int = Field(gt=0)
    question_text: str = ""
    explanation: Optional[str] = None
    difficulty: Difficulty = Difficulty.MEDIUM
    topic_id: Optional[int] = None

    @property
    def question_type(self) -> QuestionType:
        return QuestionType(self.type)


def _require_unique(ids, what: str):
    seen = set()
    for i in ids:
        if i in seen:
            raise ValueError(f"duplicate {what} id: {i}")
        seen.add(i)


class SingleChoiceQuestion(BaseQuestion):
    type: Literal["SINGLE_CHOICE"] = "SINGLE_CHOICE"
    options: List[Option]

    @model_validator(mode="after")
    def _unique_options(self):
        _require_unique([o.id for o in self.options], "option")
        return self


class MultipleChoiceQuestion(BaseQuestion):
    type: Literal["MULTIPLE_CHOICE"] = "MULTIPLE_CHOICE"
    options: List[Option]

    @model_validator(mode="after")
    def _unique_options(self):
        _require_unique([o.id for o in self.options], "option")
        return self


class FillBlankQuestion(BaseQuestion):
    type: Literal["FILL_BLANK"] = "FILL_BLANK"
    blanks: List[Blank]

    @field_validator("blanks")
    @classmethod
    def _sorted_blanks(cls, blanks):
        # Answers are positional, so blanks are kept in index order.
        return sorted(blanks, key=lambda b: b.index)


class NumericInputQuestion(BaseQuestion):
    type: Literal["NUMERIC_INPUT"] = "NUMERIC_INPUT"
    correct_answer: float
    tolerance: float = Field(default=0.0, ge=0)
    tolerance_type: ToleranceType = ToleranceType.ABSOLUTE
    unit: Optional[str] = None

    def absolute_tolerance(self) -> float:
        if self.tolerance_type == ToleranceType.PERCENTAGE:
            return abs(self.correct_answer) * self.tolerance / 100.0
        return self.tolerance


class OrderingQuestion(BaseQuestion):
    type: Literal["ORDERING"] = "ORDERING"
    items: List[OrderItem]

    @model_validator(mode="after")
    def _unique_positions(self):
        _require_unique([i.id for i in self.items], "item")
        positions = [i.correct_position for i in self.items]
        if len(set(positions)) != len(positions):
            raise ValueError("correct_position values must be unique")
        return self


class MatchingQuestion(BaseQuestion):
    type: Literal["MATCHING"] = "MATCHING"
    pairs: List[MatchPair]

    @model_validator(mode="after")
    def _unique_pairs(self):
        _require_unique([p.id for p in self.pairs], "pair")
        return self


Question = Annotated[
    Union[
        SingleChoiceQuestion,
        MultipleChoiceQuestion,
        FillBlankQuestion,
        NumericInputQuestion,
        OrderingQuestion,
        MatchingQuestion,
    ],
    Field(discriminator="type"),
]

_question_adapter = TypeAdapter(Question)


def parse_question(data) -> BaseQuestion:
    """Validate a mapping into the matching question model.

    Raises `pydantic.ValidationError` for unknown types or bad payloads.
    """
    return _question_adapter.validate_python(data)


class PoolQuota(_Frozen):
    """How many questions to draw from one topic's pool."""
    topic_id: int
    question_count: int = Field(ge=0)


class QuizDefinition(_Frozen):
    """Configuration of a quiz (one pool) or an exam (one quota per topic)."""
    id: Optional[int] = None
    name: str = ""
    kind: AssessmentKind = AssessmentKind.QUIZ
    pools: List[PoolQuota]
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_answers: ShowAnswersPolicy = ShowAnswersPolicy.END_OF_ATTEMPT
    passing_threshold: int = Field(default=70, ge=0, le=100)

    @property
    def requested_count(self) -> int:
        return sum(p.question_count for p in self.pools)

    @property
    def time_limit_seconds(self) -> Optional[int]:
        if self.time_limit_minutes is None:
            return None
        return self.time_limit_minutes * 60
