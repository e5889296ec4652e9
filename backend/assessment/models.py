"""SQLModel data models.

These tables back the external collaborators of the attempt engine: the
question pool provider (topics and questions), stored quiz/exam
definitions, and the attempt sink. Type-specific question content lives
in a JSON `payload` column and is validated into the domain models of
`assessment.questions` when read.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from . import questions


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Topic(SQLModel, table=True):
    """A topic inside a subject; the unit a question pool is drawn from."""
    id: Optional[int] = Field(default=None, primary_key=True)
    subject: str = Field(index=True)
    name: str = Field(index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class Question(SQLModel, table=True):
    """A stored question of any kind.

    `payload` holds the kind-specific fields (options, blanks, items,
    pairs or the numeric answer settings).
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    topic_id: int = Field(foreign_key="topic.id", index=True)
    question_type: str
    question_text: str
    points: int = 1
    explanation: Optional[str] = None
    difficulty: str = "MEDIUM"
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_utcnow)

    def to_domain(self) -> questions.BaseQuestion:
        """Validate the row into its question model."""
        data = dict(self.payload or {})
        data.update(
            id=self.id,
            type=self.question_type,
            question_text=self.question_text,
            points=self.points,
            explanation=self.explanation,
            difficulty=self.difficulty,
            topic_id=self.topic_id,
        )
        return questions.parse_question(data)


class Quiz(SQLModel, table=True):
    """A stored quiz or exam definition."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    kind: str = "QUIZ"
    time_limit_minutes: Optional[int] = None
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_answers: str = "END_OF_ATTEMPT"
    passing_score_percent: int = 70
    created_at: datetime = Field(default_factory=_utcnow)
    pools: List["QuizPool"] = Relationship(back_populates="quiz")


class QuizPool(SQLModel, table=True):
    """One topic quota of a quiz; an exam has several, ordered by `position`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    topic_id: int = Field(foreign_key="topic.id")
    question_count: int
    position: int = 0
    quiz: Optional[Quiz] = Relationship(back_populates="pools")


class Attempt(SQLModel, table=True):
    """A stored attempt record. Written once per submitted session."""
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: Optional[int] = Field(default=None, foreign_key="quiz.id", index=True)
    kind: str = "QUIZ"
    score: float
    max_score: int
    percentage: float
    elapsed_seconds: int
    passed: bool
    correct_count: int = 0
    question_count: int = 0
    started_at: Optional[datetime] = None
    completed_at: datetime = Field(default_factory=_utcnow, index=True)
