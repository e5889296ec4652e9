"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .config import Preferences
from .questions import QuizDefinition, ShowAnswersPolicy


class QuotaIn(BaseModel):
    """One topic quota of an exam."""
    topic_id: int
    question_count: int = Field(ge=0)


class QuizIn(BaseModel):
    """Request body for creating a quiz (`topic_id`) or an exam (`topics`).

    Omitted settings are filled from the configured preferences.
    """
    name: str
    topic_id: Optional[int] = None
    question_count: Optional[int] = Field(default=None, ge=0)
    topics: Optional[List[QuotaIn]] = None
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    show_answers: Optional[ShowAnswersPolicy] = None
    passing_threshold: Optional[int] = Field(default=None, ge=0, le=100)

    def to_definition(self, preferences: Preferences) -> QuizDefinition:
        overrides = {
            "name": self.name,
            "time_limit_minutes": self.time_limit_minutes,
            "shuffle_questions": self.shuffle_questions,
            "shuffle_options": self.shuffle_options,
            "show_answers": self.show_answers,
            "passing_threshold": self.passing_threshold,
        }
        if self.topics:
            return preferences.new_exam([(t.topic_id, t.question_count) for t in self.topics], **overrides)
        if self.topic_id is None:
            raise ValueError("topic_id or topics is required")
        return preferences.new_quiz(self.topic_id, self.question_count, **overrides)


class AnswerIn(BaseModel):
    """Answer value for one question; the shape depends on the question type."""
    value: Any = None
