"""Application settings, preference defaults and validation."""

import os
from pathlib import Path
from typing import Optional

from .questions import AssessmentKind, PoolQuota, QuizDefinition, ShowAnswersPolicy

BASE = Path(__file__).resolve().parent.parent


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    ENV: str
    DATABASE_URL: str
    LOG_LEVEL: str
    MAX_UPLOAD_BYTES: int
    SESSION_TTL_SECONDS: int
    SESSION_IDLE_TTL_SECONDS: int
    MAX_SESSIONS: int
    ALLOW_DEV_CORS: bool
    DEFAULT_QUESTION_COUNT: int
    DEFAULT_TIME_LIMIT_MINUTES: Optional[int]
    DEFAULT_SHUFFLE_QUESTIONS: bool
    DEFAULT_SHUFFLE_OPTIONS: bool
    DEFAULT_SHOW_ANSWERS: str
    DEFAULT_PASSING_SCORE: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'assessment.db'}")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5 MB default
        self.SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "86400"))
        self.SESSION_IDLE_TTL_SECONDS = int(os.getenv("SESSION_IDLE_TTL_SECONDS", "7200"))
        self.MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "500"))
        self.ALLOW_DEV_CORS = _flag("ALLOW_DEV_CORS", "true")
        self.DEFAULT_QUESTION_COUNT = int(os.getenv("DEFAULT_QUESTION_COUNT", "10"))
        raw_limit = os.getenv("DEFAULT_TIME_LIMIT_MINUTES", "").strip()
        self.DEFAULT_TIME_LIMIT_MINUTES = int(raw_limit) if raw_limit else None
        self.DEFAULT_SHUFFLE_QUESTIONS = _flag("DEFAULT_SHUFFLE_QUESTIONS", "true")
        self.DEFAULT_SHUFFLE_OPTIONS = _flag("DEFAULT_SHUFFLE_OPTIONS", "true")
        self.DEFAULT_SHOW_ANSWERS = os.getenv("DEFAULT_SHOW_ANSWERS", "END_OF_ATTEMPT").upper()
        self.DEFAULT_PASSING_SCORE = int(os.getenv("DEFAULT_PASSING_SCORE", "70"))
        self._validate()

    def _validate(self):
        if not 0 <= self.DEFAULT_PASSING_SCORE <= 100:
            raise RuntimeError("DEFAULT_PASSING_SCORE must be between 0 and 100")
        if self.DEFAULT_SHOW_ANSWERS not in ShowAnswersPolicy.__members__:
            raise RuntimeError(f"DEFAULT_SHOW_ANSWERS must be one of {', '.join(ShowAnswersPolicy.__members__)}")
        if self.DEFAULT_TIME_LIMIT_MINUTES is not None and self.DEFAULT_TIME_LIMIT_MINUTES <= 0:
            raise RuntimeError("DEFAULT_TIME_LIMIT_MINUTES must be positive when set")
        if self.SESSION_IDLE_TTL_SECONDS <= 0:
            raise RuntimeError("SESSION_IDLE_TTL_SECONDS must be positive")
        if self.DEFAULT_QUESTION_COUNT <= 0:
            raise RuntimeError("DEFAULT_QUESTION_COUNT must be positive")


class Preferences:
    """Default field values for new quiz and exam definitions.

    Read once from `Settings`; `apply` never mutates the stored defaults.
    """

    def __init__(self, settings: "Settings"):
        self.question_count = settings.DEFAULT_QUESTION_COUNT
        self.time_limit_minutes = settings.DEFAULT_TIME_LIMIT_MINUTES
        self.shuffle_questions = settings.DEFAULT_SHUFFLE_QUESTIONS
        self.shuffle_options = settings.DEFAULT_SHUFFLE_OPTIONS
        self.show_answers = ShowAnswersPolicy(settings.DEFAULT_SHOW_ANSWERS)
        self.passing_threshold = settings.DEFAULT_PASSING_SCORE

    def defaults(self) -> dict:
        return {
            "time_limit_minutes": self.time_limit_minutes,
            "shuffle_questions": self.shuffle_questions,
            "shuffle_options": self.shuffle_options,
            "show_answers": self.show_answers,
            "passing_threshold": self.passing_threshold,
        }

    def apply(self, overrides: dict) -> dict:
        """Return the defaults updated with every override that is not None."""
        fields = self.defaults()
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return fields

    def new_quiz(self, topic_id: int, question_count: Optional[int] = None, **overrides) -> QuizDefinition:
        """Build a single-pool quiz, filling omitted fields from the defaults."""
        fields = self.apply(overrides)
        count = question_count if question_count is not None else self.question_count
        return QuizDefinition(
            kind=AssessmentKind.QUIZ,
            pools=[PoolQuota(topic_id=topic_id, question_count=count)],
            **fields,
        )

    def new_exam(self, quotas, **overrides) -> QuizDefinition:
        """Build an exam from `(topic_id, question_count)` quotas."""
        fields = self.apply(overrides)
        return QuizDefinition(
            kind=AssessmentKind.EXAM,
            pools=[PoolQuota(topic_id=t, question_count=c) for t, c in quotas],
            **fields,
        )


settings = Settings()
preferences = Preferences(settings)
