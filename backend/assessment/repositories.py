"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (topics,
questions, quiz definitions, attempts). Repositories translate between
table rows and the domain models used by the attempt engine and perform
commits/refreshes where appropriate.
"""

from typing import List, Optional

from sqlalchemy import case, func
from sqlmodel import Session, select

from . import models
from .questions import AssessmentKind, BaseQuestion, PoolQuota, QuizDefinition, ShowAnswersPolicy
from .results import AttemptRecord


class TopicRepository:
    """Lookup and creation of `Topic` rows."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, topic_id: int) -> Optional[models.Topic]:
        return self.session.get(models.Topic, topic_id)

    def get_or_create(self, subject: str, name: str) -> models.Topic:
        """Return the topic named `name` in `subject`, creating it if missing."""
        stmt = select(models.Topic).where(models.Topic.subject == subject, models.Topic.name == name)
        topic = self.session.exec(stmt).first()
        if topic:
            return topic
        topic = models.Topic(subject=subject, name=name)
        self.session.add(topic)
        self.session.commit()
        self.session.refresh(topic)
        return topic


class QuestionRepository:
    """Question pool provider backed by the `question` table."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, topic_id: int, question: BaseQuestion) -> models.Question:
        """Persist a validated question model under `topic_id`.

        The stored row gets a database id; the model's own id is ignored.
        """
        data = question.model_dump(mode="json")
        row = models.Question(
            topic_id=topic_id,
            question_type=data.pop("type"),
            question_text=data.pop("question_text"),
            points=data.pop("points"),
            explanation=data.pop("explanation"),
            difficulty=data.pop("difficulty"),
        )
        for key in ("id", "topic_id"):
            data.pop(key, None)
        row.payload = data
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def exists_by_topic_and_text(self, topic_id: int, question_text: str) -> bool:
        """Return True if the topic already holds a question with this text."""
        stmt = select(models.Question.id).where(
            models.Question.topic_id == topic_id,
            models.Question.question_text == question_text,
        )
        return self.session.exec(stmt).first() is not None

    def fetch_questions(self, topic_id: int) -> List[BaseQuestion]:
        """Return the pool of `topic_id` as domain models, in id order."""
        stmt = select(models.Question).where(models.Question.topic_id == topic_id).order_by(models.Question.id)
        return [row.to_domain() for row in self.session.exec(stmt).all()]


class QuizRepository:
    """Store and load quiz/exam definitions with their topic quotas."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, definition: QuizDefinition) -> QuizDefinition:
        """Persist `definition` and return it with its assigned id."""
        quiz = models.Quiz(
            name=definition.name,
            kind=definition.kind.value,
            time_limit_minutes=definition.time_limit_minutes,
            shuffle_questions=definition.shuffle_questions,
            shuffle_options=definition.shuffle_options,
            show_answers=definition.show_answers.value,
            passing_score_percent=definition.passing_threshold,
        )
        self.session.add(quiz)
        self.session.commit()
        self.session.refresh(quiz)
        for position, pool in enumerate(definition.pools):
            self.session.add(models.QuizPool(
                quiz_id=quiz.id,
                topic_id=pool.topic_id,
                question_count=pool.question_count,
                position=position,
            ))
        self.session.commit()
        return definition.model_copy(update={"id": quiz.id})

    def get_definition(self, quiz_id: int) -> Optional[QuizDefinition]:
        quiz = self.session.get(models.Quiz, quiz_id)
        if not quiz:
            return None
        stmt = select(models.QuizPool).where(models.QuizPool.quiz_id == quiz_id).order_by(models.QuizPool.position)
        pools = [PoolQuota(topic_id=p.topic_id, question_count=p.question_count) for p in self.session.exec(stmt).all()]
        return QuizDefinition(
            id=quiz.id,
            name=quiz.name,
            kind=AssessmentKind(quiz.kind),
            pools=pools,
            time_limit_minutes=quiz.time_limit_minutes,
            shuffle_questions=quiz.shuffle_questions,
            shuffle_options=quiz.shuffle_options,
            show_answers=ShowAnswersPolicy(quiz.show_answers),
            passing_threshold=quiz.passing_score_percent,
        )


class AttemptRepository:
    """Attempt sink plus the read side used by analytics."""
    def __init__(self, session: Session):
        self.session = session

    def save_attempt(self, record: AttemptRecord) -> models.Attempt:
        """Insert one attempt row for a submitted session."""
        row = models.Attempt(**record.model_dump())
        row.kind = record.kind.value
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def list_attempts(self, quiz_id: Optional[int] = None) -> List[models.Attempt]:
        """Return attempts, newest first, optionally for a single quiz."""
        stmt = select(models.Attempt)
        if quiz_id is not None:
            stmt = stmt.where(models.Attempt.quiz_id == quiz_id)
        stmt = stmt.order_by(models.Attempt.completed_at.desc(), models.Attempt.id.desc())
        return self.session.exec(stmt).all()

    def performance_by_quiz(self) -> List[dict]:
        """Attempt count, average percentage and pass rate per quiz.

        Pass rate counts the stored `passed` flag, which was decided on the
        rounded percentage at submit time.
        """
        stmt = (
            select(
                models.Quiz.id,
                models.Quiz.name,
                models.Quiz.kind,
                func.count(models.Attempt.id),
                func.avg(models.Attempt.percentage),
                func.sum(case((models.Attempt.passed, 1), else_=0)),
            )
            .join(models.Attempt, models.Attempt.quiz_id == models.Quiz.id)
            .group_by(models.Quiz.id, models.Quiz.name, models.Quiz.kind)
            .order_by(func.avg(models.Attempt.percentage).desc())
        )
        out = []
        for quiz_id, name, kind, attempts, average, passed in self.session.exec(stmt).all():
            out.append({
                "quiz_id": quiz_id,
                "name": name,
                "kind": kind,
                "attempts": attempts,
                "average_percentage": float(average or 0.0),
                "pass_rate": (float(passed or 0) * 100.0 / attempts) if attempts else 0.0,
            })
        return out
