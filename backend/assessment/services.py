"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the attempt engine and the live-session store. Services are
intentionally thin: they validate input, run domain logic and persist
aggregates via repositories.
"""

import json
import logging
import random
import threading
from typing import Callable, Optional

from pydantic import ValidationError
from sqlmodel import Session

from . import repositories
from .database import new_session
from .errors import AnswersHidden, ResultUnavailable, UnknownQuiz, UnknownSession
from .grading import grade_question
from .questions import QuizDefinition, ShowAnswersPolicy, parse_question
from .results import AttemptRecord, AttemptResult, QuestionReview, aggregate, grade_all, review_item
from .session import AttemptSession, SubmitTrigger, utc_now
from .utils.bank_loader import parse_bank
from .utils.session_store import SessionStore
from .utils.ticker import Ticker

logger = logging.getLogger("assessment.services")


class ImportService:
    """Import question banks from files and persist them to the DB."""
    def __init__(self, session: Session):
        self.session = session
        self.topic_repo = repositories.TopicRepository(session)
        self.q_repo = repositories.QuestionRepository(session)

    def import_bank(self, file_bytes: bytes, filename: str, deduplicate: bool = True, dry_run: bool = False):
        """Parse `filename` contents and create `Topic` and `Question` rows.

        Returns a dictionary with the number of created and skipped
        questions, the topic ids touched and any validation `errors`
        encountered per item. When `deduplicate` is True, questions with
        identical topic/text are skipped.
        """
        parsed = parse_bank(file_bytes, filename)
        created = 0
        skipped = 0
        errors = []
        topics = {}
        for idx, item in enumerate(parsed):
            raw = item["question"]
            if not isinstance(raw, dict):
                errors.append({"index": idx, "error": "question item must be an object"})
                continue
            try:
                # the database assigns ids; a placeholder satisfies validation
                question = parse_question({**raw, "id": raw.get("id", "0")})
            except ValidationError as e:
                errors.append({"index": idx, "error": _first_error(e)})
                continue
            if dry_run:
                created += 1
                continue
            topic = self.topic_repo.get_or_create(item["subject"], item["topic"])
            topics[topic.name] = topic.id
            if deduplicate and self.q_repo.exists_by_topic_and_text(topic.id, question.question_text):
                skipped += 1
                continue
            self.q_repo.create(topic.id, question)
            created += 1
        return {"created": created, "skipped": skipped, "topics": topics, "errors": errors}


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


class QuizService:
    """Create and load quiz/exam definitions."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.topic_repo = repositories.TopicRepository(session)

    def create(self, definition: QuizDefinition) -> QuizDefinition:
        """Persist a definition after checking every referenced topic exists."""
        if not definition.pools:
            raise ValueError("at least one topic quota is required")
        for pool in definition.pools:
            if not self.topic_repo.get(pool.topic_id):
                raise ValueError(f"topic not found: {pool.topic_id}")
        return self.quiz_repo.create(definition)

    def get(self, quiz_id: int) -> QuizDefinition:
        definition = self.quiz_repo.get_definition(quiz_id)
        if definition is None:
            raise UnknownQuiz(f"quiz not found: {quiz_id}")
        return definition


class AttemptService:
    """Run attempts: start sessions, route learner calls and finalize submits.

    Finalizing happens in the session's submit callback, so a learner
    submit and a timer expiry end in the same single grading pass. The
    attempt record is then handed to the attempt sink on a daemon thread;
    submit returns without waiting for it, and a failing save is logged
    and never affects the result already computed.
    """

    def __init__(
        self,
        store: SessionStore,
        session_factory: Callable[[], Session] = new_session,
        clock=utc_now,
        rng_factory: Callable[[], random.Random] = random.Random,
        run_timers: bool = True,
    ):
        self.store = store
        self._session_factory = session_factory
        self._clock = clock
        self._rng_factory = rng_factory
        self._run_timers = run_timers
        self._pending: set[threading.Thread] = set()
        self._pending_lock = threading.Lock()

    def start(self, quiz_id: int) -> AttemptSession:
        """Sample a new session for `quiz_id` and arm its countdown.

        Raises `UnknownQuiz`, or `NoQuestionsAvailable` when the pools are empty.
        """
        with self._session_factory() as db:
            definition = QuizService(db).get(quiz_id)
            q_repo = repositories.QuestionRepository(db)
            pools = [(q_repo.fetch_questions(p.topic_id), p.question_count) for p in definition.pools]
        session = AttemptSession.start(
            definition,
            pools,
            clock=self._clock,
            rng=self._rng_factory(),
            on_submit=self._finalize,
        )
        ticker = None
        if self._run_timers and session.remaining_seconds is not None:
            ticker = Ticker(session.tick, name=f"attempt-{session.id[:8]}")
        self.store.add(session, ticker)
        if ticker is not None:
            ticker.start()
        logger.info("attempt_started %s", json.dumps({
            "session_id": session.id,
            "quiz_id": definition.id,
            "questions": len(session.questions),
            "requested": definition.requested_count,
            "time_limit_seconds": session.remaining_seconds,
        }))
        return session

    def get(self, session_id: str) -> AttemptSession:
        session = self.store.get(session_id)
        if session is None:
            raise UnknownSession(f"session not found: {session_id}")
        return session

    def check(self, session_id: str, question_id: str) -> QuestionReview:
        """Grade the stored answer of one question while the attempt runs.

        Only allowed when the quiz reveals answers after each question.
        """
        session = self.get(session_id)
        if session.definition is None or session.definition.show_answers != ShowAnswersPolicy.EACH_QUESTION:
            raise AnswersHidden("answers are not shown during this attempt")
        question = session.question(question_id)
        if question is None:
            raise UnknownSession(f"question {question_id} is not part of session {session_id}")
        position = session.questions.index(question) + 1
        return review_item(position, grade_question(question, session.answers().get(question.id)))

    def submit(self, session_id: str) -> AttemptResult:
        """Submit on the learner's behalf and return the attempt's only result."""
        session = self.get(session_id)
        session.submit(SubmitTrigger.LEARNER)
        result = self.store.get_result(session_id)
        if result is None:
            raise ResultUnavailable(f"no result for session {session_id}")
        return result

    def result(self, session_id: str) -> Optional[AttemptResult]:
        self.get(session_id)
        return self.store.get_result(session_id)

    def _finalize(self, session: AttemptSession) -> None:
        graded = grade_all(session.questions, session.answers())
        result = aggregate(
            graded,
            session.definition,
            session.elapsed_seconds,
            started_at=session.started_at,
            completed_at=session.submitted_at,
        )
        self.store.set_result(session.id, result)
        logger.info("attempt_submitted %s", json.dumps({
            "session_id": session.id,
            "quiz_id": result.record.quiz_id,
            "trigger": session.submit_trigger.value if session.submit_trigger else None,
            "score": result.record.score,
            "max_score": result.record.max_score,
            "passed": result.record.passed,
        }))
        thread = threading.Thread(
            target=self._persist,
            args=(session.id, result.record),
            name=f"persist-{session.id[:8]}",
            daemon=True,
        )
        with self._pending_lock:
            self._pending.add(thread)
        thread.start()

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for attempt records still being saved."""
        with self._pending_lock:
            pending = list(self._pending)
        for thread in pending:
            thread.join(timeout)

    def _persist(self, session_id: str, record: AttemptRecord) -> None:
        try:
            with self._session_factory() as db:
                repositories.AttemptRepository(db).save_attempt(record)
        except Exception:
            logger.exception("attempt_persist_failed %s", json.dumps({
                "session_id": session_id,
                "quiz_id": record.quiz_id,
            }))
        finally:
            with self._pending_lock:
                self._pending.discard(threading.current_thread())


class AnalyticsService:
    """Read-only summaries over stored attempt records."""
    def __init__(self, session: Session):
        self.session = session
        self.attempt_repo = repositories.AttemptRepository(session)

    def summary(self, quiz_id: Optional[int] = None) -> dict:
        """Totals over stored attempts: count, average percentage, pass rate, average time."""
        attempts = self.attempt_repo.list_attempts(quiz_id)
        total = len(attempts)
        if total == 0:
            return {"total_attempts": 0, "average_percentage": 0.0, "pass_rate": 0.0, "average_seconds": 0.0}
        return {
            "total_attempts": total,
            "average_percentage": sum(a.percentage for a in attempts) / total,
            "pass_rate": sum(1 for a in attempts if a.passed) * 100.0 / total,
            "average_seconds": sum(a.elapsed_seconds for a in attempts) / total,
        }

    def by_quiz(self):
        return self.attempt_repo.performance_by_quiz()
