"""Attempt session controller.

An `AttemptSession` owns the sampled questions, the learner's answer map,
the current position and the countdown of one attempt. It moves through
`INITIALIZING -> IN_PROGRESS -> SUBMITTED`; the last state is terminal.

Learner calls and timer ticks may arrive from different threads (the
ticker runs in a daemon thread), so every state change goes through one
re-entrant lock. `submit()` flips the state under that lock, which makes
the transition one-shot: whichever trigger gets there first wins and the
other returns False without a second grading pass.
"""

import logging
import random
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .questions import (
    BaseQuestion,
    FillBlankQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    NumericInputQuestion,
    OrderingQuestion,
    QuizDefinition,
    SingleChoiceQuestion,
)
from .sampler import PoolSpec, placement_for, sample_session

logger = logging.getLogger("assessment.session")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    INITIALIZING = "INITIALIZING"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"


class SubmitTrigger(str, Enum):
    LEARNER = "LEARNER"
    TIMER = "TIMER"


def _is_id(value) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def accepts_answer(question: BaseQuestion, value) -> bool:
    """Check only that `value` has the container shape the question kind expects."""
    if isinstance(question, SingleChoiceQuestion):
        return _is_id(value) or isinstance(value, (list, tuple))
    if isinstance(question, (MultipleChoiceQuestion, OrderingQuestion)):
        return isinstance(value, (list, tuple))
    if isinstance(question, FillBlankQuestion):
        return isinstance(value, (list, tuple, str))
    if isinstance(question, NumericInputQuestion):
        return isinstance(value, (str, int, float)) and not isinstance(value, bool)
    if isinstance(question, MatchingQuestion):
        return isinstance(value, Mapping)
    return False


def _detach(value):
    # keep caller-owned containers out of the answer map
    if isinstance(value, Mapping):
        return {k: v for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return list(value)
    return value


def display_payload(question: BaseQuestion, placement: Optional[List[str]] = None) -> Dict[str, Any]:
    """Learner-facing form of a question with all correctness data removed."""
    out: Dict[str, Any] = {
        "id": question.id,
        "type": question.type,
        "question_text": question.question_text,
        "points": question.points,
        "difficulty": question.difficulty.value,
    }
    if isinstance(question, (SingleChoiceQuestion, MultipleChoiceQuestion)):
        out["options"] = [{"id": o.id, "text": o.text} for o in question.options]
    elif isinstance(question, FillBlankQuestion):
        out["blanks"] = [{"index": b.index, "is_numeric": b.is_numeric, "unit": b.unit} for b in question.blanks]
    elif isinstance(question, NumericInputQuestion):
        out["unit"] = question.unit
    elif isinstance(question, OrderingQuestion):
        by_id = {item.id: item for item in question.items}
        order = placement or list(by_id)
        out["items"] = [{"id": i, "text": by_id[i].text} for i in order]
    elif isinstance(question, MatchingQuestion):
        by_id = {pair.id: pair for pair in question.pairs}
        order = placement or list(by_id)
        out["left"] = [{"id": p.id, "text": p.left_item} for p in question.pairs]
        out["right"] = [{"id": i, "text": by_id[i].right_item} for i in order]
    return out


class AttemptSession:
    """Timed answer collection for one learner attempt."""

    def __init__(
        self,
        questions: Sequence[BaseQuestion],
        *,
        definition: Optional[QuizDefinition] = None,
        time_limit_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
        on_submit: Optional[Callable[["AttemptSession"], None]] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.definition = definition
        self.questions = tuple(questions)
        self.status = SessionStatus.INITIALIZING
        self.current_index = 0
        self.time_limit_seconds = time_limit_seconds
        self.remaining_seconds: Optional[int] = None
        self.started_at: Optional[datetime] = None
        self.submitted_at: Optional[datetime] = None
        self.submit_trigger: Optional[SubmitTrigger] = None
        self.on_submit = on_submit
        self._clock = clock
        self._rng = rng or random.Random()
        self._answers: Dict[str, Any] = {}
        self._snapshot: Optional[Mapping[str, Any]] = None
        self._placements: Dict[str, Optional[List[str]]] = {}
        self._by_id = {q.id: q for q in self.questions}
        self._lock = threading.RLock()

    @classmethod
    def start(
        cls,
        definition: QuizDefinition,
        pools: Sequence[PoolSpec],
        *,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
        on_submit: Optional[Callable[["AttemptSession"], None]] = None,
    ) -> "AttemptSession":
        """Sample questions for `definition` and return a session in progress.

        Raises `NoQuestionsAvailable` before any session exists when the
        pools yield nothing.
        """
        rng = rng or random.Random()
        questions = sample_session(
            pools,
            shuffle_questions=definition.shuffle_questions,
            shuffle_options_flag=definition.shuffle_options,
            rng=rng,
        )
        session = cls(
            questions,
            definition=definition,
            time_limit_seconds=definition.time_limit_seconds,
            clock=clock,
            rng=rng,
            on_submit=on_submit,
        )
        session.begin()
        return session

    def begin(self) -> None:
        with self._lock:
            if self.status != SessionStatus.INITIALIZING:
                return
            if self.time_limit_seconds is not None:
                self.remaining_seconds = self.time_limit_seconds
            self.started_at = self._clock()
            self.status = SessionStatus.IN_PROGRESS
        logger.debug("session_started id=%s questions=%d", self.id, len(self.questions))

    @property
    def in_progress(self) -> bool:
        return self.status == SessionStatus.IN_PROGRESS

    @property
    def answered_count(self) -> int:
        with self._lock:
            return len(self._answers)

    @property
    def current_question(self) -> BaseQuestion:
        return self.questions[self.current_index]

    def question(self, question_id) -> Optional[BaseQuestion]:
        return self._by_id.get(str(question_id))

    def answer(self, question_id, value) -> bool:
        """Upsert the answer for `question_id`; `None` clears it.

        Returns False when nothing was stored: the session is no longer in
        progress, the question is not part of it, or the value has the
        wrong container shape.
        """
        question = self.question(question_id)
        with self._lock:
            if not self.in_progress or question is None:
                return False
            if value is None:
                self._answers.pop(question.id, None)
                return True
            if not accepts_answer(question, value):
                logger.debug("answer_rejected id=%s question=%s", self.id, question.id)
                return False
            self._answers[question.id] = _detach(value)
            return True

    def go_to(self, index: int) -> int:
        with self._lock:
            if self.in_progress:
                self.current_index = max(0, min(int(index), len(self.questions) - 1))
            return self.current_index

    def next(self) -> int:
        with self._lock:
            if self.in_progress and self.current_index < len(self.questions) - 1:
                self.current_index += 1
            return self.current_index

    def previous(self) -> int:
        with self._lock:
            if self.in_progress and self.current_index > 0:
                self.current_index -= 1
            return self.current_index

    def tick(self) -> bool:
        """Advance the countdown by one second.

        Forces a timer submit when the countdown reaches zero. Returns
        True while the session is still in progress.
        """
        with self._lock:
            if not self.in_progress:
                return False
            if self.remaining_seconds is None:
                return True
            self.remaining_seconds = max(0, self.remaining_seconds - 1)
            if self.remaining_seconds == 0:
                self.submit(SubmitTrigger.TIMER)
            return self.in_progress

    def submit(self, trigger: SubmitTrigger = SubmitTrigger.LEARNER) -> bool:
        """Close the session; only the first call from any trigger succeeds."""
        with self._lock:
            if not self.in_progress:
                return False
            self.status = SessionStatus.SUBMITTED
            self.submitted_at = self._clock()
            self.submit_trigger = trigger
            self._snapshot = MappingProxyType(dict(self._answers))
            logger.info("session_submitted id=%s trigger=%s answered=%d", self.id, trigger.value, len(self._answers))
            if self.on_submit is not None:
                try:
                    self.on_submit(self)
                except Exception:
                    logger.exception("submit_callback_failed id=%s trigger=%s", self.id, trigger.value)
            return True

    def answers(self) -> Mapping[str, Any]:
        """Read-only view of the answers; frozen at submit time once submitted."""
        with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            return MappingProxyType(dict(self._answers))

    @property
    def elapsed_seconds(self) -> int:
        if self.started_at is None:
            return 0
        end = self.submitted_at or self._clock()
        return max(0, int((end - self.started_at).total_seconds()))

    def placement(self, question: BaseQuestion) -> Optional[List[str]]:
        """Display placement for `question`, rolled the first time it is shown."""
        with self._lock:
            if question.id not in self._placements:
                self._placements[question.id] = placement_for(question, self._rng)
            return self._placements[question.id]

    def view(self) -> Dict[str, Any]:
        """Snapshot of the session state for the presentation layer."""
        with self._lock:
            question = self.current_question
            current_answer = self._answers.get(question.id)
            return {
                "session_id": self.id,
                "status": self.status.value,
                "current_index": self.current_index,
                "total_questions": len(self.questions),
                "answered_count": len(self._answers),
                "remaining_seconds": self.remaining_seconds,
                "started_at": self.started_at.isoformat() if self.started_at else None,
                "question": display_payload(question, self.placement(question)),
                "answer": current_answer,
            }
