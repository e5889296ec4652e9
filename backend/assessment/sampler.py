"""Question sampling and shuffling for a new attempt.

A session is drawn pool by pool in quota-declaration order: each pool is
optionally shuffled, then its first `quota` questions are taken (the
whole pool when it is smaller than the quota). Option shuffling happens
once here, so a question keeps the same option order for the whole
attempt.
"""

import logging
import random
from typing import List, Optional, Sequence, Tuple

from .errors import NoQuestionsAvailable
from .questions import CHOICE_TYPES, BaseQuestion, MatchingQuestion, OrderingQuestion

logger = logging.getLogger("assessment.sampler")

PoolSpec = Tuple[Sequence[BaseQuestion], int]


def fisher_yates(items: Sequence, rng: random.Random) -> list:
    """Return a uniformly shuffled copy of `items`."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def shuffle_options(question: BaseQuestion, rng: random.Random) -> BaseQuestion:
    """Shuffle the options of a choice question; other kinds are returned as is."""
    if question.question_type not in CHOICE_TYPES:
        return question
    return question.model_copy(update={"options": fisher_yates(question.options, rng)})


def sample_pool(pool: Sequence[BaseQuestion], quota: int, shuffle: bool, rng: random.Random) -> List[BaseQuestion]:
    ordered = fisher_yates(pool, rng) if shuffle else list(pool)
    if quota > len(ordered):
        logger.info("pool_exhausted requested=%d available=%d", quota, len(ordered))
    return ordered[:quota]


def sample_session(
    pools: Sequence[PoolSpec],
    *,
    shuffle_questions: bool,
    shuffle_options_flag: bool,
    rng: Optional[random.Random] = None,
) -> List[BaseQuestion]:
    """Build the ordered question list of a session.

    `pools` is a sequence of `(questions, quota)` pairs. Raises
    `NoQuestionsAvailable` when nothing could be sampled.
    """
    rng = rng or random.Random()
    session: List[BaseQuestion] = []
    seen = set()
    for questions, quota in pools:
        for question in sample_pool(questions, quota, shuffle_questions, rng):
            # answers are keyed by question id, so a question may appear once
            if question.id in seen:
                logger.warning("duplicate_question_skipped id=%s", question.id)
                continue
            seen.add(question.id)
            if shuffle_options_flag:
                question = shuffle_options(question, rng)
            session.append(question)
    if not session:
        raise NoQuestionsAvailable()
    return session


def placement_for(question: BaseQuestion, rng: random.Random) -> Optional[List[str]]:
    """Display order for puzzle-style questions.

    Ordering questions get a shuffled starting order of item ids and
    matching questions a shuffled right-hand column (pair ids). Other
    kinds have no placement and return None. The arrangement is the puzzle
    of these kinds, so they are shuffled even when option shuffling is off.
    """
    if isinstance(question, OrderingQuestion):
        return fisher_yates([item.id for item in question.items], rng)
    if isinstance(question, MatchingQuestion):
        return fisher_yates([pair.id for pair in question.pairs], rng)
    return None
