import random
import threading

import pytest

from assessment.errors import NoQuestionsAvailable
from assessment.questions import QuizDefinition
from assessment.session import AttemptSession, SessionStatus, SubmitTrigger, display_payload
from builders import FakeClock, choice_question, numeric_question, pool


def _session(questions=None, time_limit_seconds=None, clock=None, on_submit=None):
    s = AttemptSession(
        questions or pool("q", 3),
        time_limit_seconds=time_limit_seconds,
        clock=clock or FakeClock(),
        rng=random.Random(1),
        on_submit=on_submit,
    )
    s.begin()
    return s


def test_start_samples_and_begins(clock):
    definition = QuizDefinition(pools=[{"topic_id": 1, "question_count": 2}], time_limit_minutes=5)
    s = AttemptSession.start(definition, [(pool("q", 4), 2)], clock=clock, rng=random.Random(2))
    assert s.status == SessionStatus.IN_PROGRESS
    assert len(s.questions) == 2
    assert s.remaining_seconds == 300
    assert s.started_at == clock()


def test_start_with_empty_pool_raises():
    definition = QuizDefinition(pools=[{"topic_id": 1, "question_count": 5}])
    with pytest.raises(NoQuestionsAvailable):
        AttemptSession.start(definition, [([], 5)])


def test_untimed_session_has_no_countdown():
    s = _session()
    assert s.remaining_seconds is None
    assert s.tick() is True
    assert s.in_progress


def test_navigation_clamps_to_bounds():
    s = _session(pool("q", 3))
    assert s.previous() == 0
    assert s.next() == 1
    assert s.next() == 2
    assert s.next() == 2
    assert s.go_to(-4) == 0
    assert s.go_to(99) == 2
    assert s.current_question.id == "q2"


def test_answer_upsert_and_clear():
    s = _session(pool("q", 2))
    assert s.answer("q0", "42")
    assert s.answer("q0", "41")
    assert dict(s.answers()) == {"q0": "41"}
    assert s.answered_count == 1
    assert s.answer("q0", None)
    assert s.answered_count == 0


def test_answer_rejects_unknown_question_and_wrong_shape():
    s = _session([numeric_question("n1")])
    assert s.answer("nope", "1") is False
    assert s.answer("n1", {"a": 1}) is False
    assert s.answer("n1", "abc") is True
    assert s.answered_count == 1


def test_stored_answer_is_detached_from_caller_list():
    s = _session([choice_question("m", correct=("a", "b"), options=("a", "b", "c"), multiple=True)])
    picked = ["a"]
    s.answer("m", picked)
    picked.append("c")
    assert s.answers()["m"] == ["a"]


def test_answers_view_is_read_only():
    s = _session()
    s.answer("q0", "42")
    with pytest.raises(TypeError):
        s.answers()["q0"] = "41"


def test_countdown_auto_submits_at_zero():
    calls = []
    clock = FakeClock()
    s = _session(time_limit_seconds=3, clock=clock, on_submit=calls.append)
    for _ in range(2):
        clock.advance(1)
        assert s.tick() is True
    clock.advance(1)
    assert s.tick() is False
    assert s.status == SessionStatus.SUBMITTED
    assert s.submit_trigger == SubmitTrigger.TIMER
    assert s.remaining_seconds == 0
    assert s.elapsed_seconds == 3
    assert calls == [s]


def test_submit_is_one_shot():
    calls = []
    s = _session(on_submit=calls.append)
    assert s.submit() is True
    assert s.submit() is False
    assert s.submit(SubmitTrigger.TIMER) is False
    assert len(calls) == 1
    assert s.submit_trigger == SubmitTrigger.LEARNER


def test_tick_after_learner_submit_does_nothing():
    calls = []
    s = _session(time_limit_seconds=1, on_submit=calls.append)
    s.submit()
    assert s.tick() is False
    assert s.remaining_seconds == 1
    assert len(calls) == 1


def test_mutations_after_submit_are_ignored():
    s = _session(pool("q", 3))
    s.answer("q0", "42")
    s.go_to(1)
    s.submit()
    assert s.answer("q1", "42") is False
    assert s.answer("q0", None) is False
    assert s.next() == 1
    assert s.previous() == 1
    assert s.go_to(0) == 1
    assert dict(s.answers()) == {"q0": "42"}


def test_concurrent_timer_and_learner_submit_finalize_once():
    for _ in range(50):
        calls = []
        lock = threading.Lock()

        def on_submit(session):
            with lock:
                calls.append(session.submit_trigger)

        s = _session(time_limit_seconds=1, on_submit=on_submit)
        barrier = threading.Barrier(2)

        def learner():
            barrier.wait()
            s.submit(SubmitTrigger.LEARNER)

        def timer():
            barrier.wait()
            s.tick()

        threads = [threading.Thread(target=learner), threading.Thread(target=timer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(calls) == 1
        assert s.status == SessionStatus.SUBMITTED


def test_elapsed_seconds_follows_clock():
    clock = FakeClock()
    s = _session(clock=clock)
    clock.advance(42.7)
    assert s.elapsed_seconds == 42
    s.submit()
    clock.advance(100)
    assert s.elapsed_seconds == 42


def test_view_hides_correctness_and_keeps_placement(ordering, matching):
    s = _session([ordering, matching])
    first = s.view()
    assert first["status"] == "IN_PROGRESS"
    assert first["total_questions"] == 2
    assert "correct_position" not in str(first["question"])
    placed = [i["id"] for i in first["question"]["items"]]
    assert sorted(placed) == ["i1", "i2", "i3", "i4"]
    s.next()
    s.previous()
    assert [i["id"] for i in s.view()["question"]["items"]] == placed


def test_display_payload_for_choice_drops_is_correct():
    payload = display_payload(choice_question())
    assert payload["options"][0] == {"id": "41", "text": "option 41"}
    assert all("is_correct" not in o for o in payload["options"])


def test_matching_payload_keeps_left_column_in_pair_order(matching):
    payload = display_payload(matching, ["3", "1", "2"])
    assert [p["text"] for p in payload["left"]] == ["France", "Spain", "Italy"]
    assert [p["text"] for p in payload["right"]] == ["Rome", "Paris", "Madrid"]


def test_failing_submit_callback_still_closes_session(caplog):
    def boom(session):
        raise RuntimeError("callback failed")

    s = _session(on_submit=boom)
    with caplog.at_level("ERROR", logger="assessment.session"):
        assert s.submit() is True
    assert s.status == SessionStatus.SUBMITTED
    assert s.submit() is False
    assert any(r.getMessage().startswith("submit_callback_failed") for r in caplog.records)
