from datetime import datetime, timezone

from assessment.grading import GradedResult
from assessment.questions import QuizDefinition, ShowAnswersPolicy
from assessment.results import aggregate, correct_answer_for, format_report, grade_all, passes, percentage_of
from builders import choice_question, numeric_question, ordering_question

DONE = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def _definition(**kw):
    return QuizDefinition(id=7, name="Capitals", pools=[{"topic_id": 1, "question_count": 3}], **kw)


def test_aggregate_sums_scores_and_tallies():
    questions = [choice_question("a", points=2), numeric_question("b", points=3), ordering_question("c", points=8)]
    answers = {"a": "42", "b": "12", "c": ["i1", "i3", "i2", "i4"]}
    result = aggregate(grade_all(questions, answers), _definition(), 95, completed_at=DONE)
    record = result.record
    assert record.score == 6.0
    assert record.max_score == 13
    assert abs(record.percentage - 600 / 13) < 1e-9
    assert record.correct_count == 1
    assert record.question_count == 3
    assert record.elapsed_seconds == 95
    assert record.quiz_id == 7
    assert result.correct_count == 1
    assert result.incorrect_count == 2
    assert record.passed is False


def test_unanswered_questions_score_zero():
    questions = [choice_question("a"), choice_question("b")]
    result = aggregate(grade_all(questions, {}), _definition(), 0, completed_at=DONE)
    assert result.record.score == 0
    assert result.record.percentage == 0.0
    assert result.incorrect_count == 2


def test_pass_uses_rounded_percentage_but_stores_raw():
    question = choice_question("a", points=200)
    graded = [GradedResult(question=question, answer="42", earned=139, max_points=200)]
    result = aggregate(graded, _definition(passing_threshold=70), 10, completed_at=DONE)
    assert result.record.percentage == 69.5
    assert result.record.passed is True


def test_passes_boundaries():
    assert passes(70.0, 70)
    assert passes(69.5, 70)
    assert not passes(69.49, 70)
    assert passes(0.0, 0)
    assert percentage_of(0, 0) == 0.0


def test_never_policy_hides_breakdown():
    questions = [choice_question("a")]
    result = aggregate(grade_all(questions, {"a": "42"}), _definition(show_answers=ShowAnswersPolicy.NEVER), 1, completed_at=DONE)
    assert result.breakdown is None
    assert result.record.score == 1


def test_breakdown_discloses_correct_answers():
    questions = [choice_question("a"), ordering_question("c", count=3)]
    result = aggregate(grade_all(questions, {"a": "41"}), _definition(), 1, completed_at=DONE)
    first, second = result.breakdown
    assert first.position == 1
    assert first.answer == "41"
    assert first.correct_answer == [{"id": "42", "text": "option 42"}]
    assert second.answer is None
    assert [i["id"] for i in second.correct_answer] == ["i1", "i2", "i3"]


def test_numeric_disclosure_includes_tolerance():
    disclosed = correct_answer_for(numeric_question(correct=9.81, tolerance=0.01, unit="m/s^2"))
    assert disclosed == {"value": 9.81, "tolerance": 0.01, "tolerance_type": "ABSOLUTE", "unit": "m/s^2"}


def test_format_report_lists_questions():
    questions = [choice_question("a", points=2), numeric_question("b", points=2)]
    result = aggregate(grade_all(questions, {"a": "42"}), _definition(), 30, completed_at=DONE)
    report = format_report(result)
    assert report.startswith("Results - Capitals\n")
    assert "Score: 2/4 (50%)" in report
    assert "Status: FAILED" in report
    assert "Q1. Question a" in report
    assert "Correct Answer(s): option 42" in report
    assert "Q2. How many?" in report


def test_format_report_without_breakdown_is_summary_only():
    questions = [choice_question("a")]
    result = aggregate(grade_all(questions, {"a": "42"}), _definition(show_answers=ShowAnswersPolicy.NEVER), 5, completed_at=DONE)
    report = format_report(result)
    assert "Status: PASSED" in report
    assert "Question Breakdown" not in report
