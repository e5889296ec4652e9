import pytest

from assessment.grading import grade, grade_question, parse_number, round_half_up
from builders import choice_question, numeric_question, ordering_question


def test_single_choice_correct_option_gets_full_points():
    q = choice_question(points=1, correct=("42",))
    result = grade_question(q, ["42"])
    assert result.earned == 1
    assert result.full_credit is True


def test_single_choice_accepts_bare_id_and_int():
    q = choice_question(points=3, correct=("42",))
    assert grade(q, "42") == 3
    assert grade(q, 42) == 3
    assert grade(q, "41") == 0


def test_multiple_choice_is_set_equality_all_or_nothing():
    q = choice_question(points=2, correct=("41", "43"), multiple=True)
    assert grade(q, ["43", "41"]) == 2
    assert grade(q, ["41"]) == 0
    assert grade(q, ["41", "42", "43"]) == 0
    assert grade(q, []) == 0


def test_fill_blank_half_right_earns_half(fill_blank):
    result = grade_question(fill_blank, ["Paris", "90"])
    assert result.earned == 2.0
    assert result.full_credit is False


def test_fill_blank_normalizes_and_uses_alternates_and_tolerance(fill_blank):
    assert grade(fill_blank, ["  PARIS ", "100.4"]) == 4
    assert grade(fill_blank, ["Paris, France", "99.6 C"]) == 4
    assert grade(fill_blank, ["Lyon", "100.6"]) == 0


def test_fill_blank_missing_or_malformed_entries(fill_blank):
    assert grade(fill_blank, ["Paris"]) == 2
    assert grade(fill_blank, [None, "100"]) == 2
    assert grade(fill_blank, ["", ""]) == 0
    assert grade(fill_blank, {"0": "Paris"}) == 0


def test_numeric_input_tolerance_boundaries():
    q = numeric_question(points=5, correct=10, tolerance=0.5)
    assert grade(q, "10.4") == 5
    assert grade(q, "10.6") == 0
    assert grade(q, "9.5") == 5
    assert grade(q, 10) == 5


def test_numeric_input_unparsable_is_zero():
    q = numeric_question(points=5)
    for bad in ("", "ten", "nan", "inf", [10], {"v": 10}, True):
        assert grade(q, bad) == 0


def test_numeric_input_percentage_tolerance_and_unit():
    q = numeric_question(points=1, correct=200, tolerance=5, tolerance_type="PERCENTAGE", unit="kg")
    assert grade(q, "209 kg") == 1
    assert grade(q, "211kg") == 0


def test_numeric_float_noise_does_not_fail_exact_tolerance():
    q = numeric_question(points=1, correct=0.3, tolerance=0.1)
    assert grade(q, "0.4") == 1


def test_ordering_credits_items_in_correct_slots(ordering):
    # i1 and i4 in place, i2 and i3 swapped
    assert grade(ordering, ["i1", "i3", "i2", "i4"]) == 4.0
    assert grade(ordering, ["i1", "i2", "i3", "i4"]) == 8.0
    assert grade(ordering, ["i4", "i3", "i2", "i1"]) == 0


def test_ordering_length_mismatch_is_zero(ordering):
    assert grade(ordering, ["i1", "i2", "i3"]) == 0
    assert grade(ordering, ["i1", "i2", "i3", "i4", "i1"]) == 0
    assert grade(ordering, "i1i2i3i4") == 0


def test_matching_all_correct_is_full_credit(matching):
    result = grade_question(matching, {"1": "1", "2": "2", "3": 3})
    assert result.earned == 6.0
    assert result.full_credit is True


def test_matching_partial_and_malformed(matching):
    assert grade(matching, {1: 1, 2: 3, 3: 2}) == 2.0
    assert grade(matching, {}) == 0
    assert grade(matching, ["1", "2", "3"]) == 0


def test_partial_credit_rounds_to_two_decimals():
    q = ordering_question(points=1, count=3)
    assert grade(q, ["i1", "i3", "i2"]) == 0.33
    assert grade(q, ["i1", "i2", "i3"]) == 1.0


@pytest.mark.parametrize("answer", [None, "", [], {}, 0, 1.5, object()])
def test_grading_never_raises(answer, fill_blank, ordering, matching):
    for q in (choice_question(), numeric_question(), fill_blank, ordering, matching):
        earned = grade(q, answer)
        assert 0 <= earned <= q.points


def test_partial_credit_is_a_sum_of_equal_shares(ordering):
    share = ordering.points / len(ordering.items)
    for answer in (["i1", "i3", "i2", "i4"], ["i2", "i1", "i3", "i4"], ["i4", "i2", "i3", "i1"]):
        earned = grade(ordering, answer)
        assert earned / share == pytest.approx(round(earned / share))


def test_round_half_up_and_parse_number():
    assert round_half_up(2.5) == 3
    assert round_half_up(69.5) == 70
    assert round_half_up(0.125, 2) == 0.13
    assert parse_number(" 12.5 m ", "m") == 12.5
    assert parse_number("abc") is None
