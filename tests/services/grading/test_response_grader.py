from __future__ import annotations

import pytest

from app.schemas.grading import FieldPoints
from app.services.grading.field_scorer import apply_field_points, is_blank, score_blank, score_field
from app.services.grading.matchers import MatchResult
from app.services.grading.response_grader import (
    grade_response,
    infer_answer_kind,
    infer_answer_kinds,
)
from app.utils.enums import AnswerKind


def wrong(max_score: float = 1.0) -> MatchResult:
    return MatchResult(correct=False, score=0.0, max_score=max_score, feedback="Expected: x")


@pytest.mark.parametrize("value", [None, "", "   ", [], {}])
def test_blank_values(value):
    assert is_blank(value) is True


@pytest.mark.parametrize("value", [0, False, "0", ["a"], 0.0])
def test_falsy_answers_are_not_blank(value):
    assert is_blank(value) is False


@pytest.mark.parametrize("wrong_penalty", [0.0, -0.5, -2.0, -100.0])
@pytest.mark.parametrize("blank_penalty", [0.0, -1.0, -50.0])
def test_field_score_is_never_negative(wrong_penalty, blank_penalty):
    points = FieldPoints(points=3, wrong_penalty=wrong_penalty, blank_penalty=blank_penalty)
    assert apply_field_points(wrong(), points, True).score >= 0
    assert score_blank(points).score >= 0


def test_penalty_earns_zero_and_is_reported():
    result = apply_field_points(wrong(), FieldPoints(points=10, wrong_penalty=-2), True)
    assert result.score == 0.0
    assert result.max_score == 10
    assert result.feedback == "Expected: x (Penalty: -2 points)"
    assert result.details["penalty_applied"] == -2


def test_blank_field_uses_blank_penalty():
    result = score_blank(FieldPoints(points=4, wrong_penalty=-1, blank_penalty=-3))
    assert result.score == 0.0
    assert result.max_score == 4
    assert result.feedback == "No answer provided"
    assert result.details["missing"] is True
    assert result.details["penalty_applied"] == -3


def test_standard_mode_passes_matcher_score_through():
    match = MatchResult(correct=False, score=2.0, max_score=3.0, feedback="2/3 correct selections")
    assert apply_field_points(match, FieldPoints(), False) == match


def test_blank_field_skips_the_matcher():
    def boom():
        raise AssertionError("matcher should not run")

    result = score_field(boom, "  ", FieldPoints(points=2), True)
    assert result.details["missing"] is True
    assert result.max_score == 2


def test_answered_field_runs_the_matcher():
    result = score_field(wrong, "b", FieldPoints(points=2, wrong_penalty=-1), True)
    assert result.score == 0.0
    assert result.max_score == 2


@pytest.mark.parametrize("points", [None, 0, -3])
def test_missing_or_non_positive_points_count_as_one(points):
    assert FieldPoints(points=points).points == 1.0


def test_positive_wrong_penalty_is_consolation_credit():
    result = apply_field_points(wrong(), FieldPoints(points=4, wrong_penalty=1), True)
    assert result.score == 1.0
    assert result.details["earned_points"] == 1.0


def test_consolation_never_exceeds_points():
    result = apply_field_points(wrong(), FieldPoints(points=2, wrong_penalty=5), True)
    assert result.score == 2.0


def test_legacy_field_scores_still_auto_grade():
    result = grade_response(
        {"answer": "Lyon"},
        expected_answers={"answer": "Paris"},
        field_scores={"answer": {"points": 0, "wrongPenalty": 0.5}},
    )
    assert result.success is True
    assert result.score == 0.5
    assert result.max_score == 1.0


@pytest.mark.parametrize(
    "expected, kind",
    [
        (True, AnswerKind.boolean),
        (3, AnswerKind.numeric),
        (2.5, AnswerKind.numeric),
        ({"value": 10, "tolerance": 1}, AnswerKind.numeric),
        (["a", "b"], AnswerKind.multi_select),
        ({"keywords": ["cell"]}, AnswerKind.essay),
        ({"minLength": 50}, AnswerKind.essay),
        ({"maxLength": 200}, AnswerKind.essay),
        ({"requiredPhrases": ["in conclusion"]}, AnswerKind.essay),
        ("Paris", AnswerKind.text),
    ],
)
def test_infer_answer_kind(expected, kind):
    assert infer_answer_kind(expected) == kind


def test_infer_answer_kinds_maps_fields_to_values():
    assert infer_answer_kinds({"city": "Paris", "year": 1889}) == {"city": "text", "year": "numeric"}
    assert infer_answer_kinds(None) == {}


def test_exact_text_answer():
    result = grade_response(
        {"answer": "paris"},
        expected_answers={"answer": "Paris"},
        auto_grade_config={"matchingStrategy": "exact", "caseSensitive": False},
    )
    assert result.success is True
    assert result.correct is True
    assert result.score == 1.0
    assert result.max_score == 1.0
    assert result.percentage == 100.0
    assert result.feedback == "All answers correct!"
    assert result.scoring_method == "standard"
    assert result.graded_at is not None


def test_numeric_answer_within_expected_tolerance():
    result = grade_response({"answer": 96}, expected_answers={"answer": {"value": 100, "tolerance": 5}})
    assert result.correct is True
    assert result.score == 1.0


def test_multi_select_partial_credit():
    result = grade_response(
        {"choices": ["a", "b"]},
        expected_answers={"choices": ["a", "b", "c"]},
        auto_grade_config={"partialCredit": True, "pointsPerCorrect": 1},
    )
    assert result.correct is False
    assert result.score == 2.0
    assert result.max_score == 3.0
    assert result.feedback == "Some answers need review"


def test_field_points_wrong_answer_contributes_nothing():
    result = grade_response(
        {"answer": "Lyon", "year": 1889},
        expected_answers={"answer": "Paris", "year": 1889},
        field_scores={"answer": {"points": 10, "wrongPenalty": -2}, "year": {"points": 5}},
    )
    assert result.score == 5.0
    assert result.max_score == 15.0
    assert result.scoring_method == "field-based"
    assert result.field_results["answer"]["score"] == 0.0
    assert result.field_results["answer"]["max_score"] == 10.0


def test_fields_without_points_default_to_one_in_field_mode():
    result = grade_response(
        {"a": "x", "b": "y"},
        expected_answers={"a": "x", "b": "y"},
        field_scores={"a": {"points": 4}},
    )
    assert result.score == 5.0
    assert result.max_score == 5.0


def test_missing_field_is_blank():
    result = grade_response({}, expected_answers={"answer": "Paris"})
    field = result.field_results["answer"]
    assert field["details"]["missing"] is True
    assert field["feedback"] == "No answer provided"
    assert result.correct is False


def test_no_expected_answers_requires_manual_grading():
    result = grade_response({"answer": "anything"}, expected_answers=None)
    assert result.success is False
    assert result.requires_manual_grading is True
    assert result.error == "No expected answers configured for auto-grading"


def test_invalid_configuration_requires_manual_grading():
    result = grade_response(
        {"answer": "paris"},
        expected_answers={"answer": "Paris"},
        auto_grade_config={"matchingStrategy": "telepathy"},
    )
    assert result.success is False
    assert result.requires_manual_grading is True
    assert result.error.startswith("Invalid scoring configuration")


def test_stored_kind_overrides_shape():
    kwargs = {"expected_answers": {"n": "42"}}
    assert grade_response({"n": "42.0"}, **kwargs).correct is False
    assert grade_response({"n": "42.0"}, answer_kinds={"n": "numeric"}, **kwargs).correct is True


def test_unknown_stored_kind_falls_back_to_shape():
    result = grade_response({"n": 7}, expected_answers={"n": 7}, answer_kinds={"n": "hologram"})
    assert result.correct is True
