"""Turns a matcher verdict into earned points for one answer field."""

from dataclasses import replace
from typing import Any, Callable

from app.schemas.grading import FieldPoints
from app.services.grading.matchers import MatchResult


def is_blank(value: Any) -> bool:
    """A field counts as unanswered when it is missing, empty or whitespace."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _earned(penalty: float, points: float) -> float:
    # Earned amount is clamped to [0, points]
    return min(max(0.0, penalty), points)


def score_blank(field_points: FieldPoints) -> MatchResult:
    """Result for a field the student left empty."""
    return MatchResult(
        correct=False,
        score=_earned(field_points.blank_penalty, field_points.points),
        max_score=field_points.points,
        feedback="No answer provided",
        details={"missing": True, "penalty_applied": field_points.blank_penalty},
    )


def apply_field_points(
    result: MatchResult, field_points: FieldPoints, use_field_scoring: bool
) -> MatchResult:
    """Apply the question's point configuration to a matcher result.

    With field-level points a correct answer earns ``points`` and a wrong one
    earns ``max(0, wrong_penalty)``. Without it the matcher's own score and
    maximum pass through unchanged.
    """
    if not use_field_scoring:
        return replace(result, score=max(0.0, result.score))

    if result.correct:
        return replace(result, score=field_points.points, max_score=field_points.points)

    penalty = field_points.wrong_penalty
    earned = _earned(penalty, field_points.points)
    return replace(
        result,
        score=earned,
        max_score=field_points.points,
        feedback=f"{result.feedback} (Penalty: {penalty:g} points)",
        details={**result.details, "penalty_applied": penalty, "earned_points": earned},
    )


def score_field(
    match: Callable[[], MatchResult],
    student_value: Any,
    field_points: FieldPoints,
    use_field_scoring: bool,
) -> MatchResult:
    """Score one field; ``match`` only runs when the field was answered."""
    if is_blank(student_value):
        return score_blank(field_points)
    return apply_field_points(match(), field_points, use_field_scoring)
