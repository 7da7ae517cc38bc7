"""Grades a full answer object against a question's scoring configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from app.schemas.grading import AutoGradeOptions, FieldPoints
from app.services.grading.field_scorer import score_field
from app.services.grading.matchers import (
    MatchResult,
    grade_boolean,
    grade_essay,
    grade_multiple_choice,
    grade_number_input,
    grade_text_input,
)
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import AnswerKind, ScoringMethod

_ESSAY_KEYS = ("keywords", "requiredPhrases")
_ESSAY_BOUNDS = ("minLength", "maxLength")

_MATCHERS: Dict[AnswerKind, Callable[[Any, Any, AutoGradeOptions], MatchResult]] = {
    AnswerKind.boolean: grade_boolean,
    AnswerKind.numeric: grade_number_input,
    AnswerKind.text: grade_text_input,
    AnswerKind.multi_select: grade_multiple_choice,
    AnswerKind.essay: grade_essay,
}


@dataclass
class GradingResult:
    success: bool
    correct: bool = False
    score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    field_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    feedback: str = ""
    scoring_method: str = ScoringMethod.standard.value
    graded_at: Optional[str] = None
    error: Optional[str] = None
    requires_manual_grading: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def infer_answer_kind(expected: Any) -> AnswerKind:
    """Pick the matcher family from the JSON shape of an expected answer.

    Used when a configuration is saved, and as the fallback for configurations
    stored before kinds were recorded.
    """
    if isinstance(expected, bool):
        return AnswerKind.boolean
    if isinstance(expected, dict):
        if any(expected.get(key) is not None for key in _ESSAY_KEYS) or any(
            expected.get(key) for key in _ESSAY_BOUNDS
        ):
            return AnswerKind.essay
        if "value" in expected:
            return AnswerKind.numeric
        return AnswerKind.text
    if isinstance(expected, list):
        return AnswerKind.multi_select
    if isinstance(expected, (int, float)):
        return AnswerKind.numeric
    return AnswerKind.text


def infer_answer_kinds(expected_answers: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    return {
        field_id: infer_answer_kind(expected).value
        for field_id, expected in (expected_answers or {}).items()
    }


def _resolve_kind(field_id: str, expected: Any, answer_kinds: Optional[Mapping[str, str]]) -> AnswerKind:
    tagged = (answer_kinds or {}).get(field_id)
    if tagged:
        try:
            return AnswerKind(tagged)
        except ValueError:
            pass
    return infer_answer_kind(expected)


def grade_response(
    answer_data: Mapping[str, Any],
    *,
    expected_answers: Optional[Mapping[str, Any]],
    auto_grade_config: Optional[Mapping[str, Any]] = None,
    field_scores: Optional[Mapping[str, Any]] = None,
    answer_kinds: Optional[Mapping[str, str]] = None,
) -> GradingResult:
    """Grade every expected field of one question.

    A question without expected answers cannot be auto-graded; that is a
    normal "requires manual grading" outcome, not an error. A configuration
    that fails validation is reported the same way with the reason attached.
    """
    if not expected_answers:
        return GradingResult(
            success=False,
            error="No expected answers configured for auto-grading",
            requires_manual_grading=True,
        )

    try:
        options = AutoGradeOptions.model_validate(auto_grade_config or {})
        points_by_field = {
            field_id: FieldPoints.model_validate(config or {})
            for field_id, config in (field_scores or {}).items()
        }
    except ValidationError as exc:
        return GradingResult(
            success=False,
            error=f"Invalid scoring configuration ({exc.error_count()} error(s))",
            requires_manual_grading=True,
        )

    use_field_scoring = bool(points_by_field)
    field_results: Dict[str, Dict[str, Any]] = {}
    total_score = 0.0
    total_max_score = 0.0

    for field_id, expected in expected_answers.items():
        student_value = answer_data.get(field_id)
        field_points = points_by_field.get(field_id) or FieldPoints()

        kind = _resolve_kind(field_id, expected, answer_kinds)
        result = score_field(
            lambda: _MATCHERS[kind](student_value, expected, options),
            student_value,
            field_points,
            use_field_scoring,
        )

        field_results[field_id] = result.to_dict()
        total_score += result.score
        total_max_score += result.max_score

    total_score = max(0.0, total_score)
    all_correct = all(result["correct"] for result in field_results.values())

    return GradingResult(
        success=True,
        correct=all_correct,
        score=total_score,
        max_score=total_max_score,
        percentage=(total_score / total_max_score) * 100 if total_max_score > 0 else 0.0,
        field_results=field_results,
        feedback="All answers correct!" if all_correct else "Some answers need review",
        scoring_method=(
            ScoringMethod.field_based.value if use_field_scoring else ScoringMethod.standard.value
        ),
        graded_at=get_current_utc_datetime().isoformat(),
    )
