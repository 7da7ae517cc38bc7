from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.utils.enums import MatchingStrategy, ScoringType

# Bodies arrive camelCase from the web client; snake_case is accepted too
_CAMEL_CASE = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AutoGradeOptions(BaseModel):
    """Matcher options stored in ``question_scoring.auto_grade_config``.

    Stored with camelCase keys; snake_case is accepted too.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    matching_strategy: MatchingStrategy = MatchingStrategy.exact
    case_sensitive: bool = False
    remove_whitespace: bool = False
    remove_punctuation: bool = False
    # Fuzzy similarity threshold for text, absolute tolerance for numbers
    tolerance: Optional[float] = Field(default=None, ge=0)
    partial_credit: bool = False
    points_per_correct: float = Field(default=1.0, gt=0)


class FieldPoints(BaseModel):
    """Points and penalties of one answer field.

    Missing, zero or negative ``points`` fall back to one point. Penalties
    are usually zero or negative; a positive wrong-answer value acts as
    consolation credit. The earned amount always stays within
    ``[0, points]``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    points: float = 1.0
    wrong_penalty: float = 0.0
    blank_penalty: float = 0.0

    @field_validator("points", mode="before")
    @classmethod
    def default_points(cls, value):
        return value or 1.0

    @field_validator("points")
    @classmethod
    def positive_points(cls, value: float) -> float:
        return value if value > 0 else 1.0

    @field_validator("wrong_penalty", "blank_penalty", mode="before")
    @classmethod
    def default_penalty(cls, value):
        return value or 0.0


def _check_expected_answers(value: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if value is None:
        return value
    for field_id, expected in value.items():
        if expected is None:
            raise ValueError(f"Expected answer for field '{field_id}' cannot be null")
    return value


class ScoringConfigCreate(BaseModel):
    model_config = _CAMEL_CASE

    question_id: UUID
    rubric_id: Optional[UUID] = None
    scoring_type: ScoringType
    weight: float = Field(default=1.0, ge=0)
    max_score: Optional[float] = Field(default=None, ge=0)
    expected_answers: Optional[Dict[str, Any]] = None
    auto_grade_config: Optional[AutoGradeOptions] = None
    field_scores: Optional[Dict[str, FieldPoints]] = None

    @field_validator("expected_answers")
    @classmethod
    def validate_expected_answers(cls, value):
        return _check_expected_answers(value)


class ScoringConfigUpdate(BaseModel):
    model_config = _CAMEL_CASE

    rubric_id: Optional[UUID] = None
    scoring_type: Optional[ScoringType] = None
    weight: Optional[float] = Field(default=None, ge=0)
    max_score: Optional[float] = Field(default=None, ge=0)
    expected_answers: Optional[Dict[str, Any]] = None
    auto_grade_config: Optional[AutoGradeOptions] = None
    field_scores: Optional[Dict[str, FieldPoints]] = None

    @field_validator("expected_answers")
    @classmethod
    def validate_expected_answers(cls, value):
        return _check_expected_answers(value)


class CalculateScoreRequest(BaseModel):
    model_config = _CAMEL_CASE

    answer_data: Dict[str, Any]


class ManualGradeRequest(BaseModel):
    model_config = _CAMEL_CASE

    # Range checks happen in the grading service so they surface as 400s
    score: float
    max_score: float
    feedback: Optional[str] = None
    criteria_scores: Optional[Dict[str, Any]] = None
    rubric_id: Optional[UUID] = None


class ScoreUpdateRequest(BaseModel):
    model_config = _CAMEL_CASE

    score: Optional[float] = None
    max_score: Optional[float] = None
    feedback: Optional[str] = None
    criteria_scores: Optional[Dict[str, Any]] = None


class BatchGradeItem(ManualGradeRequest):
    answer_id: UUID


class BatchGradeRequest(BaseModel):
    model_config = _CAMEL_CASE

    grades: List[BatchGradeItem] = Field(min_length=1)
