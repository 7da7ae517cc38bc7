"""Persistence of per-question scoring configurations."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PersistenceFailure
from app.core.logging_config import get_logger
from app.models.question import Question, QuestionScoring
from app.schemas.grading import ScoringConfigCreate, ScoringConfigUpdate
from app.services.grading.response_grader import infer_answer_kinds
from app.utils.datetime_utils import get_current_utc_datetime


def _column_values(changes: Dict[str, Any], payload) -> Dict[str, Any]:
    """Map validated request fields to the stored JSON shapes.

    Matcher options and field points are stored with camelCase keys, the
    shape the grader reads back.
    """
    values = dict(changes)
    if "auto_grade_config" in values:
        options = payload.auto_grade_config
        values["auto_grade_config"] = (
            options.model_dump(by_alias=True, mode="json", exclude_none=True)
            if options is not None
            else None
        )
    if "field_scores" in values:
        field_scores = payload.field_scores
        values["field_scores"] = (
            {
                field_id: points.model_dump(by_alias=True, mode="json")
                for field_id, points in field_scores.items()
            }
            if field_scores is not None
            else None
        )
    if "expected_answers" in values:
        values["answer_kinds"] = (
            infer_answer_kinds(values["expected_answers"])
            if values["expected_answers"] is not None
            else None
        )
    return values


class ScoringConfigService:
    def __init__(self, db: AsyncSession, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or get_logger("grading.config")

    async def get(self, question_id: uuid.UUID) -> QuestionScoring:
        stmt = select(QuestionScoring).where(QuestionScoring.question_id == question_id)
        scoring = (await self.db.execute(stmt)).scalars().first()
        if scoring is None:
            raise NotFoundError("Scoring configuration not found")
        return scoring

    async def save(self, payload: ScoringConfigCreate) -> Tuple[QuestionScoring, bool]:
        """Create the configuration of a question, or update the existing one.

        Returns the row and whether it was created.
        """
        question = await self.db.get(Question, payload.question_id)
        if question is None:
            raise NotFoundError("Question not found")

        stmt = select(QuestionScoring).where(QuestionScoring.question_id == payload.question_id)
        scoring = (await self.db.execute(stmt)).scalars().first()
        created = scoring is None

        changes = payload.model_dump(exclude_unset=not created, exclude={"question_id"})
        changes["scoring_type"] = payload.scoring_type
        if not changes.get("rubric_id"):
            changes.pop("rubric_id", None)
        values = _column_values(changes, payload)

        if created:
            scoring = QuestionScoring(id=uuid.uuid4(), question_id=payload.question_id)
            self.db.add(scoring)
        for key, value in values.items():
            setattr(scoring, key, value)
        scoring.updated_at = get_current_utc_datetime()

        await self._commit(payload.question_id)
        self.logger.info(
            f"Scoring configuration {'created' if created else 'updated'} for question {payload.question_id}",
            extra={
                "question_id": str(payload.question_id),
                "scoring_type": scoring.scoring_type.value,
                "answer_kinds": scoring.answer_kinds,
            },
        )
        return scoring, created

    async def update(self, question_id: uuid.UUID, payload: ScoringConfigUpdate) -> QuestionScoring:
        scoring = await self.get(question_id)
        changes = payload.model_dump(exclude_unset=True)
        for required in ("scoring_type", "weight"):
            if changes.get(required, 0) is None:
                changes.pop(required)
        for key, value in _column_values(changes, payload).items():
            setattr(scoring, key, value)
        scoring.updated_at = get_current_utc_datetime()

        await self._commit(question_id)
        self.logger.info(
            f"Scoring configuration updated for question {question_id}",
            extra={"question_id": str(question_id), "fields": sorted(changes)},
        )
        return scoring

    async def delete(self, question_id: uuid.UUID) -> None:
        scoring = await self.get(question_id)
        await self.db.delete(scoring)
        await self._commit(question_id)
        self.logger.info(
            f"Scoring configuration deleted for question {question_id}",
            extra={"question_id": str(question_id)},
        )

    async def _commit(self, question_id: uuid.UUID) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceFailure(
                f"Could not save scoring configuration of question {question_id}"
            ) from exc


def serialize_scoring(scoring: QuestionScoring) -> Dict[str, Any]:
    return {
        "id": scoring.id,
        "question_id": scoring.question_id,
        "rubric_id": scoring.rubric_id,
        "scoring_type": scoring.scoring_type.value,
        "weight": scoring.weight,
        "max_score": scoring.max_score,
        "expected_answers": scoring.expected_answers,
        "auto_grade_config": scoring.auto_grade_config,
        "field_scores": scoring.field_scores,
        "answer_kinds": scoring.answer_kinds,
        "created_at": scoring.created_at,
        "updated_at": scoring.updated_at,
    }
