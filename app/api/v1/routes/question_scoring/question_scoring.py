"""Scoring configuration endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user
from app.core.response import success_response
from app.core.security import require_roles
from app.db.deps import get_db
from app.models.user import Role, User
from app.schemas.grading import CalculateScoreRequest, ScoringConfigCreate, ScoringConfigUpdate
from app.services.grading import GradingService, ScoringConfigService
from app.services.grading.scoring_config import serialize_scoring

grader_guard = require_roles(Role.admin, Role.teacher)

router = APIRouter(prefix="/question-scoring", tags=["question-scoring"])


@router.post("")
async def save_question_scoring(
    request: ScoringConfigCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    service = ScoringConfigService(db)
    scoring, created = await service.save(request)
    if created:
        return success_response(
            "Scoring configuration created", data=serialize_scoring(scoring), status_code=201
        )
    return success_response("Scoring configuration updated", data=serialize_scoring(scoring))


@router.get("/{question_id}")
async def get_question_scoring(
    question_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    scoring = await ScoringConfigService(db).get(question_id)
    return success_response("Scoring configuration retrieved", data=serialize_scoring(scoring))


@router.put("/{question_id}")
async def update_question_scoring(
    question_id: uuid.UUID,
    request: ScoringConfigUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    scoring = await ScoringConfigService(db).update(question_id, request)
    return success_response("Scoring configuration updated", data=serialize_scoring(scoring))


@router.delete("/{question_id}")
async def delete_question_scoring(
    question_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    await ScoringConfigService(db).delete(question_id)
    return success_response("Scoring configuration deleted successfully")


@router.post("/{question_id}/calculate")
async def calculate_question_score(
    question_id: uuid.UUID,
    request: CalculateScoreRequest,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    """Score an answer against the configuration without saving anything."""
    result = await GradingService(db).preview_grade(question_id, request.answer_data)
    return success_response("Score calculated", data=result)
