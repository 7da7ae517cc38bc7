"""Grading endpoints scoped to a submission."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user
from app.core.response import success_response
from app.core.security import require_roles
from app.db.deps import get_db
from app.models.user import Role, User
from app.schemas.grading import BatchGradeRequest, ManualGradeRequest, ScoreUpdateRequest
from app.services.grading import GradingService

logger = logging.getLogger(__name__)

grader_guard = require_roles(Role.admin, Role.teacher)

router = APIRouter(prefix="/submissions", tags=["grading"])


@router.get("/{submission_id}/scores")
async def get_submission_scores(
    submission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GradingService(db)
    submission = await service.get_submission(submission_id)
    if current_user.role == Role.student and submission.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    summary = await service.get_submission_score_summary(submission_id)
    return success_response("Submission scores retrieved", data=summary)


@router.get("/{submission_id}/grading")
async def get_submission_for_grading(
    submission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    data = await GradingService(db).get_submission_for_grading(submission_id)
    return success_response("Submission retrieved for grading", data=data)


@router.post("/{submission_id}/auto-grade")
async def auto_grade_submission(
    submission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(grader_guard),
):
    logger.info(f"Auto-grading of submission {submission_id} requested by {current_user.id}")
    data = await GradingService(db).auto_grade_submission(submission_id, str(current_user.id))
    return success_response("Submission auto-graded", data=data)


@router.post("/{submission_id}/calculate-score")
async def calculate_submission_score(
    submission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    data = await GradingService(db).recalculate(submission_id)
    return success_response("Submission score calculated", data=data)


@router.post("/{submission_id}/answers/{answer_id}/auto-grade")
async def auto_grade_answer(
    submission_id: uuid.UUID,
    answer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(grader_guard),
):
    service = GradingService(db)
    await service.get_answer_in_submission(submission_id, answer_id)
    logger.info(f"Auto-grading of answer {answer_id} requested by {current_user.id}")
    data = await service.auto_grade_answer(answer_id, str(current_user.id))
    if data["requires_manual_grading"]:
        return success_response("Question requires manual grading", data=data)
    return success_response("Answer auto-graded", data=data)


@router.post("/{submission_id}/answers/{answer_id}/grade")
async def grade_answer(
    submission_id: uuid.UUID,
    answer_id: uuid.UUID,
    request: ManualGradeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(grader_guard),
):
    service = GradingService(db)
    await service.get_answer_in_submission(submission_id, answer_id)
    data = await service.manual_grade(answer_id, request, str(current_user.id))
    return success_response("Answer graded", data=data)


@router.put("/{submission_id}/answers/{answer_id}/grade")
async def regrade_answer(
    submission_id: uuid.UUID,
    answer_id: uuid.UUID,
    request: ScoreUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(grader_guard),
):
    service = GradingService(db)
    await service.get_answer_in_submission(submission_id, answer_id)
    current = await service.current_score_for_answer(answer_id)
    data = await service.update_question_score(current.id, request, str(current_user.id))
    return success_response("Score updated", data=data)


@router.get("/{submission_id}/answers/{answer_id}/scores")
async def get_answer_score_history(
    submission_id: uuid.UUID,
    answer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    service = GradingService(db)
    await service.get_answer_in_submission(submission_id, answer_id)
    history = await service.score_history(answer_id)
    return success_response("Score history retrieved", data=history)


@router.post("/{submission_id}/grade-all")
async def grade_all_answers(
    submission_id: uuid.UUID,
    request: BatchGradeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(grader_guard),
):
    data = await GradingService(db).manual_grade_batch(
        submission_id, request.grades, str(current_user.id)
    )
    return success_response("Answers graded", data=data)
