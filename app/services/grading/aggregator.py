"""Submission totals derived from the current question scores."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, PersistenceFailure
from app.models.question_score import QuestionScore
from app.models.submission import Submission, SubmissionAnswer
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import AnswerStatus, SubmissionStatus

logger = logging.getLogger(__name__)


@dataclass
class SubmissionTotals:
    total_score: float
    max_possible_score: float
    percentage: float
    graded_count: int
    pending_count: int
    total_questions: int
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


async def recalculate_submission_score(
    db: AsyncSession,
    submission_id: uuid.UUID,
    *,
    graded_by: Optional[str] = None,
) -> SubmissionTotals:
    """Recompute and persist the derived totals of a submission.

    The submission becomes ``graded`` once it has answers and every one of
    them has a current score; otherwise its status is left as it was. When the
    transition happens ``graded_at`` is stamped, and ``graded_by`` falls back
    to ``graded_by`` (a manual grader) or the system identity unless a grader
    was already recorded. Calling this twice without score changes in between
    yields the same totals.
    """
    submission = await db.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")

    score_row = (
        await db.execute(
            select(
                func.coalesce(func.sum(QuestionScore.score), 0.0),
                func.coalesce(func.sum(QuestionScore.max_score), 0.0),
                func.count(QuestionScore.id),
            )
            .join(SubmissionAnswer, SubmissionAnswer.id == QuestionScore.answer_id)
            .where(
                QuestionScore.submission_id == submission_id,
                QuestionScore.is_current.is_(True),
                SubmissionAnswer.status != AnswerStatus.archived,
            )
        )
    ).one()
    total_score = float(score_row[0] or 0.0)
    max_possible_score = float(score_row[1] or 0.0)
    graded_count = int(score_row[2] or 0)

    total_questions = int(
        (
            await db.execute(
                select(func.count(SubmissionAnswer.id)).where(
                    SubmissionAnswer.submission_id == submission_id,
                    SubmissionAnswer.status != AnswerStatus.archived,
                )
            )
        ).scalar_one()
    )
    pending_count = total_questions - graded_count
    percentage = (total_score / max_possible_score) * 100 if max_possible_score > 0 else 0.0
    fully_graded = total_questions > 0 and pending_count == 0

    try:
        submission.total_score = total_score
        submission.max_possible_score = max_possible_score
        submission.percentage = percentage
        if fully_graded and (
            submission.status != SubmissionStatus.graded or submission.graded_at is None
        ):
            submission.status = SubmissionStatus.graded
            submission.graded_at = get_current_utc_datetime()
            submission.graded_by = (
                submission.graded_by or graded_by or settings.SYSTEM_GRADER_ID
            )
        submission.updated_at = get_current_utc_datetime()
        status = submission.status
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceFailure(f"Could not update totals of submission {submission_id}") from exc

    logger.debug(
        "submission_recalculated submission_id=%s total=%s max=%s graded=%d pending=%d",
        submission_id,
        total_score,
        max_possible_score,
        graded_count,
        pending_count,
    )

    return SubmissionTotals(
        total_score=total_score,
        max_possible_score=max_possible_score,
        percentage=percentage,
        graded_count=graded_count,
        pending_count=pending_count,
        total_questions=total_questions,
        status=SubmissionStatus(status).value,
    )
