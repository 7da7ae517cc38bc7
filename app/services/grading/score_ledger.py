"""Append-only, versioned score history per answer."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import GradingValidationError, PersistenceFailure
from app.models.question_score import QuestionScore
from app.models.submission import SubmissionAnswer
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import AnswerStatus


@dataclass
class ScoreData:
    score: float
    max_score: float
    feedback: Optional[str] = None
    criteria_scores: Optional[Dict[str, Any]] = None
    rubric_id: Optional[uuid.UUID] = None
    auto_graded: bool = False


def validate_score_range(score: Any, max_score: Any) -> None:
    """Reject anything but ``0 <= score <= max_score`` with finite numbers."""
    if isinstance(score, bool) or isinstance(max_score, bool):
        raise GradingValidationError("Score and max_score must be numbers")
    if not isinstance(score, (int, float)) or not isinstance(max_score, (int, float)):
        raise GradingValidationError("Score and max_score must be numbers")
    if not (math.isfinite(score) and math.isfinite(max_score)):
        raise GradingValidationError("Score and max_score must be finite")
    if score < 0 or score > max_score:
        raise GradingValidationError("Score must be between 0 and maxScore")


class ScoreLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_score(
        self, answer: SubmissionAnswer, score_data: ScoreData, grader_id: str
    ) -> QuestionScore:
        """Supersede the current score of ``answer`` with a new version.

        Reading the current row, clearing its flag and inserting the next
        version happen in one transaction; the current row is locked for the
        duration on databases that support ``FOR UPDATE``.
        """
        validate_score_range(score_data.score, score_data.max_score)

        answer_id = answer.id
        try:
            current = (
                await self.db.execute(
                    select(QuestionScore)
                    .where(
                        QuestionScore.answer_id == answer_id,
                        QuestionScore.is_current.is_(True),
                    )
                    .with_for_update()
                )
            ).scalars().first()

            next_version = 1
            if current is not None:
                current.is_current = False
                next_version = current.version + 1
                # Clear the flag before the insert so the partial unique index holds
                await self.db.flush()

            record = QuestionScore(
                id=uuid.uuid4(),
                answer_id=answer_id,
                submission_id=answer.submission_id,
                question_id=answer.question_id,
                score=float(score_data.score),
                max_score=float(score_data.max_score),
                rubric_id=score_data.rubric_id,
                criteria_scores=score_data.criteria_scores,
                feedback=score_data.feedback,
                graded_by=grader_id,
                graded_at=get_current_utc_datetime(),
                auto_graded=score_data.auto_graded,
                version=next_version,
                is_current=True,
            )
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceFailure(f"Could not record score for answer {answer_id}") from exc

        return record

    async def current_score(self, answer_id: uuid.UUID) -> Optional[QuestionScore]:
        stmt = select(QuestionScore).where(
            QuestionScore.answer_id == answer_id,
            QuestionScore.is_current.is_(True),
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def history(self, answer_id: uuid.UUID) -> List[QuestionScore]:
        """All versions of the answer's score, newest first."""
        stmt = (
            select(QuestionScore)
            .where(QuestionScore.answer_id == answer_id)
            .order_by(QuestionScore.version.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def current_scores_for_submission(self, submission_id: uuid.UUID) -> List[QuestionScore]:
        """Current scores of the submission's non-archived answers."""
        stmt = (
            select(QuestionScore)
            .join(SubmissionAnswer, SubmissionAnswer.id == QuestionScore.answer_id)
            .where(
                QuestionScore.submission_id == submission_id,
                QuestionScore.is_current.is_(True),
                SubmissionAnswer.status != AnswerStatus.archived,
            )
        )
        return list((await self.db.execute(stmt)).scalars().all())


def serialize_score(record: QuestionScore) -> Dict[str, Any]:
    return {
        "id": record.id,
        "answer_id": record.answer_id,
        "submission_id": record.submission_id,
        "question_id": record.question_id,
        "score": record.score,
        "max_score": record.max_score,
        "rubric_id": record.rubric_id,
        "criteria_scores": record.criteria_scores,
        "feedback": record.feedback,
        "graded_by": record.graded_by,
        "graded_at": record.graded_at,
        "is_auto_graded": record.auto_graded,
        "version": record.version,
        "is_current": record.is_current,
    }
