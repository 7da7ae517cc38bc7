"""Coordinates configuration lookup, grading, the score ledger and totals."""

from __future__ import annotations

import json
import logging
import math
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import GradingError, GradingValidationError, NotFoundError
from app.core.logging_config import get_logger
from app.models.activity import Activity, ActivityElement
from app.models.question import Question, QuestionScoring
from app.models.question_score import QuestionScore
from app.models.submission import Submission, SubmissionAnswer
from app.models.user import User
from app.schemas.grading import BatchGradeItem, ManualGradeRequest, ScoreUpdateRequest
from app.services.grading.aggregator import recalculate_submission_score
from app.services.grading.response_grader import GradingResult, grade_response
from app.services.grading.score_ledger import (
    ScoreData,
    ScoreLedger,
    serialize_score,
    validate_score_range,
)
from app.utils.enums import AnswerStatus, ElementStatus, ScoringType, SubmissionStatus

AUTO_GRADABLE_STATUSES = (SubmissionStatus.submitted, SubmissionStatus.graded)


class GradingService:
    """Entry point for every grading operation of a request.

    One instance wraps one request-scoped session. Each recorded score is
    committed on its own; bulk operations run answers sequentially, collect
    per-answer failures and recalculate the submission once at the end.
    """

    def __init__(self, db: AsyncSession, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or get_logger("grading")
        self.ledger = ScoreLedger(db)

    # Lookups

    async def get_submission(self, submission_id: uuid.UUID) -> Submission:
        submission = await self.db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    async def get_answer_in_submission(
        self, submission_id: uuid.UUID, answer_id: uuid.UUID
    ) -> SubmissionAnswer:
        answer = await self.db.get(SubmissionAnswer, answer_id)
        if answer is None or answer.submission_id != submission_id:
            raise NotFoundError("Answer not found")
        return answer

    async def _get_answer(self, answer_id: uuid.UUID) -> SubmissionAnswer:
        answer = await self.db.get(SubmissionAnswer, answer_id)
        if answer is None:
            raise NotFoundError("Answer not found")
        if answer.status == AnswerStatus.archived:
            raise GradingValidationError("Archived answers cannot be graded")
        return answer

    async def _get_scoring(self, question_id: uuid.UUID) -> Optional[QuestionScoring]:
        stmt = select(QuestionScoring).where(QuestionScoring.question_id == question_id)
        return (await self.db.execute(stmt)).scalars().first()

    @staticmethod
    def _load_answer_data(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return {}
        return raw if isinstance(raw, dict) else {}

    @staticmethod
    def _grade_with(scoring: QuestionScoring, answer_data: Dict[str, Any]) -> GradingResult:
        return grade_response(
            answer_data,
            expected_answers=scoring.expected_answers,
            auto_grade_config=scoring.auto_grade_config,
            field_scores=scoring.field_scores,
            answer_kinds=scoring.answer_kinds,
        )

    # Auto grading

    async def auto_grade_answer(
        self,
        answer_id: uuid.UUID,
        grader_id: Optional[str] = None,
        *,
        recalculate: bool = True,
    ) -> Dict[str, Any]:
        """Grade one answer against its question's configuration.

        Questions without a configuration, configured for manual scoring, or
        whose configuration cannot be auto-graded come back with
        ``requires_manual_grading`` set and nothing is written.
        """
        answer = await self._get_answer(answer_id)
        submission_id = answer.submission_id
        question_id = answer.question_id

        scoring = await self._get_scoring(question_id)
        if scoring is None or scoring.scoring_type == ScoringType.manual:
            self.logger.info(
                f"Answer {answer_id} requires manual grading",
                extra={"answer_id": str(answer_id), "question_id": str(question_id)},
            )
            return {
                "success": False,
                "requires_manual_grading": True,
                "answer_id": answer_id,
                "question_id": question_id,
                "message": "Question requires manual grading",
            }

        result = self._grade_with(scoring, self._load_answer_data(answer.answer_data))
        if not result.success:
            self.logger.info(
                f"Answer {answer_id} cannot be auto-graded: {result.error}",
                extra={"answer_id": str(answer_id), "question_id": str(question_id)},
            )
            return {
                "success": False,
                "requires_manual_grading": result.requires_manual_grading,
                "answer_id": answer_id,
                "question_id": question_id,
                "message": result.error,
                "grading_result": result.to_dict(),
            }

        graded_by = grader_id or settings.AUTO_GRADER_ID
        record = await self.ledger.record_score(
            answer,
            ScoreData(
                score=result.score,
                max_score=result.max_score,
                feedback=result.feedback,
                criteria_scores=result.field_results,
                rubric_id=scoring.rubric_id,
                auto_graded=True,
            ),
            graded_by,
        )
        self.logger.info(
            f"Auto-graded answer {answer_id}: {result.score}/{result.max_score}",
            extra={
                "answer_id": str(answer_id),
                "submission_id": str(submission_id),
                "question_id": str(question_id),
                "score": result.score,
                "max_score": result.max_score,
                "version": record.version,
                "graded_by": graded_by,
                "scoring_method": result.scoring_method,
            },
        )

        totals = None
        if recalculate:
            totals = await recalculate_submission_score(self.db, submission_id)

        return {
            "success": True,
            "requires_manual_grading": False,
            "answer_id": answer_id,
            "question_id": question_id,
            "score": serialize_score(record),
            "grading_result": result.to_dict(),
            "submission_totals": totals.to_dict() if totals else None,
        }

    async def auto_grade_submission(
        self, submission_id: uuid.UUID, grader_id: Optional[str] = None
    ) -> Dict[str, Any]:
        submission = await self.get_submission(submission_id)
        if submission.status not in AUTO_GRADABLE_STATUSES:
            raise GradingValidationError(
                "Only submitted or graded submissions can be auto-graded"
            )

        stmt = (
            select(SubmissionAnswer.id)
            .where(
                SubmissionAnswer.submission_id == submission_id,
                SubmissionAnswer.status != AnswerStatus.archived,
            )
            .order_by(SubmissionAnswer.created_at)
        )
        # Plain ids: a failed answer rolls the session back and expires loaded rows
        answer_ids = list((await self.db.execute(stmt)).scalars().all())

        results: List[Dict[str, Any]] = []
        auto_graded_count = 0
        manual_required = 0
        failed_count = 0

        for answer_id in answer_ids:
            try:
                outcome = await self.auto_grade_answer(answer_id, grader_id, recalculate=False)
            except GradingError as exc:
                failed_count += 1
                self.logger.warning(
                    f"Auto-grading failed for answer {answer_id}: {exc.message}",
                    extra={
                        "answer_id": str(answer_id),
                        "submission_id": str(submission_id),
                        "error_code": exc.error_code,
                    },
                )
                results.append({"answer_id": answer_id, "success": False, "error": exc.message})
                continue
            except Exception as exc:
                # One broken answer never stops the rest of the submission
                await self.db.rollback()
                failed_count += 1
                self.logger.exception(
                    f"Unexpected error auto-grading answer {answer_id}",
                    extra={"answer_id": str(answer_id), "submission_id": str(submission_id)},
                )
                results.append({"answer_id": answer_id, "success": False, "error": str(exc)})
                continue

            if outcome["success"]:
                auto_graded_count += 1
            elif outcome["requires_manual_grading"]:
                manual_required += 1
            results.append(outcome)

        totals = await recalculate_submission_score(self.db, submission_id)
        self.logger.info(
            f"Auto-graded submission {submission_id}",
            extra={
                "submission_id": str(submission_id),
                "auto_graded_count": auto_graded_count,
                "manual_grading_required": manual_required,
                "failed_count": failed_count,
                "total_questions": len(answer_ids),
            },
        )

        return {
            "submission_id": submission_id,
            "auto_graded_count": auto_graded_count,
            "manual_grading_required": manual_required,
            "failed_count": failed_count,
            "total_questions": len(answer_ids),
            "results": results,
            "final_score": totals.to_dict(),
        }

    async def preview_grade(
        self, question_id: uuid.UUID, answer_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Score an answer object without recording anything."""
        scoring = await self._get_scoring(question_id)
        if scoring is None:
            raise NotFoundError("Scoring configuration not found")
        return self._grade_with(scoring, self._load_answer_data(answer_data)).to_dict()

    # Manual grading

    async def _record_manual(
        self,
        answer: SubmissionAnswer,
        score_data: ScoreData,
        grader_id: str,
        recalculate: bool,
    ) -> Dict[str, Any]:
        answer_id = answer.id
        submission_id = answer.submission_id
        record = await self.ledger.record_score(answer, score_data, grader_id)
        self.logger.info(
            f"Manually graded answer {answer_id}: {score_data.score}/{score_data.max_score}",
            extra={
                "answer_id": str(answer_id),
                "submission_id": str(submission_id),
                "score": score_data.score,
                "max_score": score_data.max_score,
                "version": record.version,
                "graded_by": grader_id,
            },
        )

        totals = None
        if recalculate:
            totals = await recalculate_submission_score(
                self.db, submission_id, graded_by=grader_id
            )
        return {
            "success": True,
            "answer_id": answer_id,
            "score": serialize_score(record),
            "submission_totals": totals.to_dict() if totals else None,
        }

    async def manual_grade(
        self,
        answer_id: uuid.UUID,
        grade: ManualGradeRequest,
        grader_id: str,
        *,
        recalculate: bool = True,
    ) -> Dict[str, Any]:
        validate_score_range(grade.score, grade.max_score)
        answer = await self._get_answer(answer_id)
        return await self._record_manual(
            answer,
            ScoreData(
                score=grade.score,
                max_score=grade.max_score,
                feedback=grade.feedback,
                criteria_scores=grade.criteria_scores,
                rubric_id=grade.rubric_id,
            ),
            grader_id,
            recalculate,
        )

    async def update_question_score(
        self, score_id: uuid.UUID, update: ScoreUpdateRequest, grader_id: str
    ) -> Dict[str, Any]:
        """Re-grade by score id; fields not sent are carried over."""
        existing = await self.db.get(QuestionScore, score_id)
        if existing is None:
            raise NotFoundError("Question score not found")
        if not existing.is_current:
            raise GradingValidationError("Only the current score can be updated")

        changes = update.model_dump(exclude_unset=True)
        score = changes.get("score", existing.score)
        max_score = changes.get("max_score", existing.max_score)
        if score is None or max_score is None:
            raise GradingValidationError("Score and max_score must be numbers")
        validate_score_range(score, max_score)

        answer = await self._get_answer(existing.answer_id)
        return await self._record_manual(
            answer,
            ScoreData(
                score=score,
                max_score=max_score,
                feedback=changes.get("feedback", existing.feedback),
                criteria_scores=changes.get("criteria_scores", existing.criteria_scores),
                rubric_id=existing.rubric_id,
            ),
            grader_id,
            True,
        )

    async def manual_grade_batch(
        self,
        submission_id: uuid.UUID,
        grades: Sequence[BatchGradeItem],
        grader_id: str,
    ) -> Dict[str, Any]:
        await self.get_submission(submission_id)

        results: List[Dict[str, Any]] = []
        graded_count = 0
        failed_count = 0
        for item in grades:
            try:
                answer = await self._get_answer(item.answer_id)
                if answer.submission_id != submission_id:
                    raise GradingValidationError("Answer does not belong to this submission")
                outcome = await self.manual_grade(
                    item.answer_id, item, grader_id, recalculate=False
                )
            except GradingError as exc:
                failed_count += 1
                self.logger.warning(
                    f"Manual grading failed for answer {item.answer_id}: {exc.message}",
                    extra={
                        "answer_id": str(item.answer_id),
                        "submission_id": str(submission_id),
                        "error_code": exc.error_code,
                    },
                )
                results.append(
                    {"answer_id": item.answer_id, "success": False, "error": exc.message}
                )
                continue
            graded_count += 1
            results.append(outcome)

        totals = await recalculate_submission_score(
            self.db, submission_id, graded_by=grader_id
        )
        return {
            "submission_id": submission_id,
            "graded_count": graded_count,
            "failed_count": failed_count,
            "results": results,
            "final_score": totals.to_dict(),
        }

    # Totals and history

    async def recalculate(self, submission_id: uuid.UUID) -> Dict[str, Any]:
        totals = await recalculate_submission_score(self.db, submission_id)
        return totals.to_dict()

    async def current_score_for_answer(self, answer_id: uuid.UUID) -> QuestionScore:
        record = await self.ledger.current_score(answer_id)
        if record is None:
            raise NotFoundError("Answer has not been graded yet")
        return record

    async def score_history(self, answer_id: uuid.UUID) -> List[Dict[str, Any]]:
        answer = await self.db.get(SubmissionAnswer, answer_id)
        if answer is None:
            raise NotFoundError("Answer not found")
        return [serialize_score(record) for record in await self.ledger.history(answer_id)]

    # Read models

    async def get_submission_score_summary(self, submission_id: uuid.UUID) -> Dict[str, Any]:
        submission = await self.get_submission(submission_id)
        activity = await self.db.get(Activity, submission.activity_id)

        answer_rows = (
            await self.db.execute(
                select(SubmissionAnswer.id, SubmissionAnswer.question_id, Question.title)
                .join(Question, Question.id == SubmissionAnswer.question_id)
                .where(
                    SubmissionAnswer.submission_id == submission_id,
                    SubmissionAnswer.status != AnswerStatus.archived,
                )
                .order_by(SubmissionAnswer.created_at)
            )
        ).all()
        titles = {row.question_id: row.title for row in answer_rows}
        current_scores = await self.ledger.current_scores_for_submission(submission_id)
        graded_answer_ids = {record.answer_id for record in current_scores}

        question_scores = [
            {
                "id": record.id,
                "answer_id": record.answer_id,
                "question": {"id": record.question_id, "title": titles.get(record.question_id)},
                "score": record.score,
                "max_score": record.max_score,
                "percentage": (
                    (record.score / record.max_score) * 100 if record.max_score > 0 else 0.0
                ),
                "feedback": record.feedback,
                "criteria_scores": record.criteria_scores,
                "rubric_id": record.rubric_id,
                "graded_at": record.graded_at,
                "is_auto_graded": record.auto_graded,
                "version": record.version,
            }
            for record in current_scores
        ]
        pending_questions = [
            {
                "answer_id": row.id,
                "question": {"id": row.question_id, "title": row.title},
                "status": "pending",
            }
            for row in answer_rows
            if row.id not in graded_answer_ids
        ]

        return {
            "submission": {
                "id": submission.id,
                "user_id": submission.user_id,
                "status": submission.status.value,
                "total_score": submission.total_score or 0.0,
                "max_possible_score": submission.max_possible_score or 0.0,
                "percentage": submission.percentage or 0.0,
                "submitted_at": submission.submitted_at,
                "graded_at": submission.graded_at,
                "activity": {"id": activity.id, "title": activity.title} if activity else None,
            },
            "scores": {
                "total": submission.total_score or 0.0,
                "max_possible": submission.max_possible_score or 0.0,
                "percentage": submission.percentage or 0.0,
                "graded_count": len(question_scores),
                "pending_count": len(pending_questions),
                "total_questions": len(answer_rows),
            },
            "question_scores": question_scores,
            "pending_questions": pending_questions,
        }

    async def get_submission_for_grading(self, submission_id: uuid.UUID) -> Dict[str, Any]:
        """Every active question of the activity, answered or not, in order."""
        submission = await self.get_submission(submission_id)
        activity = await self.db.get(Activity, submission.activity_id)
        user = await self.db.get(User, submission.user_id)

        element_rows = (
            await self.db.execute(
                select(ActivityElement, Question)
                .join(Question, Question.id == ActivityElement.question_id)
                .where(
                    ActivityElement.activity_id == submission.activity_id,
                    ActivityElement.element_type == "question",
                    ActivityElement.status == ElementStatus.active,
                )
                .order_by(ActivityElement.order_index)
            )
        ).all()
        question_ids = [question.id for _, question in element_rows]

        scorings: Dict[uuid.UUID, QuestionScoring] = {}
        if question_ids:
            scoring_rows = await self.db.execute(
                select(QuestionScoring).where(QuestionScoring.question_id.in_(question_ids))
            )
            scorings = {scoring.question_id: scoring for scoring in scoring_rows.scalars()}

        answer_rows = await self.db.execute(
            select(SubmissionAnswer).where(
                SubmissionAnswer.submission_id == submission_id,
                SubmissionAnswer.status != AnswerStatus.archived,
            )
        )
        answers = {answer.question_id: answer for answer in answer_rows.scalars()}
        scores = {
            record.answer_id: record
            for record in await self.ledger.current_scores_for_submission(submission_id)
        }

        questions = []
        for element, question in element_rows:
            answer = answers.get(question.id)
            record = scores.get(answer.id) if answer else None
            scoring = scorings.get(question.id)
            questions.append(
                {
                    "answer_id": answer.id if answer else None,
                    "question_id": question.id,
                    "element_uuid": element.id,
                    "question": {
                        "id": question.id,
                        "title": question.title,
                        "body_html": question.body_html,
                    },
                    "scoring": (
                        {
                            "scoring_type": scoring.scoring_type.value,
                            "max_score": scoring.max_score,
                            "weight": scoring.weight,
                            "rubric_id": scoring.rubric_id,
                        }
                        if scoring
                        else None
                    ),
                    "response": answer.answer_data if answer else None,
                    "is_answered": answer is not None,
                    "score": (
                        {
                            "id": record.id,
                            "score": record.score,
                            "max_score": record.max_score,
                            "feedback": record.feedback,
                            "criteria_scores": record.criteria_scores,
                            "graded_by": record.graded_by,
                            "graded_at": record.graded_at,
                            "is_auto_graded": record.auto_graded,
                            "version": record.version,
                        }
                        if record
                        else None
                    ),
                }
            )

        return {
            "submission": {
                "id": submission.id,
                "status": submission.status.value,
                "total_score": submission.total_score,
                "max_possible_score": submission.max_possible_score,
                "percentage": submission.percentage,
                "submitted_at": submission.submitted_at,
                "graded_at": submission.graded_at,
                "graded_by": submission.graded_by,
                "activity": (
                    {
                        "id": activity.id,
                        "title": activity.title,
                        "description": activity.description,
                    }
                    if activity
                    else None
                ),
                "user": _serialize_user(user),
            },
            "questions": questions,
        }

    async def get_activity_report(
        self,
        activity_id: uuid.UUID,
        status: Optional[SubmissionStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Paged submissions of an activity with class statistics.

        Statistics cover every matching submission in the ``graded`` state,
        not just the requested page.
        """
        limit = limit or settings.REPORT_PAGE_LIMIT
        if page < 1 or limit < 1:
            raise GradingValidationError("page and limit must be positive")

        activity = await self.db.get(Activity, activity_id)
        if activity is None:
            raise NotFoundError("Activity not found")

        filters = [Submission.activity_id == activity_id]
        if status is not None:
            filters.append(Submission.status == status)

        total = (
            await self.db.execute(select(func.count(Submission.id)).where(*filters))
        ).scalar_one()

        rows = (
            await self.db.execute(
                select(Submission, User)
                .join(User, User.id == Submission.user_id)
                .where(*filters)
                .order_by(Submission.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).all()
        submission_ids = [submission.id for submission, _ in rows]

        answer_counts: Dict[uuid.UUID, int] = {}
        graded_counts: Dict[uuid.UUID, int] = {}
        if submission_ids:
            answer_counts = dict(
                (
                    await self.db.execute(
                        select(SubmissionAnswer.submission_id, func.count(SubmissionAnswer.id))
                        .where(
                            SubmissionAnswer.submission_id.in_(submission_ids),
                            SubmissionAnswer.status != AnswerStatus.archived,
                        )
                        .group_by(SubmissionAnswer.submission_id)
                    )
                ).all()
            )
            graded_counts = dict(
                (
                    await self.db.execute(
                        select(QuestionScore.submission_id, func.count(QuestionScore.id))
                        .join(SubmissionAnswer, SubmissionAnswer.id == QuestionScore.answer_id)
                        .where(
                            QuestionScore.submission_id.in_(submission_ids),
                            QuestionScore.is_current.is_(True),
                            SubmissionAnswer.status != AnswerStatus.archived,
                        )
                        .group_by(QuestionScore.submission_id)
                    )
                ).all()
            )

        submissions = []
        for submission, user in rows:
            answered = answer_counts.get(submission.id, 0)
            graded = graded_counts.get(submission.id, 0)
            submissions.append(
                {
                    "submission": {
                        "id": submission.id,
                        "status": submission.status.value,
                        "submitted_at": submission.submitted_at,
                        "graded_at": submission.graded_at,
                    },
                    "user": _serialize_user(user),
                    "scores": {
                        "total": submission.total_score or 0.0,
                        "max_possible": submission.max_possible_score or 0.0,
                        "percentage": submission.percentage or 0.0,
                        "graded_count": graded,
                        "pending_count": answered - graded,
                    },
                }
            )

        graded_count, average, highest, lowest = (
            await self.db.execute(
                select(
                    func.count(Submission.id),
                    func.avg(Submission.percentage),
                    func.max(Submission.percentage),
                    func.min(Submission.percentage),
                ).where(
                    *filters,
                    Submission.status == SubmissionStatus.graded,
                    Submission.percentage.is_not(None),
                )
            )
        ).one()

        return {
            "activity": {
                "id": activity.id,
                "title": activity.title,
                "description": activity.description,
            },
            "submissions": submissions,
            "statistics": {
                "total_submissions": total,
                "graded_submissions": graded_count,
                "average_score": float(average) if average is not None else None,
                "highest_score": float(highest) if highest is not None else None,
                "lowest_score": float(lowest) if lowest is not None else None,
            },
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }


def _serialize_user(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
    }
