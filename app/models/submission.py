import uuid
from sqlalchemy import Column, String, Float, DateTime, JSON, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from app.db.deps import Base
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import AnswerStatus, SubmissionStatus


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Submission(Base):
    """A student's attempt at an activity.

    ``total_score``, ``max_possible_score`` and ``percentage`` are derived from
    the current question scores and only written by the aggregator.
    """

    __tablename__ = "user_activity_submissions"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    activity_id = Column(
        PG_UUID(as_uuid=True), ForeignKey("activities.id"), nullable=False, index=True
    )
    status = Column(
        Enum(SubmissionStatus, values_callable=_enum_values),
        nullable=False,
        default=SubmissionStatus.in_progress,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    total_score = Column(Float, nullable=True)
    max_possible_score = Column(Float, nullable=True)
    percentage = Column(Float, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    graded_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)
    updated_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)


class SubmissionAnswer(Base):
    """Raw answer data of one question inside a submission."""

    __tablename__ = "user_activity_submission_answers"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    submission_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("user_activity_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(PG_UUID(as_uuid=True), ForeignKey("questions.id"), nullable=False, index=True)
    element_uuid = Column(PG_UUID(as_uuid=True), nullable=True)
    answer_data = Column(JSON, nullable=False, default=dict)
    status = Column(
        Enum(AnswerStatus, values_callable=_enum_values),
        nullable=False,
        default=AnswerStatus.in_progress,
    )
    created_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)
    updated_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)
