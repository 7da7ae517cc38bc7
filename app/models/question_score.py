import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from app.db.deps import Base
from app.utils.datetime_utils import get_current_utc_datetime


class QuestionScore(Base):
    """One immutable version of the score of an answer.

    Versions run 1..N per answer and exactly one row per graded answer has
    ``is_current`` set. Both rules are also enforced by the store through the
    unique constraint and the partial unique index below.
    """

    __tablename__ = "question_scores"
    __table_args__ = (
        UniqueConstraint("answer_id", "version", name="uq_question_scores_answer_version"),
        Index(
            "uq_question_scores_current_answer",
            "answer_id",
            unique=True,
            postgresql_where=text("is_current IS TRUE"),
            sqlite_where=text("is_current = 1"),
        ),
        Index("ix_question_scores_submission_current", "submission_id", "is_current"),
    )

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    answer_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("user_activity_submission_answers.id", ondelete="CASCADE"),
        nullable=False,
    )
    submission_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("user_activity_submissions.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = Column(PG_UUID(as_uuid=True), ForeignKey("questions.id"), nullable=False)
    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    rubric_id = Column(PG_UUID(as_uuid=True), nullable=True)
    criteria_scores = Column(JSON, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_by = Column(String, nullable=False)
    graded_at = Column(DateTime(timezone=True), nullable=False, default=get_current_utc_datetime)
    auto_graded = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    is_current = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=get_current_utc_datetime)
