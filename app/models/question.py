import uuid
from sqlalchemy import Column, String, Text, Float, DateTime, JSON, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from app.db.deps import Base
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import ScoringType


class Question(Base):
    __tablename__ = "questions"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    body_html = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)


class QuestionScoring(Base):
    """Scoring configuration of a question; at most one per question.

    ``answer_kinds`` holds the AnswerKind tag of every expected-answer field,
    computed when the configuration is saved. Rows written before the column
    existed carry ``None`` and fall back to structural inference.
    """

    __tablename__ = "question_scoring"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    rubric_id = Column(PG_UUID(as_uuid=True), nullable=True, index=True)
    scoring_type = Column(Enum(ScoringType), nullable=False, default=ScoringType.manual)
    weight = Column(Float, nullable=False, default=1.0)
    max_score = Column(Float, nullable=True)
    expected_answers = Column(JSON, nullable=True)
    auto_grade_config = Column(JSON, nullable=True)
    field_scores = Column(JSON, nullable=True)
    answer_kinds = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)
    updated_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)
