import uuid
from sqlalchemy import Column, String, Text, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from app.db.deps import Base
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import ElementStatus


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Activity(Base):
    __tablename__ = "activities"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=get_current_utc_datetime)


class ActivityElement(Base):
    """Placement of a question (or section) inside an activity."""

    __tablename__ = "activity_elements"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id = Column(
        PG_UUID(as_uuid=True), ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(PG_UUID(as_uuid=True), ForeignKey("questions.id"), nullable=True)
    element_type = Column(String, nullable=False, default="question")
    status = Column(
        Enum(ElementStatus, values_callable=_enum_values),
        nullable=False,
        default=ElementStatus.active,
    )
    order_index = Column(Integer, nullable=False, default=0)
