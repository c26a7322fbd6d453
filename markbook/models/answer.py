from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from markbook.db.base import Base
from markbook.models.activity import ActivityStatus, enum_values


class Outcome(str, enum.Enum):
    ACHIEVED = "ACHIEVED"
    NOT_ACHIEVED = "NOT ACHIEVED"


class Answer(Base):
    __tablename__ = "answers"
    # one answer row per question per attempt
    __table_args__ = (
        UniqueConstraint("activity_id", "question_id", "student_id", name="uq_answer_attempt"),
    )

    id = Column(Integer, primary_key=True)
    activity_id = Column(Integer, ForeignKey("current_activities.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    answer = Column(JSON, nullable=True)  # rich-text document
    references = Column(JSON, nullable=False, default=list)
    file_uploads = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(ActivityStatus, name="answer_status", values_callable=enum_values),
        nullable=False,
        default=ActivityStatus.INPROGRESS,
    )
    outcome = Column(Enum(Outcome, name="answer_outcome", values_callable=enum_values), nullable=True)
    comment = Column(Text, nullable=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    activity = relationship("CurrentActivity", back_populates="answers")
    student = relationship("User", back_populates="answers")
