from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
import enum

from markbook.db.base import Base


class ActivityStatus(str, enum.Enum):
    NOTSET = "NOTSET"
    INPROGRESS = "INPROGRESS"
    SUBMITTED = "SUBMITTED"
    INMARKING = "INMARKING"
    REDOING = "REDOING"
    RESUBMITTED = "RESUBMITTED"
    INREMARKING = "INREMARKING"
    PASSED = "PASSED"
    NOTPASSED = "NOTPASSED"
    DISCONTINUED = "DISCONTINUED"


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class CurrentActivity(Base):
    """One assignment of a unit to a student."""

    __tablename__ = "current_activities"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    assessor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(
        Enum(ActivityStatus, name="activity_status", values_callable=enum_values),
        nullable=False,
        default=ActivityStatus.NOTSET,
    )
    date_set = Column(DateTime, nullable=True)
    date_submitted = Column(DateTime, nullable=True)
    date_marked = Column(DateTime, nullable=True)
    date_resubmitted = Column(DateTime, nullable=True)
    date_complete = Column(DateTime, nullable=True)
    assessor_comment = Column(Text, nullable=True)

    student = relationship("User", back_populates="activities", foreign_keys=[student_id])
    assessor = relationship("User", foreign_keys=[assessor_id])
    course = relationship("Course", back_populates="activities")
    unit = relationship("Unit", back_populates="activities")
    answers = relationship("Answer", back_populates="activity", cascade="all, delete")
