from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from markbook.db.base import Base


class Unit(Base):
    __tablename__ = "units"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_name = Column(String(255), nullable=False)
    unit_code = Column(String(64), nullable=True)

    course = relationship("Course", back_populates="units")
    questions = relationship(
        "Question",
        back_populates="unit",
        cascade="all, delete",
        order_by="Question.id",
    )
    activities = relationship("CurrentActivity", back_populates="unit")
