from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from markbook.db.base import Base


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    question_ref = Column(String(64), nullable=True)
    question = Column(Text, nullable=False)  # rich text (HTML)
    upload_permitted = Column(Boolean, nullable=False, default=False)

    unit = relationship("Unit", back_populates="questions")
