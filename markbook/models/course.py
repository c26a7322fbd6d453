from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from markbook.db.base import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True)
    course_name = Column(String(255), nullable=False)
    course_code = Column(String(64), nullable=True)

    units = relationship("Unit", back_populates="course", cascade="all, delete")
    activities = relationship("CurrentActivity", back_populates="course")
