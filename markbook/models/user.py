from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from markbook.db.base import Base


class UserRole(enum.IntEnum):
    STUDENT = 0
    TEACHER = 2
    ADMIN = 3


STAFF_ROLES = (UserRole.TEACHER, UserRole.ADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=False)
    class_code = Column(String(64), nullable=True, index=True)
    # 0=student, 2=teacher, 3=admin
    status = Column(Integer, nullable=False, default=UserRole.STUDENT)
    avatar = Column(Text, nullable=True)
    change_login = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    activities = relationship(
        "CurrentActivity",
        back_populates="student",
        foreign_keys="CurrentActivity.student_id",
        cascade="all, delete",
    )
    answers = relationship("Answer", back_populates="student", cascade="all, delete")

    @property
    def role(self) -> UserRole:
        return UserRole(self.status)
