from .user import User, UserRole, STAFF_ROLES
from .course import Course
from .unit import Unit
from .question import Question
from .activity import CurrentActivity, ActivityStatus
from .answer import Answer, Outcome

__all__ = [
    "User", "UserRole", "STAFF_ROLES",
    "Course",
    "Unit",
    "Question",
    "CurrentActivity", "ActivityStatus",
    "Answer", "Outcome",
]
