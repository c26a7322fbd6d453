from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from markbook.models.activity import ActivityStatus, CurrentActivity
from markbook.models.course import Course
from markbook.models.unit import Unit
from markbook.models.user import User
from markbook.utils.helpers import get_utc_now

logger = logging.getLogger(__name__)


def get_activity(db: Session, activity_id: int, student_id: Optional[int] = None) -> Optional[CurrentActivity]:
    query = db.query(CurrentActivity).filter(CurrentActivity.id == activity_id)
    if student_id is not None:
        query = query.filter(CurrentActivity.student_id == student_id)
    return query.first()


def get_activities(db: Session, **filters) -> List[CurrentActivity]:
    query = db.query(CurrentActivity)
    for column in ("id", "student_id", "course_id", "unit_id", "status"):
        value = filters.get(column)
        if value is not None and value != "":
            query = query.filter(getattr(CurrentActivity, column) == value)
    return query.order_by(CurrentActivity.id.desc()).all()


def get_student_assessments(db: Session, student_id: int) -> List[Tuple[CurrentActivity, str, str]]:
    return (
        db.query(CurrentActivity, Course.course_name, Unit.unit_name)
        .join(Course, CurrentActivity.course_id == Course.id)
        .join(Unit, CurrentActivity.unit_id == Unit.id)
        .filter(CurrentActivity.student_id == student_id)
        .order_by(CurrentActivity.id)
        .all()
    )


def has_open_assignment(db: Session, student_id: int, course_id: int, unit_id: int) -> bool:
    """True when the student already has this unit INPROGRESS."""
    return (
        db.query(CurrentActivity.id)
        .filter(
            CurrentActivity.student_id == student_id,
            CurrentActivity.course_id == course_id,
            CurrentActivity.unit_id == unit_id,
            CurrentActivity.status == ActivityStatus.INPROGRESS,
        )
        .first()
        is not None
    )


def create_activity(db: Session, activity_data: dict) -> CurrentActivity:
    activity = CurrentActivity(**activity_data)
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


def assign_unit_to_students(
    db: Session,
    students: List[User],
    course_id: int,
    unit_id: int,
    assessor_id: int,
) -> Tuple[int, int]:
    """
    Give every student an INPROGRESS activity for the unit.

    Runs as one transaction; each insert gets its own savepoint so a failing
    row is counted as skipped instead of aborting the batch.

    Returns:
        Tuple of (inserted, skipped)
    """
    inserted = 0
    skipped = 0
    now = get_utc_now()
    try:
        for student in students:
            if has_open_assignment(db, student.id, course_id, unit_id):
                skipped += 1
                continue
            try:
                with db.begin_nested():
                    db.add(CurrentActivity(
                        student_id=student.id,
                        course_id=course_id,
                        unit_id=unit_id,
                        assessor_id=assessor_id,
                        status=ActivityStatus.INPROGRESS,
                        date_set=now,
                    ))
                inserted += 1
            except SQLAlchemyError as e:
                logger.warning(f"Assign skipped student {student.id}: {str(e)}")
                skipped += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    return inserted, skipped


def delete_activity(db: Session, activity: CurrentActivity) -> None:
    db.delete(activity)
    db.commit()
