from typing import List, Optional

from sqlalchemy.orm import Session

from markbook.models.activity import CurrentActivity
from markbook.models.course import Course
from markbook.models.question import Question
from markbook.models.unit import Unit


def get_course(db: Session, course_id: int) -> Optional[Course]:
    return db.query(Course).filter(Course.id == course_id).first()


def get_courses(db: Session) -> List[Course]:
    return db.query(Course).order_by(Course.course_name).all()


def get_unit(db: Session, unit_id: int) -> Optional[Unit]:
    return db.query(Unit).filter(Unit.id == unit_id).first()


def get_units(db: Session, unit_id: Optional[int] = None, course_id: Optional[int] = None) -> List[Unit]:
    query = db.query(Unit)
    if unit_id:
        query = query.filter(Unit.id == unit_id)
    if course_id:
        query = query.filter(Unit.course_id == course_id)
    return query.order_by(Unit.id).all()


def get_question(db: Session, question_id: int) -> Optional[Question]:
    return db.query(Question).filter(Question.id == question_id).first()


def get_questions(db: Session, unit_id: int, course_id: Optional[int] = None) -> List[Question]:
    query = db.query(Question).filter(Question.unit_id == unit_id)
    if course_id is not None:
        query = query.filter(Question.course_id == course_id)
    return query.order_by(Question.id.asc()).all()


def create_entity(db: Session, model, data: dict):
    entity = model(**data)
    db.add(entity)
    db.commit()
    db.refresh(entity)
    return entity


def update_entity(db: Session, entity, data: dict):
    for key, value in data.items():
        setattr(entity, key, value)
    db.commit()
    db.refresh(entity)
    return entity


def has_activities(db: Session, course_id: Optional[int] = None, unit_id: Optional[int] = None) -> bool:
    query = db.query(CurrentActivity.id)
    if course_id is not None:
        query = query.filter(CurrentActivity.course_id == course_id)
    if unit_id is not None:
        query = query.filter(CurrentActivity.unit_id == unit_id)
    return query.first() is not None


def delete_entity(db: Session, entity) -> None:
    db.delete(entity)
    db.commit()
