from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from markbook.crud import courses as crud
from markbook.db.session import get_db
from markbook.models.course import Course
from markbook.schemas.course_schemas import CourseOut, CourseRequest
from markbook.utils.responses import not_found, send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


def _course_out(course: Course) -> dict:
    return CourseOut.model_validate(course).dump()


def _clean(request: CourseRequest) -> dict:
    course_name = request.course_name.strip()
    if not course_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course name cannot be empty")
    return {
        "course_name": course_name,
        "course_code": (request.course_code or "").strip() or None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_course(request: CourseRequest, db: Session = Depends(get_db)):
    course = crud.create_entity(db, Course, _clean(request))
    logger.info(f"Created course {course.id} ({course.course_name})")
    return send_response({"message": "Course created", "id": course.id}, status.HTTP_201_CREATED)


@router.get("")
def get_courses(db: Session = Depends(get_db)):
    return send_response({"data": [_course_out(course) for course in crud.get_courses(db)]})


@router.get("/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db)):
    course = crud.get_course(db, course_id)
    if not course:
        raise not_found("Course")
    return send_response({"data": _course_out(course)})


@router.put("/{course_id}")
def update_course(course_id: int, request: CourseRequest, db: Session = Depends(get_db)):
    course = crud.get_course(db, course_id)
    if not course:
        raise not_found("Course")
    course = crud.update_entity(db, course, _clean(request))
    logger.info(f"Updated course {course.id}")
    return send_response({"message": "Course updated", "data": _course_out(course)})


@router.delete("/{course_id}")
def delete_course(course_id: int, db: Session = Depends(get_db)):
    course = crud.get_course(db, course_id)
    if not course:
        raise not_found("Course")
    if crud.has_activities(db, course_id=course_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Course has assigned activities and cannot be deleted",
        )
    crud.delete_entity(db, course)
    logger.info(f"Deleted course {course_id}")
    return send_response("Course deleted")
