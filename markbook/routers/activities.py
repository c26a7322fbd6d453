from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
import logging

from markbook.crud import activities as crud
from markbook.crud.courses import get_course, get_unit
from markbook.crud.users import get_students_in_class, get_user
from markbook.db.session import get_db
from markbook.models.activity import ActivityStatus, CurrentActivity
from markbook.schemas.activity_schemas import (
    DATE_FIELDS,
    ActivityCreateRequest,
    ActivityOut,
    ActivityUpdateRequest,
    AssessmentOut,
    AssignUnitRequest,
)
from markbook.services.workflow import apply_transition
from markbook.utils.helpers import get_utc_now
from markbook.utils.responses import missing_fields, not_found, send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activities", tags=["activities"])

CREATE_STATUSES = frozenset({ActivityStatus.NOTSET, ActivityStatus.INPROGRESS})


def _activity_out(activity: CurrentActivity) -> dict:
    return ActivityOut.model_validate(activity).dump()


def _check_references(
    db: Session,
    student_id: Optional[int] = None,
    course_id: Optional[int] = None,
    unit_id: Optional[int] = None,
) -> None:
    """Only the ids that are supplied are looked up."""
    if student_id is not None and not get_user(db, student_id):
        raise not_found("Student")
    if course_id is not None and not get_course(db, course_id):
        raise not_found("Course")
    if unit_id is not None and not get_unit(db, unit_id):
        raise not_found("Unit")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_activity(request: ActivityCreateRequest, db: Session = Depends(get_db)):
    if request.status not in CREATE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New activities must be NOTSET or INPROGRESS",
        )
    _check_references(db, request.student_id, request.course_id, request.unit_id)

    activity_data = request.model_dump()
    if request.status == ActivityStatus.INPROGRESS and activity_data["date_set"] is None:
        activity_data["date_set"] = get_utc_now()
    activity = crud.create_activity(db, activity_data)
    logger.info(f"Created activity {activity.id} for student {activity.student_id} ({activity.status.value})")
    return send_response({"message": "Activity created", "id": activity.id}, status.HTTP_201_CREATED)


@router.get("")
def get_activities(
    activity_id: Optional[int] = Query(default=None, alias="id"),
    student_id: Optional[int] = Query(default=None, alias="studentId"),
    course_id: Optional[int] = Query(default=None, alias="courseId"),
    unit_id: Optional[int] = Query(default=None, alias="unitId"),
    activity_status: Optional[ActivityStatus] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    activities = crud.get_activities(
        db,
        id=activity_id,
        student_id=student_id,
        course_id=course_id,
        unit_id=unit_id,
        status=activity_status,
    )
    return send_response({"data": [_activity_out(activity) for activity in activities]})


@router.get("/student/{student_id}")
def get_assessments(student_id: int, db: Session = Depends(get_db)):
    rows = crud.get_student_assessments(db, student_id)
    data = []
    for activity, course_name, unit_name in rows:
        item = ActivityOut.model_validate(activity).model_dump()
        data.append(AssessmentOut(**item, course_name=course_name, unit_name=unit_name).dump())
    return send_response({"data": data})


@router.post("/assign-class")
def assign_unit_to_class(request: AssignUnitRequest, db: Session = Depends(get_db)):
    missing = [
        name
        for name, value in (
            ("classCode", (request.class_code or "").strip()),
            ("courseId", request.course_id),
            ("unitId", request.unit_id),
            ("assessorId", request.assessor_id),
        )
        if not value
    ]
    if missing:
        raise missing_fields(missing)

    class_code = request.class_code.strip()
    students = get_students_in_class(db, class_code)
    if not students:
        return send_response({"message": "No students found for this class", "inserted": 0, "skipped": 0})

    inserted, skipped = crud.assign_unit_to_students(
        db, students, request.course_id, request.unit_id, request.assessor_id
    )
    logger.info(
        f"Assigned unit {request.unit_id} to class {class_code}: {inserted} inserted, {skipped} skipped"
    )
    return send_response({
        "message": f"Unit assigned to {inserted} students",
        "inserted": inserted,
        "skipped": skipped,
    })


@router.get("/{activity_id}")
def get_activity(activity_id: int, db: Session = Depends(get_db)):
    activity = crud.get_activity(db, activity_id)
    if not activity:
        raise not_found("Activity")
    return send_response({"data": _activity_out(activity)})


@router.patch("/{activity_id}")
def update_activity(activity_id: int, request: ActivityUpdateRequest, db: Session = Depends(get_db)):
    activity = crud.get_activity(db, activity_id)
    if not activity:
        raise not_found("Activity")

    changes = request.model_dump(include=request.model_fields_set)
    new_status = changes.pop("status", None)
    for key in ("student_id", "course_id", "unit_id"):
        if changes.get(key, 0) is None:
            changes.pop(key)
    _check_references(db, changes.get("student_id"), changes.get("course_id"), changes.get("unit_id"))
    supplied_dates = frozenset(name for name in DATE_FIELDS if name in changes)

    # status first so a rejected transition leaves the row untouched
    if new_status is not None:
        previous = apply_transition(activity, new_status, supplied_dates=supplied_dates)
        if previous != activity.status:
            logger.info(f"Activity {activity.id}: {previous.value} -> {activity.status.value}")

    for key, value in changes.items():
        setattr(activity, key, value)

    db.commit()
    db.refresh(activity)
    return send_response({"message": "Activity updated", "data": _activity_out(activity)})


@router.delete("/{activity_id}")
def delete_activity(activity_id: int, db: Session = Depends(get_db)):
    activity = crud.get_activity(db, activity_id)
    if not activity:
        raise not_found("Activity")
    crud.delete_activity(db, activity)
    logger.info(f"Deleted activity {activity_id}")
    return send_response("Activity deleted")
