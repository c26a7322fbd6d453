from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
import logging

from markbook.crud import courses as crud
from markbook.db.session import get_db
from markbook.models.unit import Unit
from markbook.schemas.course_schemas import UnitOut, UnitRequest
from markbook.utils.responses import not_found, send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/units", tags=["units"])


def _unit_data(db: Session, request: UnitRequest) -> dict:
    if not crud.get_course(db, request.course_id):
        raise not_found("Course")
    unit_name = request.unit_name.strip()
    if not unit_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unit name cannot be empty")
    return {
        "course_id": request.course_id,
        "unit_name": unit_name,
        "unit_code": (request.unit_code or "").strip() or None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_unit(request: UnitRequest, db: Session = Depends(get_db)):
    unit = crud.create_entity(db, Unit, _unit_data(db, request))
    logger.info(f"Created unit {unit.id} in course {unit.course_id}")
    return send_response({"message": "Unit created", "id": unit.id}, status.HTTP_201_CREATED)


@router.get("")
def get_units(
    unit_id: Optional[int] = Query(default=None, alias="id"),
    course_id: Optional[int] = Query(default=None, alias="courseId"),
    db: Session = Depends(get_db),
):
    units = crud.get_units(db, unit_id=unit_id, course_id=course_id)
    return send_response({"data": [UnitOut.model_validate(unit).dump() for unit in units]})


@router.get("/{unit_id}")
def get_unit(unit_id: int, db: Session = Depends(get_db)):
    unit = crud.get_unit(db, unit_id)
    if not unit:
        raise not_found("Unit")
    return send_response({"data": UnitOut.model_validate(unit).dump()})


@router.put("/{unit_id}")
def update_unit(unit_id: int, request: UnitRequest, db: Session = Depends(get_db)):
    unit = crud.get_unit(db, unit_id)
    if not unit:
        raise not_found("Unit")
    unit = crud.update_entity(db, unit, _unit_data(db, request))
    logger.info(f"Updated unit {unit.id}")
    return send_response({"message": "Unit updated", "data": UnitOut.model_validate(unit).dump()})


@router.delete("/{unit_id}")
def delete_unit(unit_id: int, db: Session = Depends(get_db)):
    unit = crud.get_unit(db, unit_id)
    if not unit:
        raise not_found("Unit")
    if crud.has_activities(db, unit_id=unit_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Unit has assigned activities and cannot be deleted",
        )
    crud.delete_entity(db, unit)
    logger.info(f"Deleted unit {unit_id}")
    return send_response("Unit deleted")
