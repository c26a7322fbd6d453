from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
import logging

from markbook.crud import courses as crud
from markbook.db.session import get_db
from markbook.models.question import Question
from markbook.schemas.course_schemas import QuestionOut, QuestionRequest
from markbook.utils.responses import missing_fields, not_found, send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/questions", tags=["questions"])


def _question_data(db: Session, request: QuestionRequest) -> dict:
    if not request.question or not request.question.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question text cannot be empty")
    unit = crud.get_unit(db, request.unit_id)
    if not unit:
        raise not_found("Unit")
    if unit.course_id != request.course_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unit does not belong to the given course",
        )
    return {
        "course_id": request.course_id,
        "unit_id": request.unit_id,
        "question": request.question,
        "question_ref": (request.question_ref or "").strip() or None,
        "upload_permitted": bool(request.upload_permitted),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_question(request: QuestionRequest, db: Session = Depends(get_db)):
    question = crud.create_entity(db, Question, _question_data(db, request))
    logger.info(f"Created question {question.id} in unit {question.unit_id}")
    return send_response({"message": "Question created", "id": question.id}, status.HTTP_201_CREATED)


@router.get("")
def get_questions(
    unit_id: Optional[int] = Query(default=None, alias="unitId"),
    course_id: Optional[int] = Query(default=None, alias="courseId"),
    db: Session = Depends(get_db),
):
    if unit_id is None:
        raise missing_fields(["unitId"])
    questions = crud.get_questions(db, unit_id, course_id)
    return send_response({"data": [QuestionOut.model_validate(q).dump() for q in questions]})


@router.get("/{question_id}")
def get_question(question_id: int, db: Session = Depends(get_db)):
    question = crud.get_question(db, question_id)
    if not question:
        raise not_found("Question")
    return send_response({"data": QuestionOut.model_validate(question).dump()})


@router.put("/{question_id}")
def update_question(question_id: int, request: QuestionRequest, db: Session = Depends(get_db)):
    question = crud.get_question(db, question_id)
    if not question:
        raise not_found("Question")
    question = crud.update_entity(db, question, _question_data(db, request))
    logger.info(f"Updated question {question.id}")
    return send_response({"message": "Question updated", "data": QuestionOut.model_validate(question).dump()})


@router.delete("/{question_id}")
def delete_question(question_id: int, db: Session = Depends(get_db)):
    question = crud.get_question(db, question_id)
    if not question:
        raise not_found("Question")
    crud.delete_entity(db, question)
    logger.info(f"Deleted question {question_id}")
    return send_response("Question deleted")
