from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from markbook.models.activity import ActivityStatus
from markbook.models.answer import Answer
from markbook.models.question import Question
from markbook.utils.helpers import get_utc_now


def get_answer(db: Session, activity_id: int, student_id: int, question_id: int) -> Optional[Answer]:
    return (
        db.query(Answer)
        .filter(
            Answer.activity_id == activity_id,
            Answer.student_id == student_id,
            Answer.question_id == question_id,
        )
        .first()
    )


def get_answers(db: Session, activity_id: int, student_id: int) -> List[Answer]:
    return (
        db.query(Answer)
        .filter(Answer.activity_id == activity_id, Answer.student_id == student_id)
        .order_by(Answer.question_id)
        .all()
    )


def unknown_question_ids(db: Session, unit_id: int, question_ids: List[int]) -> List[int]:
    """Ids from ``question_ids`` that are not questions of the unit."""
    if not question_ids:
        return []
    known = {
        row[0]
        for row in db.query(Question.id)
        .filter(Question.unit_id == unit_id, Question.id.in_(question_ids))
        .all()
    }
    return [qid for qid in question_ids if qid not in known]


def upsert_answer(
    db: Session,
    activity_id: int,
    student_id: int,
    question_id: int,
    values: Dict[str, Any],
) -> Answer:
    """
    Create or update the answer row for one question of an attempt.

    The caller owns the transaction; nothing is committed here.
    """
    answer = get_answer(db, activity_id, student_id, question_id)
    if answer is None:
        answer = Answer(
            activity_id=activity_id,
            student_id=student_id,
            question_id=question_id,
            answer=None,
            references=[],
            file_uploads=[],
            status=ActivityStatus.INPROGRESS,
        )
        db.add(answer)
    for key, value in values.items():
        setattr(answer, key, value)
    answer.updated_at = get_utc_now()
    return answer
