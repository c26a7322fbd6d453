from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from markbook.core.config.settings import get_settings
from markbook.crud.activities import get_activity
from markbook.crud.answers import get_answer, get_answers, unknown_question_ids, upsert_answer
from markbook.crud.courses import get_question
from markbook.crud.users import get_class_teachers
from markbook.db.session import get_db
from markbook.models.activity import ActivityStatus, CurrentActivity
from markbook.models.answer import Outcome
from markbook.schemas.answer_schemas import MarkAnswersRequest, SaveAnswersRequest
from markbook.services.email import create_submission_email, send_email
from markbook.services.file_storage import (
    FileStorage,
    FileTooLarge,
    FileTypeNotAllowed,
    StorageError,
    get_file_storage,
    guess_mime_type,
)
from markbook.services.workflow import (
    EDITABLE_STATUSES,
    FINAL_MARK_STATUSES,
    WorkflowError,
    finish_marking,
    start_work,
    submit,
)
from markbook.utils.helpers import get_utc_now, parse_question_ids, sanitize_filename
from markbook.utils.responses import missing_fields, not_found, send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/answers", tags=["answers"])

SAVE_STATUSES = ("DRAFT", "INPROGRESS", "SUBMITTED")


def _question_ids(keys) -> List[int]:
    try:
        return parse_question_ids(keys)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question ids must be integers")


def _require_editable(activity: CurrentActivity) -> None:
    current = ActivityStatus(activity.status)
    if current not in EDITABLE_STATUSES:
        raise WorkflowError(current, current, f"Activity is read-only while {current.value}")


def _clean_references(urls: List[Any]) -> List[str]:
    return [str(url).strip() for url in urls or [] if str(url).strip()]


def normalise_outcome(value: Optional[str]) -> Outcome:
    if value is not None and str(value).strip().upper() == Outcome.ACHIEVED.value:
        return Outcome.ACHIEVED
    return Outcome.NOT_ACHIEVED


def _notify_teachers(db: Session, activity: CurrentActivity, resubmission: bool) -> None:
    """Email the class teachers that work is ready; a failure here never fails the save."""
    try:
        student = activity.student
        recipients = [teacher.email for teacher in get_class_teachers(db, student.class_code)]
        if not recipients:
            logger.warning(f"No teachers to notify for activity {activity.id}")
            return
        html = create_submission_email(
            student.user_name,
            student.class_code,
            activity.course.course_name,
            activity.unit.unit_name,
            resubmission,
        )
        kind = "Resubmission" if resubmission else "Submission"
        send_email(recipients, f"{kind} ready for marking - {student.user_name}", html)
    except Exception:
        logger.error(f"Failed to send submission notification for activity {activity.id}", exc_info=True)


def _download_url(activity_id: int, student_id: int, question_id: int, file_id: str) -> str:
    settings = get_settings()
    query = urlencode({"activityId": activity_id, "studentId": student_id, "questionId": question_id})
    return f"{settings.API_BASE_URL.rstrip('/')}{settings.API_V1_PREFIX}/answers/files/{file_id}?{query}"


def _find_upload(uploads: List[Dict[str, Any]], file_id: str) -> Optional[Dict[str, Any]]:
    for entry in uploads or []:
        if entry.get("id") == file_id:
            return entry
    return None


def _drop_upload_entry(db: Session, activity_id: int, student_id: int, question_id: int, file_id: str) -> None:
    """Take back a committed fileUploads entry whose file never reached its final path."""
    try:
        answer = get_answer(db, activity_id, student_id, question_id)
        if answer is not None:
            answer.file_uploads = [entry for entry in answer.file_uploads or [] if entry.get("id") != file_id]
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not remove upload entry {file_id} from question {question_id}: {str(e)}", exc_info=True)


@router.post("/save")
def save_answers(request: SaveAnswersRequest, db: Session = Depends(get_db)):
    requested = (request.status or "DRAFT").strip().upper()
    if requested not in SAVE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status. Use DRAFT, INPROGRESS or SUBMITTED",
        )
    submitting = requested == "SUBMITTED"

    answers = dict(zip(_question_ids(request.answers.keys()), request.answers.values()))
    references = dict(zip(_question_ids(request.references.keys()), request.references.values()))
    question_ids = sorted(set(answers) | set(references))
    if not question_ids:
        raise missing_fields(["answers"])

    activity = get_activity(db, request.activity_id, request.student_id)
    if not activity:
        raise not_found("Activity")
    _require_editable(activity)

    unknown = unknown_question_ids(db, activity.unit_id, question_ids)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Questions {', '.join(str(qid) for qid in unknown)} do not belong to this unit",
        )

    now = get_utc_now()
    try:
        if submitting:
            previous = ActivityStatus(activity.status)
            submit(activity, now)
        else:
            start_work(activity, now)
        # rows carry the submission status, drafts are persisted as INPROGRESS
        row_status = ActivityStatus(activity.status) if submitting else ActivityStatus.INPROGRESS

        for question_id in question_ids:
            values: Dict[str, Any] = {"status": row_status}
            if question_id in answers:
                values["answer"] = answers[question_id]
            if question_id in references:
                values["references"] = _clean_references(references[question_id])
            upsert_answer(db, activity.id, activity.student_id, question_id, values)
        db.commit()
    except Exception:
        db.rollback()
        raise

    activity_status = ActivityStatus(activity.status)
    logger.info(
        f"Saved {len(question_ids)} answers for activity {activity.id} "
        f"student {activity.student_id} as {row_status.value}"
    )

    if submitting:
        _notify_teachers(db, activity, resubmission=previous == ActivityStatus.REDOING)

    return send_response({
        "message": "Answers saved",
        "status": row_status.value,
        "saved": len(question_ids),
        "activityStatus": activity_status.value,
    })


@router.post("/mark")
def mark_answers(request: MarkAnswersRequest, db: Session = Depends(get_db)):
    if request.final_status not in {s.value for s in FINAL_MARK_STATUSES}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid finalStatus. Use PASSED or REDOING")
    final_status = ActivityStatus(request.final_status)
    marks = dict(zip(_question_ids(request.marks.keys()), request.marks.values()))
    max_comment = get_settings().MARK_COMMENT_MAX_LENGTH

    activity = get_activity(db, request.activity_id, request.student_id)
    if not activity:
        raise not_found("Activity")

    now = get_utc_now()
    updated = 0
    missing_questions = []
    try:
        finish_marking(activity, final_status, now)
        if request.assessor_comment is not None:
            activity.assessor_comment = request.assessor_comment.strip()

        for question_id, payload in marks.items():
            answer = get_answer(db, activity.id, activity.student_id, question_id)
            if answer is None:
                missing_questions.append(question_id)
                continue
            answer.outcome = normalise_outcome(payload.outcome)
            answer.comment = (payload.comment or "").strip()[:max_comment]
            answer.status = final_status
            answer.updated_at = now
            updated += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Marked activity {activity.id}: {updated} answers, final status {final_status.value}")

    response = {
        "message": "Marking saved",
        "updated": updated,
        "finalStatus": final_status.value,
    }
    if missing_questions:
        response["missingQuestions"] = missing_questions
    return send_response(response)


@router.get("")
def get_saved_answers(
    activity_id: Optional[int] = Query(default=None, alias="activityId"),
    student_id: Optional[int] = Query(default=None, alias="studentId"),
    db: Session = Depends(get_db),
):
    missing = [name for name, value in (("activityId", activity_id), ("studentId", student_id)) if value is None]
    if missing:
        raise missing_fields(missing)

    answers, references, file_uploads, outcomes, comments = {}, {}, {}, {}, {}
    answer_status = ActivityStatus.INPROGRESS.value
    for row in get_answers(db, activity_id, student_id):
        answers[row.question_id] = row.answer
        references[row.question_id] = row.references or []
        file_uploads[row.question_id] = row.file_uploads or []
        outcomes[row.question_id] = row.outcome.value if row.outcome else Outcome.NOT_ACHIEVED.value
        comments[row.question_id] = row.comment or ""
        if row.status:
            answer_status = ActivityStatus(row.status).value

    activity = get_activity(db, activity_id, student_id)
    return send_response({"data": {
        "answers": answers,
        "references": references,
        "fileUploads": file_uploads,
        "status": answer_status,
        "outcomes": outcomes,
        "comments": comments,
        "assessorComment": (activity.assessor_comment or "") if activity else "",
    }})


@router.post("/files")
async def upload_answer_file(
    activity_id: int = Form(..., alias="activityId"),
    student_id: int = Form(..., alias="studentId"),
    question_id: int = Form(..., alias="questionId"),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
):
    question = get_question(db, question_id)
    if not question:
        raise not_found("Question")
    if not question.upload_permitted:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Uploads are not permitted for this question")

    original_name = sanitize_filename(file.filename)
    try:
        extension = storage.validate(original_name)
        content = await storage.read_upload(file)
    except FileTypeNotAllowed as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    except FileTooLarge as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))

    activity = get_activity(db, activity_id, student_id)
    if not activity:
        raise not_found("Activity")
    _require_editable(activity)
    if question.unit_id != activity.unit_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question does not belong to this unit")

    try:
        staged = storage.stage(student_id, extension, content)
    except StorageError as e:
        logger.error(f"Upload for activity {activity_id} failed: {str(e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    entry = {
        "id": staged.file_id,
        "originalName": original_name,
        "mimeType": guess_mime_type(original_name, file.content_type),
        "size": staged.size,
        "uploadedAt": get_utc_now().isoformat(),
        "path": staged.relative_path,
    }
    try:
        answer = get_answer(db, activity_id, student_id, question_id)
        uploads = list(answer.file_uploads or []) if answer else []
        uploads.append(entry)
        values = {"file_uploads": uploads}
        if answer is None:
            values["status"] = ActivityStatus.INPROGRESS
        upsert_answer(db, activity_id, student_id, question_id, values)
        db.commit()
    except Exception:
        db.rollback()
        staged.discard()
        raise

    try:
        staged.promote()
    except OSError as e:
        logger.error(f"Could not move {staged.relative_path} into place: {str(e)}", exc_info=True)
        _drop_upload_entry(db, activity_id, student_id, question_id, staged.file_id)
        staged.discard()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save uploaded file")
    logger.info(f"Stored {staged.relative_path} ({staged.size} bytes) for question {question_id}")

    return send_response({
        "message": "File uploaded",
        "file": {**entry, "url": _download_url(activity_id, student_id, question_id, staged.file_id)},
        "fileUploads": uploads,
    })


@router.get("/files/{file_id}")
def download_answer_file(
    file_id: str,
    activity_id: int = Query(..., alias="activityId"),
    student_id: int = Query(..., alias="studentId"),
    question_id: int = Query(..., alias="questionId"),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
):
    answer = get_answer(db, activity_id, student_id, question_id)
    if not answer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Answer record not found")
    entry = _find_upload(answer.file_uploads, file_id)
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found for this answer")
    if not storage.exists(student_id, file_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file missing")

    return FileResponse(
        storage.path_for(student_id, file_id),
        media_type=entry.get("mimeType") or guess_mime_type(file_id),
        filename=entry.get("originalName") or file_id,
        content_disposition_type="inline",
    )


@router.delete("/files/{file_id}")
def delete_answer_file(
    file_id: str,
    activity_id: int = Query(..., alias="activityId"),
    student_id: int = Query(..., alias="studentId"),
    question_id: int = Query(..., alias="questionId"),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
):
    answer = get_answer(db, activity_id, student_id, question_id)
    if not answer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Answer record not found")
    if not _find_upload(answer.file_uploads, file_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found for this answer")

    remaining = [entry for entry in answer.file_uploads if entry.get("id") != file_id]
    try:
        answer.file_uploads = remaining
        answer.updated_at = get_utc_now()
        db.commit()
    except Exception:
        db.rollback()
        raise

    if not storage.delete_file(student_id, file_id):
        logger.warning(f"Stored file {file_id} for student {student_id} was already gone")
    logger.info(f"Removed file {file_id} from question {question_id} of activity {activity_id}")

    return send_response({"message": "File removed", "fileUploads": remaining})
