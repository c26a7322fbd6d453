from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from markbook.core.config.settings import get_settings
from markbook.core.security.auth import create_hashed_password, get_current_user
from markbook.crud import users as crud
from markbook.db.session import get_db
from markbook.models.user import User, UserRole
from markbook.schemas.user_schemas import (
    BulkUploadRequest,
    CreateUserRequest,
    PasswordResetRequest,
    UpdateSelfRequest,
    UpdateUserRequest,
    UserOut,
)
from markbook.services.email import (
    create_password_reset_request_email,
    create_welcome_email,
    send_email,
)
from markbook.utils.csv_import import CSVFormatError, parse_roster
from markbook.utils.helpers import get_utc_now
from markbook.utils.responses import not_found, send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

RESET_ACK = "Password reset request has been sent to your teacher. Please see them during lesson time."


def _user_out(user: User) -> dict:
    return UserOut.model_validate(user).dump()


def _ensure_email_free(db: Session, email: str, user_id: Optional[int] = None) -> None:
    existing = crud.get_user_by_email(db, email)
    if existing and existing.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Email {email} is already registered",
        )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(request: CreateUserRequest, db: Session = Depends(get_db)):
    if not request.password.strip() or not request.user_name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing password or userName")
    _ensure_email_free(db, request.email)

    user = crud.create_user(db, {
        "email": request.email,
        "password": request.password,
        "user_name": request.user_name.strip(),
        "class_code": request.class_code,
        "status": int(request.status),
        "avatar": request.avatar,
    })
    logger.info(f"Created user {user.id} ({user.email}) with role {user.role.name}")

    response = {"message": "User created", "id": user.id}
    if request.send_welcome_email:
        html = create_welcome_email(user.user_name, user.email, request.password, get_settings().API_BASE_URL)
        # delivery problems never undo the account
        response["emailSent"] = send_email(user.email, "Welcome to Markbook - Your Account Details", html)
    return send_response(response, status.HTTP_201_CREATED)


@router.get("")
def get_users(
    user_id: Optional[int] = Query(default=None, alias="id"),
    class_code: Optional[str] = Query(default=None, alias="classCode"),
    user_status: Optional[UserRole] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    users = crud.get_users(
        db,
        user_id=user_id,
        class_code=class_code,
        status=int(user_status) if user_status is not None else None,
    )
    return send_response({"data": [_user_out(user) for user in users]})


@router.get("/class-codes")
def get_class_codes(db: Session = Depends(get_db)):
    return send_response({"data": crud.get_class_codes(db)})


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return send_response({"user": _user_out(current_user)})


@router.patch("/me")
def update_self(
    request: UpdateSelfRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = {}
    if request.email:
        _ensure_email_free(db, request.email, current_user.id)
        changes["email"] = request.email
    if request.password and request.password.strip():
        changes["password"] = request.password
        # a password the user chose themselves ends the forced reset
        changes["change_login"] = False
    if request.avatar is not None:
        changes["avatar"] = request.avatar

    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    user = crud.update_user(db, current_user, changes)
    logger.info(f"User {user.id} updated their profile ({', '.join(sorted(changes))})")
    return send_response({"message": "Profile updated", "user": _user_out(user)})


@router.post("/bulk-upload")
def bulk_upload_users(request: BulkUploadRequest, db: Session = Depends(get_db)):
    for field, value in (
        ("classCode", request.class_code),
        ("defaultPassword", request.default_password),
        ("csvContent", request.csv_content),
    ):
        if value is None or not value.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing {field}")

    try:
        parsed = parse_roster(request.csv_content, request.class_code)
    except CSVFormatError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    password_hash = create_hashed_password(request.default_password.strip())
    inserted = 0
    errors = list(parsed.errors)

    try:
        for row in parsed.rows:
            if crud.get_user_by_email(db, row.email):
                errors.append(f"Row {row.line_number}: email {row.email} is already registered")
                continue
            try:
                with db.begin_nested():
                    db.add(User(
                        email=row.email.lower(),
                        password_hash=password_hash,
                        user_name=row.user_name,
                        class_code=row.class_code,
                        status=UserRole.STUDENT,
                        change_login=True,
                    ))
                inserted += 1
            except SQLAlchemyError as e:
                logger.warning(f"Bulk upload row {row.line_number} failed: {str(e)}")
                errors.append(f"Row {row.line_number}: could not be saved")
        db.commit()
    except Exception:
        db.rollback()
        logger.error("Bulk upload failed", exc_info=True)
        raise

    logger.info(f"Bulk upload into {request.class_code}: {inserted} inserted, {len(errors)} skipped")
    return send_response({
        "message": "Bulk upload complete",
        "inserted": inserted,
        "skipped": len(errors),
        "errors": errors,
    })


@router.post("/password-reset-request")
def request_password_reset(request: PasswordResetRequest, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, request.email)
    if not user:
        # Don't reveal if user exists or not
        return send_response(RESET_ACK)

    staff_emails = [staff.email for staff in crud.get_staff(db)]
    if not staff_emails:
        logger.warning("No teacher or admin users found for password reset notification")
        return send_response(RESET_ACK)

    html = create_password_reset_request_email(
        user.user_name,
        user.email,
        user.class_code,
        get_utc_now().strftime("%Y-%m-%d %H:%M:%S"),
    )
    if send_email(staff_emails, f"Password Reset Request - {user.user_name}", html):
        logger.info(f"Password reset request email sent for user {user.id}")
    else:
        logger.warning(f"Password reset request email for user {user.id} was not sent")

    return send_response(RESET_ACK)


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise not_found("User")
    return send_response({"user": _user_out(user)})


@router.put("/{user_id}")
def update_user(user_id: int, request: UpdateUserRequest, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise not_found("User")
    if not request.user_name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing userName")
    _ensure_email_free(db, request.email, user.id)

    changes = {
        "email": request.email,
        "user_name": request.user_name.strip(),
        "class_code": (request.class_code or "").strip() or None,
        "status": int(request.status),
    }
    if request.avatar is not None:
        changes["avatar"] = request.avatar
    if request.password and request.password.strip():
        changes["password"] = request.password
        # an admin-set password must be changed at next login
        changes["change_login"] = True

    user = crud.update_user(db, user, changes)
    logger.info(f"Updated user {user.id}")
    return send_response({"message": "User updated", "user": _user_out(user)})


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    if not crud.delete_user(db, user_id):
        raise not_found("User")
    logger.info(f"Deleted user {user_id}")
    return send_response("User deleted")
