from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from markbook.core.security.auth import generate_token, verify_password
from markbook.crud.users import get_user_by_email
from markbook.db.session import get_db
from markbook.schemas.user_schemas import LoginRequest, UserOut
from markbook.utils.responses import send_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = get_user_by_email(db, request.email)

    # Verify credentials
    if not user or not verify_password(request.password, user.password_hash):
        logger.info(f"Failed login for {request.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    token = generate_token({"sub": str(user.id), "role": user.status})
    logger.info(f"User {user.id} logged in")

    return send_response({
        "message": "Login successful",
        "access_token": token,
        "token_type": "bearer",
        "changeLogin": bool(user.change_login),
        "user": UserOut.model_validate(user).dump(),
    })
