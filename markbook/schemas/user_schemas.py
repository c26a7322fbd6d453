from datetime import datetime
from typing import Optional

from pydantic import EmailStr

from markbook.models.user import UserRole
from markbook.schemas.base import CamelModel


class CreateUserRequest(CamelModel):
    email: EmailStr
    password: str
    user_name: str
    class_code: Optional[str] = None
    status: UserRole = UserRole.STUDENT
    avatar: Optional[str] = None
    send_welcome_email: bool = False


class UpdateUserRequest(CamelModel):
    email: EmailStr
    user_name: str
    password: Optional[str] = None
    class_code: Optional[str] = None
    status: UserRole = UserRole.STUDENT
    avatar: Optional[str] = None


class UpdateSelfRequest(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    avatar: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class PasswordResetRequest(CamelModel):
    email: str


class BulkUploadRequest(CamelModel):
    class_code: Optional[str] = None
    default_password: Optional[str] = None
    csv_content: Optional[str] = None


class UserOut(CamelModel):
    id: int
    email: str
    user_name: str
    class_code: Optional[str] = None
    status: int
    avatar: Optional[str] = None
    change_login: bool = False
    created_at: Optional[datetime] = None
