from typing import List, Optional

from sqlalchemy.orm import Session

from markbook.core.security.auth import create_hashed_password
from markbook.models.user import User, UserRole, STAFF_ROLES
from markbook.utils.helpers import normalise_email


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalise_email(email)).first()


def get_users(
    db: Session,
    user_id: Optional[int] = None,
    class_code: Optional[str] = None,
    status: Optional[int] = None,
) -> List[User]:
    query = db.query(User)
    if user_id:
        query = query.filter(User.id == user_id)
    if class_code:
        query = query.filter(User.class_code == class_code)
    if status is not None:
        query = query.filter(User.status == status)
    return query.order_by(User.user_name).all()


def get_students_in_class(db: Session, class_code: str) -> List[User]:
    return (
        db.query(User)
        .filter(User.class_code == class_code, User.status == UserRole.STUDENT)
        .order_by(User.id)
        .all()
    )


def get_staff(db: Session) -> List[User]:
    return db.query(User).filter(User.status.in_(STAFF_ROLES)).order_by(User.user_name).all()


def get_class_teachers(db: Session, class_code: Optional[str]) -> List[User]:
    """Teachers sharing the class code, or every admin when the class has none."""
    teachers = []
    if class_code:
        teachers = (
            db.query(User)
            .filter(User.class_code == class_code, User.status == UserRole.TEACHER)
            .all()
        )
    if not teachers:
        teachers = db.query(User).filter(User.status == UserRole.ADMIN).all()
    return teachers


def get_class_codes(db: Session) -> List[str]:
    rows = (
        db.query(User.class_code)
        .filter(User.class_code.isnot(None), User.class_code != "")
        .distinct()
        .order_by(User.class_code)
        .all()
    )
    return [row[0] for row in rows]


def build_user(user_data: dict) -> User:
    user_data = dict(user_data)
    user_data["email"] = normalise_email(user_data["email"])
    user_data["password_hash"] = create_hashed_password(user_data.pop("password"))
    if user_data.get("class_code") is not None:
        user_data["class_code"] = user_data["class_code"].strip() or None
    return User(**user_data)


def create_user(db: Session, user_data: dict) -> User:
    user = build_user(user_data)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: User, user_data: dict) -> User:
    user_data = dict(user_data)
    password = user_data.pop("password", None)
    if password:
        user.password_hash = create_hashed_password(password)
    if "email" in user_data and user_data["email"] is not None:
        user_data["email"] = normalise_email(user_data["email"])
    for key, value in user_data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> bool:
    user = get_user(db, user_id)
    if user:
        db.delete(user)
        db.commit()
        return True
    return False
