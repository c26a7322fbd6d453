from sqlalchemy.orm import Session
import logging

from markbook.core.config.settings import get_settings
from markbook.crud.users import build_user, get_user_by_email
from markbook.models.user import UserRole

logger = logging.getLogger(__name__)


def init_db(db: Session) -> None:
    """Initialize database with required data"""
    settings = get_settings()
    if not settings.DEFAULT_ADMIN_EMAIL or not settings.DEFAULT_ADMIN_PASSWORD:
        return

    # Seed the first admin if it doesn't exist
    if get_user_by_email(db, settings.DEFAULT_ADMIN_EMAIL):
        return
    db.add(build_user({
        "email": settings.DEFAULT_ADMIN_EMAIL,
        "password": settings.DEFAULT_ADMIN_PASSWORD,
        "user_name": "Administrator",
        "status": UserRole.ADMIN,
        "change_login": True,
    }))

    try:
        db.commit()
        logger.info(f"Seeded default admin {settings.DEFAULT_ADMIN_EMAIL}")
    except Exception:
        db.rollback()
        raise
