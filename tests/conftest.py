import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from markbook.core.config.settings import get_settings
from markbook.crud.users import build_user
from markbook.db.base import Base
from markbook.db.session import enable_sqlite_savepoints, get_db
from markbook.main import app
from markbook.models import Course, CurrentActivity, ActivityStatus, Question, Unit, UserRole
from markbook.routers import answers as answers_router
from markbook.routers import users as users_router
from markbook.services.file_storage import FileStorage, get_file_storage

DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

API = get_settings().API_V1_PREFIX


@pytest.fixture(name="session")
def session_fixture():
    Base.metadata.create_all(engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture(name="storage_root")
def storage_root_fixture(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture(name="sent_emails")
def sent_emails_fixture(monkeypatch):
    sent = []

    def fake_send_email(to_email, subject, html_content):
        recipients = [to_email] if isinstance(to_email, str) else list(to_email)
        sent.append({"to": recipients, "subject": subject, "html": html_content})
        return True

    monkeypatch.setattr(answers_router, "send_email", fake_send_email)
    monkeypatch.setattr(users_router, "send_email", fake_send_email)
    return sent


@pytest.fixture(name="client")
def client_fixture(session: Session, storage_root, sent_emails):
    settings = get_settings()

    def get_db_override():
        yield session

    def get_file_storage_override():
        return FileStorage(
            root=str(storage_root),
            allowed_extensions=settings.ALLOWED_EXTENSIONS,
            max_size=settings.MAX_UPLOAD_SIZE,
        )

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_file_storage] = get_file_storage_override
    client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    def make_user(email, user_name=None, class_code=None, role=UserRole.STUDENT, password="password"):
        user = build_user({
            "email": email,
            "password": password,
            "user_name": user_name or email.split("@")[0],
            "class_code": class_code,
            "status": int(role),
        })
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return make_user


@pytest.fixture(name="unit_setup")
def unit_setup_fixture(session: Session, make_user):
    """A course with one unit of two questions, a teacher and a student in class 10A."""
    course = Course(course_name="Cyber", course_code="CS1")
    session.add(course)
    session.commit()
    unit = Unit(course_id=course.id, unit_name="Intro", unit_code="U1")
    session.add(unit)
    session.commit()
    written = Question(course_id=course.id, unit_id=unit.id, question="What is a firewall?")
    upload = Question(
        course_id=course.id,
        unit_id=unit.id,
        question="Upload your network diagram",
        upload_permitted=True,
    )
    session.add_all([written, upload])
    session.commit()

    teacher = make_user("teacher@school.org", "Ms Teacher", "10A", UserRole.TEACHER)
    student = make_user("student@school.org", "Sam Student", "10A")
    return {
        "course": course,
        "unit": unit,
        "written": written,
        "upload": upload,
        "teacher": teacher,
        "student": student,
    }


@pytest.fixture(name="make_activity")
def make_activity_fixture(session: Session, unit_setup):
    def make_activity(status=ActivityStatus.INPROGRESS, student=None):
        activity = CurrentActivity(
            student_id=(student or unit_setup["student"]).id,
            course_id=unit_setup["course"].id,
            unit_id=unit_setup["unit"].id,
            assessor_id=unit_setup["teacher"].id,
            status=status,
        )
        session.add(activity)
        session.commit()
        session.refresh(activity)
        return activity

    return make_activity
