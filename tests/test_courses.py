import pytest
from httpx import AsyncClient

from conftest import API
from markbook.models import ActivityStatus, Course, Question, Unit, UserRole


@pytest.mark.asyncio
async def test_course_unit_question_and_class_assignment(client: AsyncClient, session, make_user):
    course = await client.post(f"{API}/courses", json={"courseName": "Cyber", "courseCode": "CS1"})
    assert course.status_code == 201
    course_id = course.json()["id"]
    assert isinstance(course_id, int)
    assert course.json()["status_code"] == 201

    unit = await client.post(f"{API}/units", json={"courseId": course_id, "unitName": "Intro", "unitCode": "U1"})
    assert unit.status_code == 201
    unit_id = unit.json()["id"]

    question = await client.post(
        f"{API}/questions",
        json={"courseId": course_id, "unitId": unit_id, "question": "What is a firewall?"},
    )
    assert question.status_code == 201

    teacher = make_user("teacher@school.org", "Ms Teacher", "10A", UserRole.TEACHER)
    for name in ("ann", "bob", "cat"):
        make_user(f"{name}@school.org", name.title(), "10A")

    payload = {"classCode": "10A", "courseId": course_id, "unitId": unit_id, "assessorId": teacher.id}
    first = await client.post(f"{API}/activities/assign-class", json=payload)
    assert first.status_code == 200
    assert (first.json()["inserted"], first.json()["skipped"]) == (3, 0)

    second = await client.post(f"{API}/activities/assign-class", json=payload)
    assert (second.json()["inserted"], second.json()["skipped"]) == (0, 3)

    activities = (await client.get(f"{API}/activities", params={"unitId": unit_id})).json()["data"]
    assert len(activities) == 3
    assert all(a["status"] == ActivityStatus.INPROGRESS.value for a in activities)
    assert all(a["dateSet"] is not None for a in activities)


@pytest.mark.asyncio
async def test_created_course_reads_back(client: AsyncClient):
    created = await client.post(f"{API}/courses", json={"courseName": "Networks", "courseCode": "NW2"})
    course_id = created.json()["id"]

    response = await client.get(f"{API}/courses/{course_id}")
    assert response.status_code == 200
    assert response.json()["data"] == {"id": course_id, "courseName": "Networks", "courseCode": "NW2"}


@pytest.mark.asyncio
async def test_courses_are_listed_by_name(client: AsyncClient):
    for name in ("Zoology", "Art"):
        await client.post(f"{API}/courses", json={"courseName": name})
    names = [c["courseName"] for c in (await client.get(f"{API}/courses")).json()["data"]]
    assert names == ["Art", "Zoology"]


@pytest.mark.asyncio
async def test_create_course_requires_name(client: AsyncClient):
    response = await client.post(f"{API}/courses", json={"courseCode": "X1"})
    assert response.status_code == 400
    assert response.json()["fields"] == ["courseName"]
    assert response.json()["message"] == "Missing fields: courseName"


@pytest.mark.asyncio
async def test_unit_for_unknown_course_is_404(client: AsyncClient):
    response = await client.post(f"{API}/units", json={"courseId": 999, "unitName": "Intro"})
    assert response.status_code == 404
    assert response.json() == {"message": "Course not found", "status_code": 404}


@pytest.mark.asyncio
async def test_blank_question_text_is_rejected(client: AsyncClient, unit_setup):
    response = await client.post(
        f"{API}/questions",
        json={"courseId": unit_setup["course"].id, "unitId": unit_setup["unit"].id, "question": "   "},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Question text cannot be empty"


@pytest.mark.asyncio
async def test_question_unit_must_belong_to_course(client: AsyncClient, session, unit_setup):
    other = Course(course_name="Maths")
    session.add(other)
    session.commit()

    response = await client.post(
        f"{API}/questions",
        json={"courseId": other.id, "unitId": unit_setup["unit"].id, "question": "2 + 2?"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_questions_listing_needs_unit(client: AsyncClient, unit_setup):
    missing = await client.get(f"{API}/questions")
    assert missing.status_code == 400
    assert missing.json()["fields"] == ["unitId"]

    listed = await client.get(f"{API}/questions", params={"unitId": unit_setup["unit"].id})
    data = listed.json()["data"]
    assert [q["id"] for q in data] == [unit_setup["written"].id, unit_setup["upload"].id]
    assert data[1]["uploadPermitted"] is True


@pytest.mark.asyncio
async def test_update_question(client: AsyncClient, unit_setup):
    question = unit_setup["written"]
    response = await client.put(
        f"{API}/questions/{question.id}",
        json={
            "courseId": unit_setup["course"].id,
            "unitId": unit_setup["unit"].id,
            "question": "Describe a stateful firewall",
            "questionRef": "1a",
            "uploadPermitted": True,
        },
    )
    assert response.status_code == 200
    assert response.json()["data"]["questionRef"] == "1a"
    assert response.json()["data"]["uploadPermitted"] is True


@pytest.mark.asyncio
async def test_course_with_activities_cannot_be_deleted(client: AsyncClient, session, make_activity, unit_setup):
    make_activity()
    response = await client.delete(f"{API}/courses/{unit_setup['course'].id}")
    assert response.status_code == 409
    assert session.get(Course, unit_setup["course"].id) is not None


@pytest.mark.asyncio
async def test_deleting_course_removes_units_and_questions(client: AsyncClient, session, unit_setup):
    course_id = unit_setup["course"].id
    response = await client.delete(f"{API}/courses/{course_id}")
    assert response.status_code == 200
    assert session.query(Unit).filter(Unit.course_id == course_id).count() == 0
    assert session.query(Question).filter(Question.course_id == course_id).count() == 0
