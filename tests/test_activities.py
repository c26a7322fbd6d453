import pytest
from httpx import AsyncClient

from conftest import API
from markbook.models import ActivityStatus, CurrentActivity


@pytest.mark.asyncio
async def test_create_activity_and_read_back(client: AsyncClient, unit_setup):
    response = await client.post(
        f"{API}/activities",
        json={
            "studentId": unit_setup["student"].id,
            "courseId": unit_setup["course"].id,
            "unitId": unit_setup["unit"].id,
            "assessorId": unit_setup["teacher"].id,
        },
    )
    assert response.status_code == 201
    activity_id = response.json()["id"]

    fetched = (await client.get(f"{API}/activities/{activity_id}")).json()["data"]
    assert fetched["id"] == activity_id
    assert fetched["status"] == "NOTSET"
    assert fetched["studentId"] == unit_setup["student"].id


@pytest.mark.asyncio
async def test_illegal_status_change_is_rejected(client: AsyncClient, session, make_activity):
    activity = make_activity(ActivityStatus.INPROGRESS)

    response = await client.patch(
        f"{API}/activities/{activity.id}",
        json={"status": "PASSED", "assessorComment": "Great"},
    )
    assert response.status_code == 409
    assert response.json()["currentStatus"] == "INPROGRESS"

    session.expire_all()
    stored = session.get(CurrentActivity, activity.id)
    assert stored.status == ActivityStatus.INPROGRESS
    assert stored.assessor_comment is None
    assert stored.date_complete is None


@pytest.mark.asyncio
async def test_status_change_stamps_dates(client: AsyncClient, make_activity):
    activity = make_activity(ActivityStatus.INPROGRESS)

    response = await client.patch(f"{API}/activities/{activity.id}", json={"status": "SUBMITTED"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "SUBMITTED"
    assert data["dateSubmitted"] is not None


@pytest.mark.asyncio
async def test_discontinue_from_any_open_status(client: AsyncClient, make_activity):
    activity = make_activity(ActivityStatus.REDOING)
    response = await client.patch(f"{API}/activities/{activity.id}", json={"status": "DISCONTINUED"})
    assert response.status_code == 200

    reopened = await client.patch(f"{API}/activities/{activity.id}", json={"status": "INPROGRESS"})
    assert reopened.status_code == 409


@pytest.mark.asyncio
async def test_assign_lists_every_missing_field(client: AsyncClient):
    response = await client.post(f"{API}/activities/assign-class", json={"unitId": 1})
    assert response.status_code == 400
    assert response.json()["fields"] == ["classCode", "courseId", "assessorId"]


@pytest.mark.asyncio
async def test_assign_to_empty_class(client: AsyncClient, unit_setup):
    response = await client.post(
        f"{API}/activities/assign-class",
        json={
            "classCode": "12Z",
            "courseId": unit_setup["course"].id,
            "unitId": unit_setup["unit"].id,
            "assessorId": unit_setup["teacher"].id,
        },
    )
    assert response.status_code == 200
    assert response.json()["message"] == "No students found for this class"
    assert response.json()["inserted"] == 0


def assign_payload(unit_setup):
    return {
        "classCode": "10A",
        "courseId": unit_setup["course"].id,
        "unitId": unit_setup["unit"].id,
        "assessorId": unit_setup["teacher"].id,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("finished", [ActivityStatus.NOTPASSED, ActivityStatus.PASSED])
async def test_finished_unit_can_be_assigned_again(client: AsyncClient, session, unit_setup, make_activity, finished):
    make_activity(finished)
    response = await client.post(f"{API}/activities/assign-class", json=assign_payload(unit_setup))
    assert response.json()["inserted"] == 1
    assert response.json()["skipped"] == 0

    statuses = sorted(a.status.value for a in session.query(CurrentActivity).all())
    assert statuses == sorted(["INPROGRESS", finished.value])


@pytest.mark.asyncio
async def test_unit_in_progress_is_not_assigned_twice(client: AsyncClient, session, unit_setup, make_activity):
    make_activity(ActivityStatus.INPROGRESS)
    response = await client.post(f"{API}/activities/assign-class", json=assign_payload(unit_setup))
    assert response.json()["inserted"] == 0
    assert response.json()["skipped"] == 1
    assert session.query(CurrentActivity).count() == 1


@pytest.mark.asyncio
async def test_student_assessments_carry_names(client: AsyncClient, unit_setup, make_activity):
    make_activity()
    response = await client.get(f"{API}/activities/student/{unit_setup['student'].id}")
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["courseName"] == "Cyber"
    assert data[0]["unitName"] == "Intro"


@pytest.mark.asyncio
async def test_activities_filtered_by_status(client: AsyncClient, make_activity):
    make_activity(ActivityStatus.INPROGRESS)
    submitted = make_activity(ActivityStatus.SUBMITTED)

    response = await client.get(f"{API}/activities", params={"status": "SUBMITTED"})
    assert [a["id"] for a in response.json()["data"]] == [submitted.id]


def create_payload(unit_setup, **extra):
    return {
        "studentId": unit_setup["student"].id,
        "courseId": unit_setup["course"].id,
        "unitId": unit_setup["unit"].id,
        "assessorId": unit_setup["teacher"].id,
        **extra,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["PASSED", "INMARKING", "SUBMITTED", "DISCONTINUED"])
async def test_create_rejects_a_status_past_the_start(client: AsyncClient, session, unit_setup, status):
    response = await client.post(f"{API}/activities", json=create_payload(unit_setup, status=status))
    assert response.status_code == 400
    assert response.json()["message"] == "New activities must be NOTSET or INPROGRESS"
    assert session.query(CurrentActivity).count() == 0


@pytest.mark.asyncio
async def test_create_in_progress_stamps_date_set(client: AsyncClient, unit_setup):
    response = await client.post(f"{API}/activities", json=create_payload(unit_setup, status="INPROGRESS"))
    assert response.status_code == 201

    fetched = (await client.get(f"{API}/activities/{response.json()['id']}")).json()["data"]
    assert fetched["status"] == "INPROGRESS"
    assert fetched["dateSet"] is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("field,message", [
    ("unitId", "Unit not found"),
    ("courseId", "Course not found"),
    ("studentId", "Student not found"),
])
async def test_patch_with_unknown_reference_is_404(client: AsyncClient, session, unit_setup, make_activity, field, message):
    activity = make_activity(ActivityStatus.INPROGRESS)

    response = await client.patch(f"{API}/activities/{activity.id}", json={field: 999, "status": "SUBMITTED"})
    assert response.status_code == 404
    assert response.json()["message"] == message

    session.expire_all()
    stored = session.get(CurrentActivity, activity.id)
    assert stored.unit_id == unit_setup["unit"].id
    assert stored.course_id == unit_setup["course"].id
    assert stored.student_id == unit_setup["student"].id
    assert stored.status == ActivityStatus.INPROGRESS
