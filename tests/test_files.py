import os

import pytest
from httpx import AsyncClient

from conftest import API
from markbook.models import ActivityStatus, Answer, Question, Unit
from markbook.services.file_storage import StagedFile


def form_for(activity, question):
    return {
        "activityId": str(activity.id),
        "studentId": str(activity.student_id),
        "questionId": str(question.id),
    }


def stored_files(root):
    if not os.path.isdir(root):
        return []
    return [os.path.join(dirpath, name) for dirpath, _, names in os.walk(root) for name in names]


async def upload(client, activity, question, name="diagram.png", content=b"\x89PNG fake image", mime="image/png"):
    return await client.post(
        f"{API}/answers/files",
        data=form_for(activity, question),
        files={"file": (name, content, mime)},
    )


@pytest.mark.asyncio
async def test_upload_download_and_delete(client: AsyncClient, session, storage_root, unit_setup, make_activity):
    activity = make_activity()
    question = unit_setup["upload"]

    response = await upload(client, activity, question)
    assert response.status_code == 200
    body = response.json()
    entry = body["file"]
    assert entry["originalName"] == "diagram.png"
    assert entry["mimeType"] == "image/png"
    assert entry["path"] == f"{activity.student_id}/{entry['id']}"
    assert f"/answers/files/{entry['id']}" in entry["url"]
    assert len(body["fileUploads"]) == 1

    final_path = storage_root / str(activity.student_id) / entry["id"]
    assert final_path.read_bytes() == b"\x89PNG fake image"
    # nothing left behind in staging
    assert stored_files(str(storage_root)) == [str(final_path)]

    answer = session.query(Answer).one()
    assert answer.status == ActivityStatus.INPROGRESS
    assert [f["id"] for f in answer.file_uploads] == [entry["id"]]

    params = form_for(activity, question)
    download = await client.get(f"{API}/answers/files/{entry['id']}", params=params)
    assert download.status_code == 200
    assert download.content == b"\x89PNG fake image"
    assert download.headers["content-disposition"].startswith("inline")
    assert "diagram.png" in download.headers["content-disposition"]

    removed = await client.delete(f"{API}/answers/files/{entry['id']}", params=params)
    assert removed.status_code == 200
    assert removed.json()["fileUploads"] == []
    assert not final_path.exists()

    session.expire_all()
    assert session.query(Answer).one().file_uploads == []


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected_before_writing(client: AsyncClient, storage_root, unit_setup, make_activity):
    activity = make_activity()
    content = b"0" * (15 * 1024 * 1024 + 1)

    response = await upload(client, activity, unit_setup["upload"], name="big.pdf", content=content, mime="application/pdf")
    assert response.status_code == 413
    assert stored_files(str(storage_root)) == []


@pytest.mark.asyncio
async def test_disallowed_extension_is_rejected_before_writing(
    client: AsyncClient, storage_root, unit_setup, make_activity
):
    activity = make_activity()

    response = await upload(client, activity, unit_setup["upload"], name="script.exe", mime="application/octet-stream")
    assert response.status_code == 415
    assert response.json()["message"] == "File type not permitted"
    assert stored_files(str(storage_root)) == []


@pytest.mark.asyncio
async def test_question_must_permit_uploads(client: AsyncClient, storage_root, unit_setup, make_activity):
    activity = make_activity()

    response = await upload(client, activity, unit_setup["written"])
    assert response.status_code == 403
    assert stored_files(str(storage_root)) == []


@pytest.mark.asyncio
async def test_upload_to_submitted_activity_conflicts(client: AsyncClient, storage_root, unit_setup, make_activity):
    activity = make_activity(ActivityStatus.SUBMITTED)

    response = await upload(client, activity, unit_setup["upload"])
    assert response.status_code == 409
    assert stored_files(str(storage_root)) == []


@pytest.mark.asyncio
async def test_upload_keeps_existing_answer_text(client: AsyncClient, session, unit_setup, make_activity):
    activity = make_activity()
    question = unit_setup["upload"]
    await client.post(
        f"{API}/answers/save",
        json={
            "activityId": activity.id,
            "studentId": activity.student_id,
            "answers": {str(question.id): {"type": "doc", "content": "See attached"}},
        },
    )

    first = await upload(client, activity, question, name="one.pdf", mime="application/pdf")
    second = await upload(client, activity, question, name="two.jpg", mime="image/jpeg")
    assert second.status_code == 200
    assert [f["originalName"] for f in second.json()["fileUploads"]] == ["one.pdf", "two.jpg"]
    assert first.json()["file"]["id"] != second.json()["file"]["id"]

    session.expire_all()
    answer = session.query(Answer).one()
    assert answer.answer["content"] == "See attached"
    assert len(answer.file_uploads) == 2


@pytest.mark.asyncio
async def test_missing_attachment_is_404(client: AsyncClient, unit_setup, make_activity):
    activity = make_activity()
    params = form_for(activity, unit_setup["upload"])

    download = await client.get(f"{API}/answers/files/nope.png", params=params)
    assert download.status_code == 404
    assert download.json()["message"] == "Answer record not found"

    await upload(client, activity, unit_setup["upload"])
    removed = await client.delete(f"{API}/answers/files/nope.png", params=params)
    assert removed.status_code == 404
    assert removed.json()["message"] == "File not found for this answer"


@pytest.mark.asyncio
async def test_upload_against_question_of_another_unit_is_rejected(
    client: AsyncClient, session, storage_root, unit_setup, make_activity
):
    activity = make_activity()
    other = Unit(course_id=unit_setup["course"].id, unit_name="Other", unit_code="U2")
    session.add(other)
    session.commit()
    foreign = Question(
        course_id=unit_setup["course"].id,
        unit_id=other.id,
        question="Upload your other diagram",
        upload_permitted=True,
    )
    session.add(foreign)
    session.commit()

    response = await upload(client, activity, foreign, name="a.pdf", mime="application/pdf")
    assert response.status_code == 400
    assert response.json()["message"] == "Question does not belong to this unit"
    assert stored_files(str(storage_root)) == []
    assert session.query(Answer).count() == 0


@pytest.mark.asyncio
async def test_failed_move_into_place_takes_the_entry_back(
    client: AsyncClient, session, storage_root, unit_setup, make_activity, monkeypatch
):
    def broken_promote(self):
        raise OSError("disk full")

    monkeypatch.setattr(StagedFile, "promote", broken_promote)
    activity = make_activity()

    response = await upload(client, activity, unit_setup["upload"])
    assert response.status_code == 500
    assert response.json()["message"] == "Failed to save uploaded file"
    assert stored_files(str(storage_root)) == []

    session.expire_all()
    assert session.query(Answer).one().file_uploads == []
