from datetime import datetime
from typing import Optional

from markbook.models.activity import ActivityStatus
from markbook.schemas.base import CamelModel

DATE_FIELDS = ("date_set", "date_submitted", "date_marked", "date_resubmitted", "date_complete")


class ActivityCreateRequest(CamelModel):
    student_id: int
    course_id: int
    unit_id: int
    assessor_id: Optional[int] = None
    status: ActivityStatus = ActivityStatus.NOTSET
    date_set: Optional[datetime] = None
    date_submitted: Optional[datetime] = None
    date_marked: Optional[datetime] = None
    date_resubmitted: Optional[datetime] = None
    date_complete: Optional[datetime] = None
    assessor_comment: Optional[str] = None


class ActivityUpdateRequest(CamelModel):
    """Partial update; only the fields present in the request body are applied."""

    student_id: Optional[int] = None
    course_id: Optional[int] = None
    unit_id: Optional[int] = None
    assessor_id: Optional[int] = None
    status: Optional[ActivityStatus] = None
    date_set: Optional[datetime] = None
    date_submitted: Optional[datetime] = None
    date_marked: Optional[datetime] = None
    date_resubmitted: Optional[datetime] = None
    date_complete: Optional[datetime] = None
    assessor_comment: Optional[str] = None


class AssignUnitRequest(CamelModel):
    class_code: Optional[str] = None
    course_id: Optional[int] = None
    unit_id: Optional[int] = None
    assessor_id: Optional[int] = None


class ActivityOut(CamelModel):
    id: int
    student_id: int
    course_id: int
    unit_id: int
    assessor_id: Optional[int] = None
    status: ActivityStatus
    date_set: Optional[datetime] = None
    date_submitted: Optional[datetime] = None
    date_marked: Optional[datetime] = None
    date_resubmitted: Optional[datetime] = None
    date_complete: Optional[datetime] = None
    assessor_comment: Optional[str] = None


class AssessmentOut(ActivityOut):
    course_name: str
    unit_name: str
