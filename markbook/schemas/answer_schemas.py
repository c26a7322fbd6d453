from typing import Any, Dict, List, Optional

from markbook.schemas.base import CamelModel


class SaveAnswersRequest(CamelModel):
    activity_id: int
    student_id: int
    answers: Dict[str, Any]  # questionId -> rich-text document
    references: Dict[str, List[str]] = {}  # questionId -> URLs
    status: str = "DRAFT"


class MarkPayload(CamelModel):
    outcome: Optional[str] = None
    comment: Optional[str] = None


class MarkAnswersRequest(CamelModel):
    activity_id: int
    student_id: int
    marks: Dict[str, MarkPayload]
    final_status: str = ""
    assessor_comment: Optional[str] = None

