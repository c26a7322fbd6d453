from typing import Optional

from markbook.schemas.base import CamelModel


class CourseRequest(CamelModel):
    course_name: str
    course_code: Optional[str] = None


class CourseOut(CamelModel):
    id: int
    course_name: str
    course_code: Optional[str] = None


class UnitRequest(CamelModel):
    course_id: int
    unit_name: str
    unit_code: Optional[str] = None


class UnitOut(CamelModel):
    id: int
    course_id: int
    unit_name: str
    unit_code: Optional[str] = None


class QuestionRequest(CamelModel):
    course_id: int
    unit_id: int
    question: str
    question_ref: Optional[str] = None
    upload_permitted: bool = False


class QuestionOut(CamelModel):
    id: int
    course_id: int
    unit_id: int
    question_ref: Optional[str] = None
    question: str
    upload_permitted: bool
