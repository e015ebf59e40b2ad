"""
Admin schemas: students and enrollment management.
"""

from pydantic import BaseModel
from typing import Optional


class StudentResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str


class StudentListResponse(BaseModel):
    students: list[StudentResponse]


class EnrollmentListResponse(BaseModel):
    user_id: int
    subject_ids: list[str]


class EnrollmentToggleRequest(BaseModel):
    user_id: int
    subject_id: str
    enrolled: bool


class EnrollmentToggleResponse(BaseModel):
    success: bool
    changed: bool
