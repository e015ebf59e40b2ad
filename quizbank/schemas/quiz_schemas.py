"""
Quiz session schemas: creation, resume view, autosave, submission and review.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    subject_id: Optional[str] = None
    module_ids: list[str] = []
    count: int = Field(default=10, ge=1, le=200)
    mode: Literal["study", "exam"] = "study"


class CreateSessionResponse(BaseModel):
    session_id: str


class SessionOption(BaseModel):
    id: str
    text: str


class SessionQuestion(BaseModel):
    question_id: str
    order_number: int
    bank_number: Optional[int] = None
    content: str
    options: list[SessionOption]
    selected_option_id: Optional[str] = None
    status: str
    # Study mode only, once the question is answered.
    correct_option_id: Optional[str] = None
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None


class SessionResponse(BaseModel):
    id: str
    title: str
    mode: str
    status: str
    started_at: datetime
    expires_at: Optional[datetime] = None
    remaining_seconds: int  # advisory, the client timer
    questions: list[SessionQuestion]


class SaveAnswerRequest(BaseModel):
    question_id: str
    option_id: str


class SaveAnswerResponse(BaseModel):
    success: bool


class SubmitRequest(BaseModel):
    answers: dict[str, Optional[str]] = {}


class SubmitResponse(BaseModel):
    session_id: str
    score: int
    correct: int
    answered: int
    total: int
    already_completed: bool


class ReviewOption(BaseModel):
    id: str
    text: str
    is_correct: bool


class ReviewItem(BaseModel):
    question_id: str
    order_number: int
    content: str
    explanation: Optional[str] = None
    selected_option_id: Optional[str] = None
    correct_option_id: Optional[str] = None
    is_correct: bool
    options: list[ReviewOption]


class ResultResponse(BaseModel):
    id: str
    title: str
    mode: str
    score: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    total: int
    correct: int
    wrong: int
    reviews: list[ReviewItem]


class HistoryItem(BaseModel):
    id: str
    title: str
    mode: str
    score: int
    completed_at: Optional[datetime] = None
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    module_name: str


class HistoryResponse(BaseModel):
    sessions: list[HistoryItem]
