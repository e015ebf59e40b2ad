"""
Quiz session endpoints: start, resume, autosave, submit, review, history.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from quizbank.config import get_db
from quizbank.schemas.quiz_schemas import (
    CreateSessionRequest,
    CreateSessionResponse,
    HistoryItem,
    HistoryResponse,
    ResultResponse,
    SaveAnswerRequest,
    SaveAnswerResponse,
    SessionResponse,
    SubmitRequest,
    SubmitResponse,
)
from quizbank.schemas.user_schemas import User
from quizbank.services.grading_service import GradingService
from quizbank.services.session_builder import QuizSessionService, Scope
from quizbank.services.stats_service import StatsService
from quizbank.utils.auth import get_current_user

quiz_routes = APIRouter()


@quiz_routes.post("/sessions", response_model=CreateSessionResponse, status_code=201)
async def create_session(
    req: CreateSessionRequest,
    current_user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> CreateSessionResponse:
    """Start a quiz over a subject, a module list, or modules within a subject.

    Questions the user has already mastered are never selected; the count may
    come back lower than requested when the pool is small.
    """
    session_id = QuizSessionService(db).create_session(
        current_user.id,
        req.mode,
        Scope(subject_id=req.subject_id, module_ids=req.module_ids),
        req.count,
    )
    return CreateSessionResponse(session_id=session_id)


@quiz_routes.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> SessionResponse:
    return SessionResponse(**QuizSessionService(db).get_session(current_user.id, session_id))


@quiz_routes.put("/sessions/{session_id}/answers", response_model=SaveAnswerResponse)
async def save_answer(
    session_id: str,
    req: SaveAnswerRequest,
    current_user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> SaveAnswerResponse:
    """Autosave one selection. Safe to repeat; the latest option wins."""
    QuizSessionService(db).save_answer(session_id, current_user.id, req.question_id, req.option_id)
    return SaveAnswerResponse(success=True)


@quiz_routes.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit_session(
    session_id: str,
    req: SubmitRequest,
    current_user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> SubmitResponse:
    """Grade the session once. Resubmitting returns the stored score unchanged."""
    return SubmitResponse(**GradingService(db).submit_session(session_id, current_user.id, req.answers))


@quiz_routes.get("/sessions/{session_id}/result", response_model=ResultResponse)
async def get_result(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> ResultResponse:
    return ResultResponse(**GradingService(db).get_result(current_user.id, session_id))


@quiz_routes.get("/history", response_model=HistoryResponse)
async def get_history(
    current_user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> HistoryResponse:
    return HistoryResponse(sessions=[HistoryItem(**h) for h in StatsService(db).history(current_user.id)])
