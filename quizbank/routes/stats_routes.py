"""
Dashboard, analytics and leaderboard endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizbank.config import get_db
from quizbank.schemas.stats_schemas import (
    AnalyticsResponse,
    LeaderboardResponse,
    SubjectStatsResponse,
)
from quizbank.schemas.user_schemas import User
from quizbank.services.stats_service import StatsService
from quizbank.utils.auth import get_current_user

stats_routes = APIRouter()


@stats_routes.get("/subjects", response_model=SubjectStatsResponse)
async def subject_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubjectStatsResponse:
    """Mastery progress per enrolled subject plus the global roll-up."""
    return SubjectStatsResponse(**StatsService(db).subject_stats(current_user.id))


@stats_routes.get("/analytics", response_model=AnalyticsResponse)
async def analytics(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AnalyticsResponse:
    return AnalyticsResponse(subjects=StatsService(db).detailed_analytics(current_user.id))


@stats_routes.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    n: Optional[int] = Query(None, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaderboardResponse:
    return LeaderboardResponse(entries=StatsService(db).top_n(n))
