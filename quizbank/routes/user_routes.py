"""
Profile endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from quizbank.config import get_db
from quizbank.models.models import Profile
from quizbank.schemas.stats_schemas import UserSummaryResponse
from quizbank.schemas.user_schemas import ProfileResponse, UpdateProfileRequest, User
from quizbank.services.stats_service import StatsService
from quizbank.utils.auth import get_current_user
from quizbank.utils.common import utcnow

user_routes = APIRouter()


@user_routes.patch("/user/profile", response_model=ProfileResponse)
async def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    """Update the display name shown on the leaderboard."""
    full_name = (body.full_name or "").strip()
    if len(full_name) < 3:
        raise HTTPException(status_code=400, detail="Full name must be at least 3 characters")
    profile = db.get(Profile, current_user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    profile.full_name = full_name
    profile.updated_at = utcnow()
    db.commit()
    db.refresh(profile)
    return ProfileResponse(id=profile.id, email=profile.email, full_name=profile.full_name, role=profile.role)


@user_routes.get("/user/stats", response_model=UserSummaryResponse)
async def get_user_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserSummaryResponse:
    """Quiz count, average, cumulative score and level for the profile card."""
    return UserSummaryResponse(**StatsService(db).user_summary(current_user.id))
