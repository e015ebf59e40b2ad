from typing import Optional

from fastapi import HTTPException, Cookie, Response, status, Depends
from sqlalchemy.orm import Session

from quizbank.config import get_db, settings
from quizbank.models.models import Profile
from quizbank.schemas.user_schemas import User
from quizbank.utils.jwt import verify_token, get_password_hash, create_access_token, verify_password
from quizbank.utils.logger import configure_logging

logger = configure_logging()


def to_user(profile: Profile) -> User:
    return User(id=profile.id, email=profile.email, full_name=profile.full_name, role=profile.role)


def get_current_user(access_token: Optional[str] = Cookie(None), db: Session = Depends(get_db)) -> User:
    """Current user id provider. Everything downstream receives the id explicitly."""
    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
        )

    payload = verify_token(access_token)
    if payload is None or payload.sub is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )
    try:
        profile = db.get(Profile, int(payload.sub))
    except ValueError:
        profile = None
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return to_user(profile)


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        logger.warning("admin route refused user_id=%s", current_user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def set_auth_cookie(response: Response, profile: Profile) -> None:
    token = create_access_token(str(profile.id))
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key="access_token",
        httponly=True,
        secure=False,
        samesite="lax"
    )


def get_user_by_email(email: str, db: Session) -> Profile | None:
    return db.query(Profile).filter(Profile.email == email.strip().lower()).first()


def create_user(email: str, password: str, db: Session, full_name: str | None = None, role: str = "student") -> Profile:
    profile = Profile(
        email=email.strip().lower(),
        hashed_password=get_password_hash(password),
        full_name=(full_name or "").strip() or None,
        role=role,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info("profile created id=%s role=%s", profile.id, profile.role)
    return profile


def authenticate_user(email: str, password: str, db: Session) -> Profile | None:
    profile = get_user_by_email(email, db)
    if not profile or not verify_password(password, profile.hashed_password):
        return None
    return profile
