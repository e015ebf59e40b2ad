from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError
from jose.jwt import encode, decode

from quizbank.config import settings
from quizbank.schemas.auth_schemas import AuthTokenPayload
from quizbank.utils.logger import configure_logging

ALGORITHM = "HS256"

logger = configure_logging()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("malformed password hash")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password for storing."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token for the profile id."""
    minutes = expires_minutes or settings.access_token_expire_minutes
    payload = AuthTokenPayload(sub=subject, exp=datetime.now(timezone.utc) + timedelta(minutes=minutes))
    return encode(payload.model_dump(), settings.secret_key, algorithm=ALGORITHM)


def verify_token(token: Optional[str]) -> AuthTokenPayload:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        payload = decode(token, settings.secret_key, algorithms=[ALGORITHM])
        return AuthTokenPayload(**payload)
    except JWTError as e:
        logger.info("token rejected: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
