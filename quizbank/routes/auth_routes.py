from fastapi import APIRouter, HTTPException, Response, status, Depends
from sqlalchemy.orm import Session

from quizbank.config import get_db
from quizbank.schemas.auth_schemas import LoginRequest, RegisterRequest, LoginResponse, RegisterResponse, LogoutResponse
from quizbank.schemas.user_schemas import User
from quizbank.utils.auth import (
    authenticate_user,
    clear_auth_cookie,
    create_user,
    get_current_user,
    get_user_by_email,
    set_auth_cookie,
)

auth_routes = APIRouter()


@auth_routes.post("/login")
def login(request: LoginRequest, response: Response, db: Session = Depends(get_db)) -> LoginResponse:
    """Authenticate user and set HTTP-only cookie with token."""
    profile = authenticate_user(request.email, request.password, db)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )
    set_auth_cookie(response, profile)
    return LoginResponse(message="Login successful", token_set=True)


@auth_routes.post("/register")
def register(request: RegisterRequest, response: Response, db: Session = Depends(get_db)) -> RegisterResponse:
    """Register a new student. Enrollment is granted separately by an admin."""
    if get_user_by_email(request.email, db):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    if request.password != request.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Passwords do not match"
        )

    profile = create_user(request.email, request.password, db, full_name=request.full_name)
    set_auth_cookie(response, profile)
    return RegisterResponse(message="Registration successful")


@auth_routes.post("/logout")
def logout(response: Response) -> LogoutResponse:
    """Clear the authentication cookie."""
    clear_auth_cookie(response)
    return LogoutResponse(message="Logout successful")


@auth_routes.get("/me", response_model=User)
def get_current_user_info(current_user: User = Depends(get_current_user)) -> User:
    """Returns the authenticated profile."""
    return current_user
