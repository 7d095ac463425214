"""
User endpoints:
- POST /api/users/signup
- POST /api/users/login
- GET  /api/users/me
- POST /api/users/change-password

Signup and login both respond with { token, token_type }.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.auth import create_access_token, get_current_user
from src.api.db import db_session_dep
from src.api.errors import raise_result_error
from src.api.models import User
from src.api.schemas import (
    AuthTokenResponse,
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
    UserResponse,
)
from src.api.users_repo import authenticate, change_password, create_user

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "/signup",
    response_model=AuthTokenResponse,
    summary="Create an account",
    description="Creates a new user and returns a JWT token.",
    operation_id="signup_user",
)
def signup(req: SignupRequest, db: Session = Depends(db_session_dep)) -> AuthTokenResponse:
    """Register a new user with username/email/password."""
    result = create_user(db, username=req.username, email=req.email, password=req.password)
    if not result.success:
        raise_result_error(result)
    db.commit()

    user = result.value
    return AuthTokenResponse(token=create_access_token(user_id=user.id, username=user.username))


@router.post(
    "/login",
    response_model=AuthTokenResponse,
    summary="Login",
    description="Validates credentials (username or email) and returns a JWT token.",
    operation_id="login_user",
)
def login(req: LoginRequest, db: Session = Depends(db_session_dep)) -> AuthTokenResponse:
    result = authenticate(db, login=req.username, password=req.password)
    if not result.success:
        raise_result_error(result)

    user = result.value
    return AuthTokenResponse(token=create_access_token(user_id=user.id, username=user.username))


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
    operation_id="get_me",
)
def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.post(
    "/change-password",
    status_code=204,
    summary="Change password",
    operation_id="change_password",
)
def change_password_route(
    req: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_session_dep),
) -> None:
    result = change_password(
        db, user.id, old_password=req.old_password, new_password=req.new_password
    )
    if not result.success:
        raise_result_error(result)
    db.commit()
