"""
Authentication utilities: password hashing and JWT handling.

Clients authenticate with `Authorization: Bearer <token>`, where the token is
issued by POST /api/users/login or /api/users/signup.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from src.api.config import ConfigError
from src.api.db import get_db_session
from src.api.models import AccountStatus, User

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_bearer_scheme = HTTPBearer(auto_error=False)


def _jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ConfigError("JWT_SECRET env var is required.")
    return secret


def _jwt_algorithm() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def _jwt_exp_minutes() -> int:
    try:
        return int(os.getenv("JWT_EXPIRES_MINUTES", "10080"))  # default: 7 days
    except ValueError:
        return 10080


# PUBLIC_INTERFACE
def hash_password(password: str) -> bytes:
    """Hash a plain-text password into the bytes stored in users.password."""
    return _pwd_context.hash(password).encode("utf-8")


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: bytes) -> bool:
    """Verify a plain-text password against a stored hash."""
    try:
        return _pwd_context.verify(password, bytes(password_hash).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return False


# PUBLIC_INTERFACE
def create_access_token(*, user_id: str, username: str) -> str:
    """
    Create a signed JWT access token.

    Token contains:
      - sub: user id
      - username
      - iat / exp
    """
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=_jwt_exp_minutes())
    payload: Dict[str, Any] = {
        "sub": user_id,
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm=_jwt_algorithm())


def _decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, _jwt_secret(), algorithms=[_jwt_algorithm()])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Invalid or expired token."},
        )


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "message": message},
    )


def _user_from_credentials(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[User]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None

    sub = _decode_token(credentials.credentials).get("sub")
    if not sub:
        raise _unauthorized("Invalid token payload.")

    with get_db_session() as db:
        user = db.get(User, str(sub))
    if user is None:
        raise _unauthorized("User not found.")
    if user.account_status != AccountStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "account_disabled", "message": "This account is disabled."},
        )
    return user


# PUBLIC_INTERFACE
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> User:
    """
    FastAPI dependency that returns the authenticated user.

    Raises 401 if the token is missing/invalid or the user doesn't exist,
    403 if the account is disabled.
    """
    user = _user_from_credentials(credentials)
    if user is None:
        raise _unauthorized("Not authenticated.")
    return user


# PUBLIC_INTERFACE
def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[User]:
    """Like `get_current_user`, but anonymous requests yield None."""
    return _user_from_credentials(credentials)
