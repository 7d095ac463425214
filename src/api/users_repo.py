"""
User account storage: signup, lookup and password changes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.auth import hash_password, verify_password
from src.api.models import AccountStatus, EmailStatus, User
from src.api.result import Result, ResultError, ResultErrorDetail, err, ok

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def create_user(db: Session, *, username: str, email: str, password: str) -> Result[User]:
    """
    Create an active, email-unverified account.

    Duplicate usernames (case-insensitive) and emails are both reported when
    both collide.
    """
    username = username.strip()
    email = email.strip().lower()

    try:
        errors = []
        if db.execute(
            select(User.id).where(func.lower(User.username) == username.lower())
        ).first():
            errors.append(ResultErrorDetail("username_taken", "Username is already taken."))
        if db.execute(select(User.id).where(User.email == email)).first():
            errors.append(ResultErrorDetail("email_taken", "Email is already registered."))
        if errors:
            return ResultError(errors)

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            creation_date=now,
            account_status=AccountStatus.ACTIVE.value,
            username=username,
            email=email,
            email_status=EmailStatus.UNVERIFIED.value,
            password=hash_password(password),
            password_updated=now,
        )
        db.add(user)
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent signup.
        db.rollback()
        return err("username_taken", "Username or email is already registered.")
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("create_user_failed: exc=%s", exc.__class__.__name__)
        return err("db_error", f"create_user failed ({exc.__class__.__name__})")

    logger.info("user_created: user_id=%s username=%s", user.id, user.username)
    return ok(user)


# PUBLIC_INTERFACE
def get_user(db: Session, user_id: str) -> Result[User]:
    user = db.get(User, user_id)
    if user is None:
        return err("missing_user", f"User {user_id} does not exist.")
    return ok(user)


# PUBLIC_INTERFACE
def authenticate(db: Session, *, login: str, password: str) -> Result[User]:
    """
    Look up a user by email, falling back to username, and check the password.

    Email wins when a login string matches one account's email and another
    account's username.
    """
    login = login.strip().lower()
    user = db.execute(select(User).where(User.email == login)).scalars().first()
    if user is None:
        user = (
            db.execute(select(User).where(func.lower(User.username) == login))
            .scalars()
            .first()
        )
    if user is None or not verify_password(password, user.password):
        return err("invalid_login", "Invalid username or password.")
    return ok(user)


# PUBLIC_INTERFACE
def change_password(db: Session, user_id: str, *, old_password: str, new_password: str) -> Result[None]:
    found = get_user(db, user_id)
    if not found.success:
        return found
    user = found.value
    if not verify_password(old_password, user.password):
        return err("invalid_password", "Current password is incorrect.")

    user.password = hash_password(new_password)
    user.password_updated = datetime.now(timezone.utc)
    db.flush()
    return ok(None)
