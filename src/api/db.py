"""
Database utilities for the ParaDB backend.

Uses SQLAlchemy 2.0 style engine/sessions, configured by environment variables.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional
from urllib.parse import urlparse, urlunparse

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.api.config import ConfigError

logger = logging.getLogger(__name__)


class DatabaseConfigError(ConfigError):
    """No usable database URL could be built from the environment."""


_DB_CONFIG_HINT = (
    "Set DATABASE_URL or provide POSTGRES_URL, POSTGRES_USER, POSTGRES_PASSWORD, "
    "POSTGRES_DB (and optionally POSTGRES_PORT)."
)


def _redact_sqlalchemy_url(url: str) -> str:
    """
    Redact password from a SQLAlchemy URL for safe logging.

    Example:
        postgresql+psycopg2://paradb:secret@db:5432/paradb -> postgresql+psycopg2://paradb:***@db:5432/paradb
    """
    parsed = urlparse(url)
    if "@" not in parsed.netloc:
        return url

    userinfo, hostinfo = parsed.netloc.rsplit("@", 1)
    if ":" not in userinfo:
        return url
    user = userinfo.split(":", 1)[0]
    return urlunparse(parsed._replace(netloc=f"{user}:***@{hostinfo}"))


def _normalize_sqlalchemy_database_url(database_url: str) -> str:
    # SQLAlchemy rejects the 'postgres://' scheme alias.
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def _build_database_url() -> str:
    """
    Build a SQLAlchemy database URL from environment variables.

    DATABASE_URL wins when set. Otherwise POSTGRES_URL (a full URL or a bare
    host[:port]) is combined with POSTGRES_USER, POSTGRES_PASSWORD,
    POSTGRES_DB and POSTGRES_PORT; the PG* variables used by libpq are
    accepted for user and password.

    Raises:
        DatabaseConfigError: if configuration is missing or incomplete.
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return _normalize_sqlalchemy_database_url(database_url)

    postgres_url = os.getenv("POSTGRES_URL")
    if not postgres_url:
        raise DatabaseConfigError(f"Database configuration missing. {_DB_CONFIG_HINT}")

    user = os.getenv("POSTGRES_USER") or os.getenv("PGUSER")
    password = os.getenv("POSTGRES_PASSWORD") or os.getenv("PGPASSWORD")
    db = os.getenv("POSTGRES_DB")
    port = os.getenv("POSTGRES_PORT")

    if "://" in postgres_url:
        parsed = urlparse(_normalize_sqlalchemy_database_url(postgres_url))
        host = parsed.hostname or "localhost"
        url_port = parsed.port
        db = db or parsed.path.lstrip("/")
        user = user or parsed.username
        password = password or parsed.password
    else:
        host, _, host_port = postgres_url.strip().partition(":")
        url_port = int(host_port) if host_port.isdigit() else None

    final_port = int(port) if (port and port.isdigit()) else (url_port or 5432)

    if not (user and password and db):
        raise DatabaseConfigError(f"Database configuration incomplete. {_DB_CONFIG_HINT}")

    return f"postgresql+psycopg2://{user}:{password}@{host}:{final_port}/{db}"


_ENGINE: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


# PUBLIC_INTERFACE
def configure_engine(engine: Engine) -> None:
    """Install an already-built Engine (used by tests and tooling)."""
    global _ENGINE, _SessionLocal
    _ENGINE = engine
    _SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


# PUBLIC_INTERFACE
def get_engine() -> Engine:
    """Return (and lazily create) the SQLAlchemy Engine."""
    if _ENGINE is None:
        url = _build_database_url()
        logger.info("DB: using database url=%s", _redact_sqlalchemy_url(url))
        configure_engine(create_engine(url, pool_pre_ping=True))
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Yield a SQLAlchemy Session, handling commit/rollback.

    Usage:
        with get_db_session() as db:
            ...
    """
    get_engine()
    assert _SessionLocal is not None  # created by get_engine()
    db = _SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# PUBLIC_INTERFACE
def db_session_dep() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session and returns clear JSON errors.

    Missing configuration and connection/query failures both surface as
    HTTP 503 instead of a generic 500.
    """
    try:
        with get_db_session() as db:
            yield db
    except DatabaseConfigError as exc:
        raise HTTPException(
            status_code=503,
            detail={
                "error": "database_misconfigured",
                "message": str(exc),
                "hint": _DB_CONFIG_HINT,
            },
        )
    except SQLAlchemyError as exc:
        logger.exception("db_session_failed: exc=%s", exc.__class__.__name__)
        raise HTTPException(
            status_code=503,
            detail={
                "error": "database_unavailable",
                "message": "Database connection/query failed.",
                "exception": exc.__class__.__name__,
            },
        )
