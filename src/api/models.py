"""
SQLAlchemy models for the ParaDB schema (users, maps, difficulties, favorites).

Column names and types follow the production PostgreSQL schema; ids are
application-generated varchar keys.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import CHAR, DateTime, ForeignKey, Integer, LargeBinary, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class AccountStatus(str, enum.Enum):
    ACTIVE = "A"
    DISABLED = "D"


class EmailStatus(str, enum.Enum):
    UNVERIFIED = "U"
    VERIFIED = "V"


class User(Base):
    """User account row. `password` holds the bcrypt hash as raw bytes."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    creation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    account_status: Mapped[str] = mapped_column(CHAR(1), nullable=False)
    username: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    email_status: Mapped[str] = mapped_column(CHAR(1), nullable=False)
    password: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    password_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    maps: Mapped[List["Map"]] = relationship("Map", back_populates="uploader_user")
    favorites: Mapped[List["Favorite"]] = relationship(
        "Favorite",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Map(Base):
    """Submitted map row. `uploader` references users.id."""

    __tablename__ = "maps"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    submission_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    artist: Mapped[str] = mapped_column(String, nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    uploader: Mapped[str] = mapped_column(
        String,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    album_art: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    complexity: Mapped[int] = mapped_column(Integer, nullable=False)

    uploader_user: Mapped[User] = relationship("User", back_populates="maps")
    difficulties: Mapped[List["Difficulty"]] = relationship(
        "Difficulty",
        back_populates="map",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Difficulty.difficulty_name",
    )
    favorites: Mapped[List["Favorite"]] = relationship(
        "Favorite",
        back_populates="map",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Difficulty(Base):
    """One playable difficulty of a map; lives and dies with the map."""

    __tablename__ = "difficulties"

    map_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("maps.id", ondelete="CASCADE"),
        primary_key=True,
    )
    difficulty_name: Mapped[str] = mapped_column(String, primary_key=True)
    difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    map: Mapped[Map] = relationship("Map", back_populates="difficulties")


class Favorite(Base):
    """A user's favorite of a map at `favorited_date`."""

    __tablename__ = "favorites"

    map_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("maps.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    favorited_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    map: Mapped[Map] = relationship("Map", back_populates="favorites")
    user: Mapped[User] = relationship("User", back_populates="favorites")
