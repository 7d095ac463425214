"""
Pydantic models (request/response shapes) for API endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    username: str = Field(
        ...,
        min_length=3,
        max_length=32,
        pattern=r"^[^@\s]+$",
        description="Unique username (no '@' or whitespace, so it can't collide with an email).",
    )
    email: EmailStr = Field(..., description="User email address (unique).")
    password: str = Field(..., min_length=8, max_length=72, description="Password (8-72 chars).")


class LoginRequest(BaseModel):
    username: str = Field(..., description="Username or email address.")
    password: str = Field(..., description="User password.")


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., description="Current password.")
    new_password: str = Field(..., min_length=8, max_length=72, description="New password.")


class AuthTokenResponse(BaseModel):
    token: str = Field(..., description="JWT access token.")
    token_type: str = Field("bearer", description="Token type for Authorization header.")


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    creation_date: datetime
    account_status: str
    email_status: str


class DifficultyModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    difficulty_name: str = Field(..., min_length=1, description="Difficulty name, e.g. 'Expert'.")
    difficulty: Optional[int] = Field(None, description="Numeric difficulty rating, if known.")


class MapCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    artist: str = Field(..., min_length=1)
    author: Optional[str] = None
    description: Optional[str] = None
    album_art: Optional[str] = Field(None, description="Album art file name under MAPS_DIR.")
    complexity: int = Field(..., ge=0)
    difficulties: List[DifficultyModel] = Field(default_factory=list)


class MapResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    submission_date: datetime
    title: str
    artist: str
    author: Optional[str] = None
    uploader: str
    description: Optional[str] = None
    album_art: Optional[str] = None
    complexity: int
    difficulties: List[DifficultyModel] = Field(default_factory=list)
    favorite_count: Optional[int] = Field(None, description="Number of users who favorited the map.")
    user_favorited: Optional[bool] = Field(None, description="Whether the caller favorited it.")


class MapSearchResponse(BaseModel):
    hits: List[Dict[str, Any]]
    estimated_total_hits: int = Field(..., alias="estimatedTotalHits")
    offset: int
    limit: int

    model_config = ConfigDict(populate_by_name=True)


class SetFavoritesRequest(BaseModel):
    map_ids: List[str] = Field(..., description="Map ids to change.")
    is_favorite: bool = Field(..., description="True to favorite, False to unfavorite.")
