"""
Favorite endpoints (authenticated):
- GET  /api/favorites      (maps the caller favorited)
- POST /api/favorites/set  (favorite / unfavorite a batch of maps)
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.auth import get_current_user
from src.api.db import db_session_dep
from src.api.errors import raise_result_error
from src.api.favorites_repo import get_user_favorites, set_favorites
from src.api.models import User
from src.api.schemas import MapResponse, SetFavoritesRequest

router = APIRouter(prefix="/api/favorites", tags=["Favorites"])


@router.get(
    "",
    response_model=List[MapResponse],
    summary="List my favorites",
    operation_id="list_favorites",
)
def list_favorites(
    db: Session = Depends(db_session_dep),
    user: User = Depends(get_current_user),
) -> List[MapResponse]:
    return [
        MapResponse.model_validate(m).model_copy(update={"user_favorited": True})
        for m in get_user_favorites(db, user.id)
    ]


@router.post(
    "/set",
    status_code=204,
    summary="Set favorite state",
    operation_id="set_favorites",
)
def set_favorites_route(
    req: SetFavoritesRequest,
    db: Session = Depends(db_session_dep),
    user: User = Depends(get_current_user),
) -> None:
    result = set_favorites(db, user.id, req.map_ids, req.is_favorite)
    if not result.success:
        raise_result_error(result)
    db.commit()
