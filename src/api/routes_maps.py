"""
Map endpoints:
- GET    /api/maps              (list all maps)
- GET    /api/maps/search       (full-text search via Meilisearch)
- GET    /api/maps/{id}
- POST   /api/maps              (authenticated submit)
- DELETE /api/maps/{id}         (uploader only)

Writes go to the database first; the search index is updated afterwards and
a failed index update only gets logged. `paradb-rebuild-search` repairs drift.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from meilisearch.errors import MeilisearchError
from sqlalchemy.orm import Session

from src.api.auth import get_current_user, get_optional_user
from src.api.config import ConfigError
from src.api.db import db_session_dep
from src.api.errors import raise_result_error
from src.api.favorites_repo import count_favorites, is_favorited
from src.api.maps_repo import create_map, delete_map, find_maps, get_map, project_for_search
from src.api.models import Map, User
from src.api.schemas import MapCreateRequest, MapResponse, MapSearchResponse
from src.api.search import (
    MAP_SORTABLE_ATTRIBUTES,
    SearchTaskFailedError,
    get_search_client,
    remove_map_document,
    search_maps,
    sync_map_document,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/maps", tags=["Maps"])


def search_client_dep() -> Any:
    """FastAPI dependency returning the Meilisearch client, 503 if unconfigured."""
    try:
        return get_search_client()
    except ConfigError as exc:
        raise HTTPException(
            status_code=503,
            detail={"error": "search_unavailable", "message": str(exc)},
        )


def _try_search_sync(action: str, map_id: str, fn: Callable[[], None]) -> None:
    try:
        fn()
    except (ConfigError, MeilisearchError, SearchTaskFailedError) as exc:
        logger.exception(
            "search_sync_failed: action=%s map_id=%s exc=%s", action, map_id, exc.__class__.__name__
        )


def _map_response(db: Session, m: Map, user: Optional[User]) -> MapResponse:
    resp = MapResponse.model_validate(m)
    resp.favorite_count = count_favorites(db, m.id)
    if user is not None:
        resp.user_favorited = is_favorited(db, user.id, m.id)
    return resp


@router.get(
    "",
    response_model=List[MapResponse],
    summary="List all maps",
    description="Returns every map, newest submission first.",
    operation_id="list_maps",
)
def list_maps(db: Session = Depends(db_session_dep)) -> List[MapResponse]:
    result = find_maps(db)
    if not result.success:
        raise_result_error(result)
    return [MapResponse.model_validate(m) for m in result.value]


@router.get(
    "/search",
    response_model=MapSearchResponse,
    summary="Search maps",
    description=(
        "Full-text search over title, artist, author and description. "
        f"Sortable by: {', '.join(MAP_SORTABLE_ATTRIBUTES)}."
    ),
    operation_id="search_maps",
)
def search(
    query: str = Query("", description="Search text."),
    sort: Optional[str] = Query(None, description="Attribute to sort by."),
    order: Literal["asc", "desc"] = Query("asc"),
    artist: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    uploader: Optional[str] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=200),
    client: Any = Depends(search_client_dep),
) -> MapSearchResponse:
    if sort is not None and sort not in MAP_SORTABLE_ATTRIBUTES:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_sort", "message": f"Cannot sort by {sort}."},
        )
    try:
        result = search_maps(
            client,
            query,
            sort=sort,
            descending=order == "desc",
            filters={"artist": artist, "author": author, "uploader": uploader},
            offset=offset,
            limit=limit,
        )
    except MeilisearchError as exc:
        logger.warning("search_failed: query=%r exc=%s", query, exc.__class__.__name__)
        raise HTTPException(
            status_code=503,
            detail={"error": "search_unavailable", "message": "Search service request failed."},
        )
    return MapSearchResponse(**result)


@router.get(
    "/{map_id}",
    response_model=MapResponse,
    summary="Get a map",
    operation_id="get_map",
    responses={404: {"description": "Not found"}},
)
def get_map_route(
    map_id: str,
    db: Session = Depends(db_session_dep),
    user: Optional[User] = Depends(get_optional_user),
) -> MapResponse:
    result = get_map(db, map_id)
    if not result.success:
        raise_result_error(result)
    return _map_response(db, result.value, user)


@router.post(
    "",
    response_model=MapResponse,
    status_code=201,
    summary="Submit a map",
    description="Stores map metadata and difficulties, then indexes it for search.",
    operation_id="submit_map",
)
def submit_map(
    req: MapCreateRequest,
    db: Session = Depends(db_session_dep),
    user: User = Depends(get_current_user),
) -> MapResponse:
    result = create_map(
        db,
        uploader_id=user.id,
        title=req.title.strip(),
        artist=req.artist.strip(),
        author=req.author,
        description=req.description,
        album_art=req.album_art,
        complexity=req.complexity,
        difficulties=[(d.difficulty_name, d.difficulty) for d in req.difficulties],
    )
    if not result.success:
        raise_result_error(result)
    db.commit()

    new_map = result.value
    logger.info("map_submitted: map_id=%s uploader=%s", new_map.id, user.id)
    _try_search_sync(
        "upsert",
        new_map.id,
        lambda: sync_map_document(get_search_client(), project_for_search(new_map)),
    )
    return _map_response(db, new_map, user)


@router.delete(
    "/{map_id}",
    status_code=204,
    summary="Delete a map",
    operation_id="delete_map",
)
def delete_map_route(
    map_id: str,
    db: Session = Depends(db_session_dep),
    user: User = Depends(get_current_user),
) -> None:
    result = delete_map(db, map_id, user.id)
    if not result.success:
        raise_result_error(result)
    db.commit()

    logger.info("map_deleted: map_id=%s by=%s", map_id, user.id)
    _try_search_sync("delete", map_id, lambda: remove_map_document(get_search_client(), map_id))
