"""
Map storage access and the flattened document shape pushed to the search index.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.api.models import Difficulty, Map, User
from src.api.result import Result, err, ok

logger = logging.getLogger(__name__)

# Searchable map document, as stored in the search index.
SearchMap = Dict[str, Any]


def _db_error(action: str, exc: SQLAlchemyError) -> Result:
    logger.warning("maps_repo_%s_failed: exc=%s", action, exc.__class__.__name__)
    return err("db_error", f"{action} failed ({exc.__class__.__name__})")


# PUBLIC_INTERFACE
def find_maps(db: Session) -> Result[List[Map]]:
    """
    Return every map, newest submission first, with difficulties loaded.

    All-or-nothing: any database failure yields a `db_error` result and no maps.
    """
    try:
        maps = (
            db.execute(
                select(Map)
                .options(selectinload(Map.difficulties))
                .order_by(desc(Map.submission_date), Map.id)
            )
            .scalars()
            .all()
        )
    except SQLAlchemyError as exc:
        db.rollback()
        return _db_error("find_maps", exc)
    return ok(list(maps))


# PUBLIC_INTERFACE
def get_map(db: Session, map_id: str) -> Result[Map]:
    try:
        found = db.execute(
            select(Map).options(selectinload(Map.difficulties)).where(Map.id == map_id)
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        db.rollback()
        return _db_error("get_map", exc)
    if found is None:
        return err("missing_map", f"Map {map_id} does not exist.")
    return ok(found)


# PUBLIC_INTERFACE
def create_map(
    db: Session,
    *,
    uploader_id: str,
    title: str,
    artist: str,
    complexity: int,
    author: Optional[str] = None,
    description: Optional[str] = None,
    album_art: Optional[str] = None,
    difficulties: Sequence[Tuple[str, Optional[int]]] = (),
) -> Result[Map]:
    """Insert a map and its difficulties in one flush."""
    try:
        if db.get(User, uploader_id) is None:
            return err("missing_user", f"User {uploader_id} does not exist.")

        new_map = Map(
            id=str(uuid.uuid4()),
            submission_date=datetime.now(timezone.utc),
            title=title,
            artist=artist,
            author=author,
            uploader=uploader_id,
            description=description,
            album_art=album_art,
            complexity=complexity,
            difficulties=[
                Difficulty(difficulty_name=name, difficulty=rating) for name, rating in difficulties
            ],
        )
        db.add(new_map)
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        return _db_error("create_map", exc)
    return ok(new_map)


# PUBLIC_INTERFACE
def delete_map(db: Session, map_id: str, requester_id: str) -> Result[None]:
    """Delete a map (and its difficulties/favorites). Only the uploader may delete."""
    found = get_map(db, map_id)
    if not found.success:
        return found
    if found.value.uploader != requester_id:
        return err("forbidden", "Only the uploader can delete this map.")
    try:
        db.delete(found.value)
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        return _db_error("delete_map", exc)
    return ok(None)


# PUBLIC_INTERFACE
def project_for_search(m: Map) -> SearchMap:
    """Flatten a map into the search document. Values are copied verbatim."""
    return {
        "id": m.id,
        "title": m.title,
        "artist": m.artist,
        "author": m.author,
        "uploader": m.uploader,
        "description": m.description,
    }
