"""
Favorites: which users favorited which maps.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.api.models import Favorite, Map
from src.api.result import Result, ResultError, ResultErrorDetail, err, ok


# PUBLIC_INTERFACE
def set_favorites(db: Session, user_id: str, map_ids: Sequence[str], is_favorite: bool) -> Result[None]:
    """
    Favorite or unfavorite a batch of maps. Idempotent in both directions.

    Unknown map ids fail the whole batch.
    """
    wanted = list(dict.fromkeys(map_ids))
    if not wanted:
        return ok(None)

    try:
        existing_maps = set(db.execute(select(Map.id).where(Map.id.in_(wanted))).scalars())
        missing = [m for m in wanted if m not in existing_maps]
        if missing:
            return ResultError(
                [ResultErrorDetail("missing_map", f"Map {m} does not exist.") for m in missing]
            )

        if not is_favorite:
            db.execute(
                delete(Favorite).where(Favorite.user_id == user_id, Favorite.map_id.in_(wanted))
            )
            db.flush()
            return ok(None)

        already = set(
            db.execute(
                select(Favorite.map_id).where(
                    Favorite.user_id == user_id, Favorite.map_id.in_(wanted)
                )
            ).scalars()
        )
        now = datetime.now(timezone.utc)
        db.add_all(
            Favorite(map_id=m, user_id=user_id, favorited_date=now)
            for m in wanted
            if m not in already
        )
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        return err("db_error", f"set_favorites failed ({exc.__class__.__name__})")
    return ok(None)


# PUBLIC_INTERFACE
def get_user_favorites(db: Session, user_id: str) -> List[Map]:
    """Maps the user has favorited, most recently favorited first."""
    return list(
        db.execute(
            select(Map)
            .join(Favorite, Favorite.map_id == Map.id)
            .options(selectinload(Map.difficulties))
            .where(Favorite.user_id == user_id)
            .order_by(desc(Favorite.favorited_date), Map.id)
        ).scalars()
    )


def is_favorited(db: Session, user_id: str, map_id: str) -> bool:
    return db.get(Favorite, (map_id, user_id)) is not None


def count_favorites(db: Session, map_id: str) -> int:
    return db.execute(
        select(func.count()).select_from(Favorite).where(Favorite.map_id == map_id)
    ).scalar_one()
