"""
Rebuild the Meilisearch `maps` index from the database (drop + recreate + load).

Usage:
  paradb-rebuild-search
  python -m src.migrations.rebuild_search

Reads DATABASE_URL / POSTGRES_* and MEILISEARCH_HOST / MEILISEARCH_KEY from
the environment (or .env). Any failure aborts the run without rolling back;
re-run the whole job to recover.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, List

from src.api.config import load_env
from src.api.db import get_db_session
from src.api.maps_repo import find_maps, project_for_search
from src.api.models import Map
from src.api.result import Result
from src.api.search import (
    MAP_FILTERABLE_ATTRIBUTES,
    MAP_RANKING_RULES,
    MAP_SEARCHABLE_ATTRIBUTES,
    MAP_SORTABLE_ATTRIBUTES,
    MAPS_INDEX,
    MAPS_PRIMARY_KEY,
    create_search_client,
    delete_index_if_present,
    wait_for_tasks,
)

logger = logging.getLogger("paradb.rebuild_search")


class MapsFetchError(RuntimeError):
    """Reading maps from the database failed; carries the serialized error descriptors."""


def fetch_maps_from_db() -> Result[List[Map]]:
    with get_db_session() as db:
        return find_maps(db)


# PUBLIC_INTERFACE
def rebuild_maps_index(client: Any, fetch_maps: Callable[[], Result[List[Map]]]) -> None:
    """
    Drop and recreate the maps index, configure it and load every map.

    The search service is not touched when `fetch_maps` fails. Returns only
    once every issued task has succeeded; otherwise raises.
    """
    maps_result = fetch_maps()
    if not maps_result.success:
        raise MapsFetchError(maps_result.to_json())

    logger.info("Deleting old indexes")
    delete_index_if_present(client, MAPS_INDEX)

    logger.info("Creating new indexes")
    wait_for_tasks(client, [client.create_index(MAPS_INDEX).task_uid])
    logger.info("Getting index")
    maps_index = client.get_index(MAPS_INDEX)

    logger.info("Setting up attribute fields")
    tasks = [
        maps_index.update_ranking_rules(list(MAP_RANKING_RULES)),
        maps_index.update_searchable_attributes(list(MAP_SEARCHABLE_ATTRIBUTES)),
        maps_index.update_filterable_attributes(list(MAP_FILTERABLE_ATTRIBUTES)),
        maps_index.update_sortable_attributes(list(MAP_SORTABLE_ATTRIBUTES)),
    ]

    logger.info("Adding data")
    documents = [project_for_search(m) for m in maps_result.value]
    tasks.append(maps_index.add_documents(documents, primary_key=MAPS_PRIMARY_KEY))

    wait_for_tasks(client, [t.task_uid for t in tasks])
    logger.info("Done!")


def _configure_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


def main() -> int:
    load_env()
    _configure_logging()
    rebuild_maps_index(create_search_client(), fetch_maps_from_db)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
