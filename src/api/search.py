"""
Meilisearch access for the `maps` index.

Holds the index configuration shared by the rebuild job and the live API,
a "wait for all tasks" barrier, and the per-map sync used when maps are
created or deleted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import meilisearch

from src.api.config import ConfigError, get_env_vars, search_task_timeout_ms
from src.api.maps_repo import SearchMap

logger = logging.getLogger(__name__)

MAPS_INDEX = "maps"
MAPS_PRIMARY_KEY = "id"

MAP_RANKING_RULES = ("sort", "words", "typo", "proximity", "attribute", "exactness")
MAP_SEARCHABLE_ATTRIBUTES = ("title", "artist", "author", "description")
MAP_FILTERABLE_ATTRIBUTES = ("artist", "author", "uploader")
MAP_SORTABLE_ATTRIBUTES = ("title", "artist", "author", "uploader")

_TASK_SUCCEEDED = "succeeded"
_INDEX_NOT_FOUND = "index_not_found"

_CLIENT: Optional[meilisearch.Client] = None


class SearchTaskFailedError(RuntimeError):
    """One or more index tasks ended in a non-successful terminal state."""

    def __init__(self, failures: Sequence[Dict[str, Any]]):
        self.failures = list(failures)
        summary = ", ".join(
            f"task {f['uid']} {f['status']}" + (f" ({f['error']})" if f.get("error") else "")
            for f in self.failures
        )
        super().__init__(f"Search index task(s) did not succeed: {summary}")


# PUBLIC_INTERFACE
def create_search_client() -> meilisearch.Client:
    """Build a Meilisearch client from MEILISEARCH_HOST / MEILISEARCH_KEY."""
    env = get_env_vars()
    if not env.meilisearch_host:
        raise ConfigError("MEILISEARCH_HOST env var is required for search.")
    return meilisearch.Client(env.meilisearch_host, env.meilisearch_key)


# PUBLIC_INTERFACE
def get_search_client() -> meilisearch.Client:
    """Return (and lazily create) the process-wide Meilisearch client."""
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = create_search_client()
    return _CLIENT


def set_search_client(client: Optional[Any]) -> None:
    """Replace the process-wide client (None resets to lazy creation)."""
    global _CLIENT
    _CLIENT = client


# PUBLIC_INTERFACE
def wait_for_tasks(client: Any, task_uids: Iterable[int], timeout_ms: Optional[int] = None) -> None:
    """
    Block until every task reaches a terminal state.

    Every task is awaited even after one fails, so the raised
    `SearchTaskFailedError` lists all failures at once.
    """
    timeout = timeout_ms if timeout_ms is not None else search_task_timeout_ms()
    failures = []
    for uid in task_uids:
        task = client.wait_for_task(uid, timeout_in_ms=timeout)
        if task.status != _TASK_SUCCEEDED:
            failures.append({"uid": uid, "status": task.status, "error": task.error})
            logger.error("search_task_failed: uid=%s status=%s error=%s", uid, task.status, task.error)
    if failures:
        raise SearchTaskFailedError(failures)


# PUBLIC_INTERFACE
def delete_index_if_present(client: Any, uid: str, timeout_ms: Optional[int] = None) -> bool:
    """
    Delete an index and wait for the deletion task.

    Returns False when the index did not exist; any other failed deletion
    raises `SearchTaskFailedError`.
    """
    timeout = timeout_ms if timeout_ms is not None else search_task_timeout_ms()
    task_uid = client.delete_index(uid).task_uid
    task = client.wait_for_task(task_uid, timeout_in_ms=timeout)
    if task.status == _TASK_SUCCEEDED:
        return True
    if task.error and task.error.get("code") == _INDEX_NOT_FOUND:
        logger.info("search_index_absent: uid=%s", uid)
        return False
    logger.error("search_task_failed: uid=%s status=%s error=%s", task_uid, task.status, task.error)
    raise SearchTaskFailedError([{"uid": task_uid, "status": task.status, "error": task.error}])


def _quote_filter_value(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# PUBLIC_INTERFACE
def build_filter(filters: Dict[str, Optional[str]]) -> List[str]:
    """Turn `{attribute: value}` equality filters into Meilisearch filter expressions."""
    expressions = []
    for attribute, value in filters.items():
        if value is None:
            continue
        if attribute not in MAP_FILTERABLE_ATTRIBUTES:
            raise ValueError(f"{attribute} is not a filterable attribute.")
        expressions.append(f"{attribute} = {_quote_filter_value(value)}")
    return expressions


# PUBLIC_INTERFACE
def search_maps(
    client: Any,
    query: str,
    *,
    sort: Optional[str] = None,
    descending: bool = False,
    filters: Optional[Dict[str, Optional[str]]] = None,
    offset: int = 0,
    limit: int = 20,
) -> Dict[str, Any]:
    """Run a query against the maps index; returns `{hits, estimatedTotalHits, offset, limit}`."""
    params: Dict[str, Any] = {"offset": offset, "limit": limit}
    if sort is not None:
        if sort not in MAP_SORTABLE_ATTRIBUTES:
            raise ValueError(f"{sort} is not a sortable attribute.")
        params["sort"] = [f"{sort}:{'desc' if descending else 'asc'}"]
    expressions = build_filter(filters or {})
    if expressions:
        params["filter"] = expressions

    response = client.index(MAPS_INDEX).search(query, params)
    return {
        "hits": response.get("hits", []),
        "estimatedTotalHits": response.get("estimatedTotalHits", len(response.get("hits", []))),
        "offset": offset,
        "limit": limit,
    }


# PUBLIC_INTERFACE
def sync_map_document(client: Any, document: SearchMap) -> None:
    """Upsert one map document and wait for the index to apply it."""
    task = client.index(MAPS_INDEX).add_documents([document], primary_key=MAPS_PRIMARY_KEY)
    wait_for_tasks(client, [task.task_uid])


# PUBLIC_INTERFACE
def remove_map_document(client: Any, map_id: str) -> None:
    task = client.index(MAPS_INDEX).delete_document(map_id)
    wait_for_tasks(client, [task.task_uid])
