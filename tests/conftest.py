"""
Shared fixtures for the test suite.

The database is an in-memory SQLite engine shared across sessions (StaticPool)
and Meilisearch is replaced by `FakeMeilisearch`, which applies every task
synchronously and records the calls it receives.
"""

import os
import re
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from src.api.auth import create_access_token
from src.api.db import configure_engine, get_db_session
from src.api.models import Base
from src.api.search import set_search_client
from src.api.users_repo import create_user

_FILTER_RE = re.compile(r'^(\w+) = "((?:[^"\\]|\\.)*)"$')


class FakeTaskError(Exception):
    """Raised inside a fake task to mark it failed with a Meilisearch error code."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class FakeIndex:
    def __init__(self, client: "FakeMeilisearch", uid: str):
        self.client = client
        self.uid = uid
        self.primary_key: Optional[str] = None
        self.documents: Dict[Any, Dict[str, Any]] = {}
        self.settings: Dict[str, List[str]] = {}

    def _update_setting(self, name: str, values: List[str]):
        return self.client._enqueue(
            f"settingsUpdate:{name}", lambda: self.settings.__setitem__(name, list(values))
        )

    def update_ranking_rules(self, body):
        return self._update_setting("rankingRules", body)

    def update_searchable_attributes(self, body):
        return self._update_setting("searchableAttributes", body)

    def update_filterable_attributes(self, body):
        return self._update_setting("filterableAttributes", body)

    def update_sortable_attributes(self, body):
        return self._update_setting("sortableAttributes", body)

    def add_documents(self, documents, primary_key=None):
        documents = [dict(d) for d in documents]
        self.client.added_batches.append((self.uid, documents, primary_key))

        def apply():
            self.primary_key = self.primary_key or primary_key or "id"
            for doc in documents:
                self.documents[doc[self.primary_key]] = doc

        return self.client._enqueue("documentAdditionOrUpdate", apply)

    def delete_document(self, document_id):
        return self.client._enqueue(
            "documentDeletion", lambda: self.documents.pop(document_id, None)
        )

    def search(self, query, opt_params=None):
        params = opt_params or {}
        hits = list(self.documents.values())
        if query:
            attributes = self.settings.get("searchableAttributes")
            q = query.lower()
            hits = [
                d
                for d in hits
                if any(
                    q in str(v).lower()
                    for k, v in d.items()
                    if v is not None and (attributes is None or k in attributes)
                )
            ]
        for expression in params.get("filter", []):
            attribute, raw = _FILTER_RE.match(expression).groups()
            value = re.sub(r"\\(.)", r"\1", raw)
            hits = [d for d in hits if d.get(attribute) == value]
        for rule in reversed(params.get("sort", [])):
            attribute, direction = rule.split(":")
            hits.sort(key=lambda d: (d.get(attribute) is None, d.get(attribute) or ""), reverse=direction == "desc")
        self.client.searches.append((self.uid, query, params))
        offset, limit = params.get("offset", 0), params.get("limit", 20)
        return {
            "hits": hits[offset : offset + limit],
            "estimatedTotalHits": len(hits),
            "offset": offset,
            "limit": limit,
            "query": query,
        }


class FakeMeilisearch:
    """In-memory stand-in for `meilisearch.Client` covering the calls the app makes."""

    def __init__(self):
        self.indexes: Dict[str, FakeIndex] = {}
        self.tasks: Dict[int, SimpleNamespace] = {}
        self.calls: List[str] = []
        self.waited: List[int] = []
        self.added_batches: List[Any] = []
        self.searches: List[Any] = []
        self.fail_task_types = set()
        self._next_uid = 0

    def _enqueue(self, task_type: str, apply):
        uid = self._next_uid
        self._next_uid += 1
        self.calls.append(task_type)
        if task_type in self.fail_task_types:
            self.tasks[uid] = SimpleNamespace(
                status="failed", error={"code": "internal", "message": f"{task_type} failed"}
            )
        else:
            try:
                apply()
            except FakeTaskError as exc:
                self.tasks[uid] = SimpleNamespace(
                    status="failed", error={"code": exc.code, "message": str(exc)}
                )
            else:
                self.tasks[uid] = SimpleNamespace(status="succeeded", error=None)
        return SimpleNamespace(task_uid=uid)

    def delete_index(self, uid):
        def apply():
            if self.indexes.pop(uid, None) is None:
                raise FakeTaskError("index_not_found", f"Index `{uid}` not found.")

        return self._enqueue("indexDeletion", apply)

    def create_index(self, uid, options=None):
        def apply():
            if uid in self.indexes:
                raise FakeTaskError("index_already_exists", f"Index `{uid}` already exists.")
            self.indexes[uid] = FakeIndex(self, uid)

        return self._enqueue("indexCreation", apply)

    def get_index(self, uid):
        self.calls.append("getIndex")
        return self.indexes[uid]

    def index(self, uid):
        if uid not in self.indexes:
            self.indexes[uid] = FakeIndex(self, uid)
        return self.indexes[uid]

    def wait_for_task(self, uid, timeout_in_ms=5000, interval_in_ms=50):
        self.waited.append(uid)
        return self.tasks[uid]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    configure_engine(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    with get_db_session() as session:
        yield session


@pytest.fixture
def search_client():
    fake = FakeMeilisearch()
    set_search_client(fake)
    yield fake
    set_search_client(None)


@pytest.fixture
def client(engine, search_client):
    from src.api.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(engine):
    """Create a committed user and return `(user, auth_headers)`."""

    def _make(username="kiyo", email=None, password="hunter2hunter2"):
        with get_db_session() as session:
            result = create_user(
                session, username=username, email=email or f"{username}@example.com", password=password
            )
            assert result.success, result
            user = result.value
        token = create_access_token(user_id=user.id, username=user.username)
        return user, {"Authorization": f"Bearer {token}"}

    return _make
