from src.api.search import MAPS_INDEX
from src.api.users_repo import authenticate


def _signup(client, username="kiyo", email=None, password="hunter2hunter2"):
    return client.post(
        "/api/users/signup",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
    )


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def _submit(client, headers, **overrides):
    body = {
        "title": "Through the Fire",
        "artist": "DragonForce",
        "author": "charter",
        "description": "fast",
        "complexity": 5,
        "difficulties": [{"difficulty_name": "Expert", "difficulty": 15}],
    }
    body.update(overrides)
    return client.post("/api/maps", json=body, headers=headers)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_login_and_me(client):
    resp = _signup(client)
    assert resp.status_code == 200
    token = resp.json()["token"]

    me = client.get("/api/users/me", headers=_auth(token))
    assert me.status_code == 200
    assert me.json()["username"] == "kiyo"
    assert me.json()["account_status"] == "A"
    assert me.json()["email_status"] == "U"

    by_email = client.post(
        "/api/users/login", json={"username": "KIYO@example.com", "password": "hunter2hunter2"}
    )
    assert by_email.status_code == 200

    wrong = client.post("/api/users/login", json={"username": "kiyo", "password": "nope-nope"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"]["error"] == "invalid_login"


def test_duplicate_signup_reports_both_conflicts(client):
    _signup(client)
    resp = _signup(client, username="Kiyo", email="kiyo@example.com")
    assert resp.status_code == 400
    assert [e["type"] for e in resp.json()["detail"]["errors"]] == ["username_taken", "email_taken"]


def test_change_password(client):
    token = _signup(client).json()["token"]

    bad = client.post(
        "/api/users/change-password",
        json={"old_password": "wrong-password", "new_password": "another-secret"},
        headers=_auth(token),
    )
    assert bad.status_code == 400

    ok = client.post(
        "/api/users/change-password",
        json={"old_password": "hunter2hunter2", "new_password": "another-secret"},
        headers=_auth(token),
    )
    assert ok.status_code == 204
    assert client.post(
        "/api/users/login", json={"username": "kiyo", "password": "another-secret"}
    ).status_code == 200


def test_me_requires_token(client):
    assert client.get("/api/users/me").status_code == 401
    assert client.get("/api/users/me", headers=_auth("garbage")).status_code == 401


def test_signup_rejects_email_like_username(client):
    resp = _signup(client, username="kiyo@example.com", email="other@example.com")
    assert resp.status_code == 422

    assert _signup(client, username="two words", email="two@example.com").status_code == 422


def test_login_prefers_email_when_username_collides(client, db, make_user):
    owner, _ = make_user(username="owner", email="shared@example.com")
    # Accounts from before usernames were restricted can still hold an email.
    impostor, _ = make_user(username="shared@example.com", email="impostor@example.com")

    found = authenticate(db, login="Shared@example.com", password="hunter2hunter2")
    assert found.success
    assert found.value.id == owner.id

    resp = client.post(
        "/api/users/login", json={"username": "shared@example.com", "password": "hunter2hunter2"}
    )
    assert resp.status_code == 200
    me = client.get("/api/users/me", headers=_auth(resp.json()["token"]))
    assert me.json()["id"] == owner.id != impostor.id


def test_missing_jwt_secret_is_a_server_error(client, monkeypatch):
    monkeypatch.delenv("JWT_SECRET")

    resp = _signup(client)
    assert resp.status_code == 500
    assert resp.json()["detail"]["error"] == "server_misconfigured"


def test_sentry_reports_client_and_server_errors():
    from src.api.main import sentry_integrations

    for integration in sentry_integrations():
        assert {400, 404, 422, 500, 503} <= set(integration.failed_request_status_codes)


def test_submit_map_indexes_it_for_search(client, search_client):
    headers = _auth(_signup(client).json()["token"])

    resp = _submit(client, headers)
    assert resp.status_code == 201
    created = resp.json()
    assert created["difficulties"] == [{"difficulty_name": "Expert", "difficulty": 15}]
    assert created["favorite_count"] == 0

    doc = search_client.indexes[MAPS_INDEX].documents[created["id"]]
    assert doc == {
        "id": created["id"],
        "title": "Through the Fire",
        "artist": "DragonForce",
        "author": "charter",
        "uploader": created["uploader"],
        "description": "fast",
    }

    found = client.get("/api/maps/search", params={"query": "fire"})
    assert found.status_code == 200
    assert [h["id"] for h in found.json()["hits"]] == [created["id"]]
    assert found.json()["estimatedTotalHits"] == 1


def test_submit_map_survives_search_outage(client, search_client):
    headers = _auth(_signup(client).json()["token"])
    search_client.fail_task_types = {"documentAdditionOrUpdate"}

    resp = _submit(client, headers)

    assert resp.status_code == 201
    assert client.get(f"/api/maps/{resp.json()['id']}").status_code == 200


def test_submit_map_requires_auth(client):
    assert _submit(client, {}).status_code == 401


def test_list_and_get_maps(client):
    headers = _auth(_signup(client).json()["token"])
    first = _submit(client, headers, title="One").json()
    second = _submit(client, headers, title="Two").json()

    listed = client.get("/api/maps").json()
    assert {m["id"] for m in listed} == {first["id"], second["id"]}

    assert client.get(f"/api/maps/{first['id']}").json()["title"] == "One"
    missing = client.get("/api/maps/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["detail"]["error"] == "missing_map"


def test_search_filters_and_validates_sort(client, search_client):
    headers = _auth(_signup(client).json()["token"])
    _submit(client, headers, title="B side", artist="X")
    _submit(client, headers, title="A side", artist="X")
    _submit(client, headers, title="C side", artist="Y")

    resp = client.get("/api/maps/search", params={"artist": "X", "sort": "title", "order": "asc"})
    assert [h["title"] for h in resp.json()["hits"]] == ["A side", "B side"]

    bad = client.get("/api/maps/search", params={"sort": "complexity"})
    assert bad.status_code == 400
    assert bad.json()["detail"]["error"] == "invalid_sort"


def test_delete_map_only_by_uploader(client, search_client):
    owner = _auth(_signup(client, username="owner").json()["token"])
    other = _auth(_signup(client, username="other").json()["token"])
    map_id = _submit(client, owner).json()["id"]

    assert client.delete(f"/api/maps/{map_id}", headers=other).status_code == 403
    assert client.delete(f"/api/maps/{map_id}", headers=owner).status_code == 204
    assert client.get(f"/api/maps/{map_id}").status_code == 404
    assert map_id not in search_client.indexes[MAPS_INDEX].documents


def test_favorites_round_trip(client):
    headers = _auth(_signup(client).json()["token"])
    map_id = _submit(client, headers).json()["id"]

    assert client.post(
        "/api/favorites/set", json={"map_ids": [map_id], "is_favorite": True}, headers=headers
    ).status_code == 204
    # favoriting again is a no-op
    assert client.post(
        "/api/favorites/set", json={"map_ids": [map_id], "is_favorite": True}, headers=headers
    ).status_code == 204

    favorites = client.get("/api/favorites", headers=headers).json()
    assert [m["id"] for m in favorites] == [map_id]
    assert favorites[0]["user_favorited"] is True

    detail = client.get(f"/api/maps/{map_id}", headers=headers).json()
    assert detail["favorite_count"] == 1
    assert detail["user_favorited"] is True

    client.post("/api/favorites/set", json={"map_ids": [map_id], "is_favorite": False}, headers=headers)
    assert client.get("/api/favorites", headers=headers).json() == []


def test_favorite_unknown_map(client):
    headers = _auth(_signup(client).json()["token"])
    resp = client.post(
        "/api/favorites/set", json={"map_ids": ["ghost"], "is_favorite": True}, headers=headers
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["errors"][0]["type"] == "missing_map"
