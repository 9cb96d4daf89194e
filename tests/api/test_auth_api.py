"""API tests for /api/auth/me."""

from agora_api.db.records import Table


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"code": "UNAUTHORIZED", "message": "Missing token"}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_me_rejects_non_bearer_scheme(client, alice):
    response = client.get("/api/auth/me", headers={"Authorization": f"Basic {alice}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Missing token"


def test_me_rejects_invalid_token(client, alice, token_factory):
    token = token_factory(alice, secret="wrong-secret-wrong-secret-wrong-secret-00")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"code": "UNAUTHORIZED", "message": "Invalid token"}


def test_me_rejects_expired_token(client, alice, token_factory):
    token = token_factory(alice, expires_in=-10)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_me_without_profile_is_unauthorized(client, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers("00000000-0000-0000-0000-000000000000"))

    assert response.status_code == 401
    assert response.json()["message"] == "User not found"


def test_me_defaults_to_member(client, store, alice, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers(alice))

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] == alice
    assert user["username"] == "alice"
    assert user["roles"] == ["member"]
    assert user["email"] == f"{alice[:8]}@example.com"
    assert store.rows(Table.USER_ROLES, user_id=alice) == [{"user_id": alice, "role_id": 3}]


def test_me_defaults_even_when_persistence_fails(client, store, alice, auth_headers):
    store.fail(Table.USER_ROLES, "upsert")

    response = client.get("/api/auth/me", headers=auth_headers(alice))

    assert response.status_code == 200
    assert response.json()["user"]["roles"] == ["member"]


def test_me_admin(client, admin_id, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers(admin_id))
    assert response.json()["user"]["roles"] == ["admin"]


def test_update_me_writes_only_provided_fields(client, store, alice, auth_headers):
    store.tables[Table.PROFILES][0]["bio"] = "old bio"

    response = client.put(
        "/api/auth/me",
        json={"avatar_url": "https://img.example/alice.png"},
        headers=auth_headers(alice),
    )

    assert response.status_code == 200
    assert response.json()["user"] == {
        "id": alice,
        "username": "alice",
        "bio": "old bio",
        "avatar_url": "https://img.example/alice.png",
    }


def test_update_me_with_empty_body_returns_profile(client, alice, auth_headers):
    response = client.put("/api/auth/me", json={}, headers=auth_headers(alice))

    assert response.status_code == 200
    assert response.json()["user"]["username"] == "alice"


def test_update_me_validates_fields(client, store, alice, auth_headers):
    for body in (
        {"username": "ab"},
        {"bio": "x" * 301},
        {"avatar_url": "not a url"},
        {"avatar_url": "https://img.example/" + "a" * 300},
    ):
        response = client.put("/api/auth/me", json=body, headers=auth_headers(alice))
        assert response.status_code == 400, body
        assert response.json()["code"] == "VALIDATION_ERROR"

    assert ("profiles", "update") not in store.calls


def test_update_me_taken_username(client, alice, bob, auth_headers):
    response = client.put("/api/auth/me", json={"username": "bob"}, headers=auth_headers(alice))

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "UPDATE_FAILED"
    assert "duplicate key" in body["message"]


def test_update_me_stores_avatar_url_as_sent(client, store, alice, auth_headers):
    for avatar_url in ("https://img.example", "ftp://files.example/alice.png"):
        response = client.put(
            "/api/auth/me", json={"avatar_url": avatar_url}, headers=auth_headers(alice)
        )

        assert response.status_code == 200
        assert response.json()["user"]["avatar_url"] == avatar_url
        assert store.rows(Table.PROFILES, id=alice)[0]["avatar_url"] == avatar_url
