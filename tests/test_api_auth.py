from construction_api.enums import UserRole

from conftest import auth_headers


def _register(client, email="new@example.com", password="builder1", name="New Client"):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "phone": "+1 555 0100"},
    )


def test_register_returns_tokens_and_sends_welcome(client, mailer) -> None:
    response = _register(client)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "user"
    assert "password_hash" not in body["user"]
    assert mailer.subjects() == ["Welcome to Our Construction Company"]


def test_register_validation(client) -> None:
    assert _register(client, password="nodigits").status_code == 422
    assert _register(client, password="a1").status_code == 422
    assert _register(client, name="X").status_code == 422
    assert _register(client, email="not-an-email").status_code == 422


def test_register_duplicate_email(client) -> None:
    _register(client)

    response = _register(client, email="NEW@example.com")

    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_login_and_me(client) -> None:
    _register(client)

    wrong = client.post("/api/auth/login", json={"email": "new@example.com", "password": "wrong12"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid credentials"

    response = client.post("/api/auth/login", json={"email": "new@example.com", "password": "builder1"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["name"] == "New Client"
    assert me.json()["block_history"] == []


def test_refresh_token_rotation_and_logout(client) -> None:
    tokens = _register(client).json()

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    new_tokens = refreshed.json()

    # Старый refresh токен больше не совпадает с сохраненным
    reused = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert reused.status_code == 401

    access_as_refresh = client.post("/api/auth/refresh", json={"refresh_token": new_tokens["access_token"]})
    assert access_as_refresh.status_code == 401

    logout = client.post("/api/auth/logout", headers={"Authorization": f"Bearer {new_tokens['access_token']}"})
    assert logout.status_code == 200

    after_logout = client.post("/api/auth/refresh", json={"refresh_token": new_tokens["refresh_token"]})
    assert after_logout.status_code == 401


def test_change_password(client) -> None:
    token = _register(client).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    wrong = client.put(
        "/api/auth/password",
        json={"current_password": "nope123", "new_password": "better12"},
        headers=headers,
    )
    assert wrong.status_code == 401

    ok = client.put(
        "/api/auth/password",
        json={"current_password": "builder1", "new_password": "better12"},
        headers=headers,
    )
    assert ok.status_code == 200

    login = client.post("/api/auth/login", json={"email": "new@example.com", "password": "better12"})
    assert login.status_code == 200


def test_blocked_user_cannot_login(client, owner, admin) -> None:
    email = client.get("/api/auth/me", headers=auth_headers(owner)).json()["email"]

    blocked = client.post(
        f"/api/users/{owner.id}/block",
        json={"reason": "Fake requests", "duration_hours": 24},
        headers=auth_headers(admin),
    )
    assert blocked.status_code == 200
    assert blocked.json()["is_blocked"] is True

    response = client.post("/api/auth/login", json={"email": email, "password": "secret1"})
    assert response.status_code == 403
    assert response.json()["details"]["block_info"]["reason"] == "Fake requests"

    history = client.get(f"/api/users/{owner.id}/block-history", headers=auth_headers(admin)).json()
    assert len(history) == 1
    assert history[0]["reason"] == "Fake requests"

    unblocked = client.post(f"/api/users/{owner.id}/unblock", headers=auth_headers(admin))
    assert unblocked.status_code == 200
    assert client.post("/api/auth/login", json={"email": email, "password": "secret1"}).status_code == 200


def test_user_admin_routes(client, owner, admin, make_user) -> None:
    assert client.get("/api/users", headers=auth_headers(owner)).status_code == 403

    users = client.get("/api/users", headers=auth_headers(admin)).json()
    assert {user["id"] for user in users} == {str(owner.id), str(admin.id)}

    other_admin = make_user(UserRole.ADMIN)
    cannot_block_admin = client.post(
        f"/api/users/{other_admin.id}/block",
        json={"reason": "Test"},
        headers=auth_headers(admin),
    )
    assert cannot_block_admin.status_code == 403

    promoted = client.put(f"/api/users/{owner.id}/role", json={"role": "admin"}, headers=auth_headers(admin))
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "admin"


def test_cannot_demote_last_admin_over_http(client, admin) -> None:
    response = client.put(f"/api/users/{admin.id}/role", json={"role": "user"}, headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot demote the last admin"


def test_health(client) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/health/db").json()["database"] == "connected"
    assert client.get("/api/health/scheduler").json()["scheduler_running"] is False
