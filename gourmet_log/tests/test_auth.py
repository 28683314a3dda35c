from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from gourmet_log.app import app
from gourmet_log.auth.users import InvalidPassword, create_user

client = TestClient(app)


def _login_user(c):
    c.post("/auth/login", json={"login": "user", "password": "user123"})


def _login_admin(c):
    c.post("/auth/login", json={"login": "admin", "password": "admin123"})


# ── Login / Logout ───────────────────────────────────────────────────────


def test_login_success_user():
    resp = client.post("/auth/login", json={"login": "user", "password": "user123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["user"]["username"] == "user"
    assert body["user"]["is_super_admin"] is False


def test_login_success_admin():
    resp = client.post("/auth/login", json={"login": "admin", "password": "admin123"})
    assert resp.status_code == 200
    assert resp.json()["user"]["is_super_admin"] is True


def test_login_by_email():
    resp = client.post("/auth/login", json={"login": "user@example.com", "password": "user123"})
    assert resp.status_code == 200
    assert resp.json()["user"]["username"] == "user"


def test_login_wrong_password():
    resp = client.post("/auth/login", json={"login": "user", "password": "wrong"})
    assert resp.status_code == 401


def test_login_unknown_user():
    resp = client.post("/auth/login", json={"login": "nobody", "password": "x"})
    assert resp.status_code == 401


def test_auth_me_when_logged_in():
    _login_user(client)
    resp = client.get("/auth/me")
    assert resp.status_code == 200
    assert resp.json()["username"] == "user"


def test_auth_me_not_logged_in():
    c = TestClient(app)  # fresh client, no session
    resp = c.get("/auth/me")
    assert resp.status_code == 401


def test_logout():
    _login_user(client)
    resp = client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["status"] == "logged_out"
    # Session should be cleared
    resp = client.get("/auth/me")
    assert resp.status_code == 401


# ── Route protection ─────────────────────────────────────────────────────


def test_favorites_requires_login():
    c = TestClient(app)
    assert c.get("/favorites").status_code == 401
    assert c.post("/search", json={"prefecture": "東京都"}).status_code == 401


def test_admin_routes_forbidden_for_regular_user():
    c = TestClient(app)
    _login_user(c)
    assert c.get("/admin/usage").status_code == 403
    assert c.get("/admin/cache/stats").status_code == 403
    assert c.post("/admin/users/bulk", content="email,password,display_name,username\n").status_code == 403


def test_admin_routes_allowed_for_admin():
    c = TestClient(app)
    _login_admin(c)
    assert c.get("/admin/usage").status_code == 200
    assert c.get("/admin/cache/stats").status_code == 200


def test_health_is_public():
    assert TestClient(app).get("/health").json() == {"status": "ok"}


def test_session_of_deleted_account_is_rejected():
    create_user("short-lived", "pw12345")
    first, second = TestClient(app), TestClient(app)
    for c in (first, second):
        c.post("/auth/login", json={"login": "short-lived", "password": "pw12345"})

    assert first.delete("/account").status_code == 200
    assert second.get("/auth/me").status_code == 401


def test_login_with_overlong_password_is_rejected():
    resp = client.post("/auth/login", json={"login": "user", "password": "x" * 80})
    assert resp.status_code == 401


def test_create_user_rejects_overlong_password():
    with pytest.raises(InvalidPassword):
        create_user("too-long-pw", "é" * 40)
