"""Integration tests: admin endpoints (user management)."""

import uuid

import pytest

pytestmark = pytest.mark.asyncio


def _new_user(role: str = "reviewer", **fields) -> dict:
    body = {
        "username": f"user_{uuid.uuid4().hex[:8]}",
        "password": "SecureP@ss1word",
        "email": "new@example.com",
        "role": role,
    }
    body.update(fields)
    return body


# ─── GET /admin/users ─────────────────────────────────────────────────────────


async def test_list_users_includes_admin(client, admin_headers):
    resp = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert resp.status_code == 200
    assert "testadmin" in [u["username"] for u in resp.json()]


async def test_list_users_is_tenant_scoped(client, admin_headers, outsider_headers):
    resp = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert "outsider" not in [u["username"] for u in resp.json()]


async def test_list_users_requires_auth(client, app):
    resp = await client.get("/api/v1/admin/users")
    assert resp.status_code == 401


async def test_list_users_requires_admin(client, editor_headers):
    resp = await client.get("/api/v1/admin/users", headers=editor_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "AUTH_004"


# ─── POST /admin/users ────────────────────────────────────────────────────────


async def test_create_user(client, admin_headers):
    body = _new_user(full_name="Rita Reviewer")
    resp = await client.post("/api/v1/admin/users", json=body, headers=admin_headers)
    assert resp.status_code == 201
    created = resp.json()
    assert created["role"] == "reviewer"
    assert created["full_name"] == "Rita Reviewer"
    assert created["tenant_id"] == "11111111-1111-1111-1111-111111111111"
    assert "password_hash" not in created

    login = await client.post(
        "/api/v1/auth/login", json={"username": body["username"], "password": body["password"]}
    )
    assert login.status_code == 200


async def test_create_user_duplicate_username(client, admin_headers):
    body = _new_user(role="viewer")
    await client.post("/api/v1/admin/users", json=body, headers=admin_headers)
    resp = await client.post("/api/v1/admin/users", json=body, headers=admin_headers)
    assert resp.status_code == 409


async def test_usernames_are_global(client, admin_headers, outsider_headers):
    resp = await client.post(
        "/api/v1/admin/users", json=_new_user(username="outsider"), headers=admin_headers
    )
    assert resp.status_code == 409


async def test_create_user_invalid_role(client, admin_headers):
    resp = await client.post(
        "/api/v1/admin/users", json=_new_user(role="superroot"), headers=admin_headers
    )
    assert resp.status_code == 422


async def test_create_user_weak_password(client, admin_headers):
    resp = await client.post(
        "/api/v1/admin/users", json=_new_user(password="abc"), headers=admin_headers
    )
    assert resp.status_code == 422


# ─── DELETE /admin/users/:id ──────────────────────────────────────────────────


async def test_deactivate_user(client, admin_headers):
    body = _new_user(role="viewer")
    user_id = (await client.post("/api/v1/admin/users", json=body, headers=admin_headers)).json()["id"]

    resp = await client.delete(f"/api/v1/admin/users/{user_id}", headers=admin_headers)
    assert resp.status_code == 204

    listed = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert user_id not in [u["id"] for u in listed.json()]
    login = await client.post(
        "/api/v1/auth/login", json={"username": body["username"], "password": body["password"]}
    )
    assert login.status_code == 401


async def test_deactivate_unknown_user(client, admin_headers):
    resp = await client.delete(f"/api/v1/admin/users/{uuid.uuid4()}", headers=admin_headers)
    assert resp.status_code == 404


async def test_cannot_deactivate_other_tenants_user(client, admin_headers, outsider_headers):
    outsider_id = (await client.get("/api/v1/auth/me", headers=outsider_headers)).json()["id"]
    resp = await client.delete(f"/api/v1/admin/users/{outsider_id}", headers=admin_headers)
    assert resp.status_code == 404


async def test_admin_cannot_deactivate_self(client, admin_headers):
    my_id = (await client.get("/api/v1/auth/me", headers=admin_headers)).json()["id"]
    resp = await client.delete(f"/api/v1/admin/users/{my_id}", headers=admin_headers)
    assert resp.status_code == 422
