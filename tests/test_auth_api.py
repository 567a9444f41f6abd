"""
认证接口测试

- 用户名/邮箱登录、记住我
- 停用账号、禁用租户
- 当前用户信息、修改密码
"""

import pytest

from conftest import PASSWORD, auth_headers


@pytest.mark.asyncio
async def test_login_with_username_and_email(client, admin):
    resp = await client.post("/api/auth/login", json={"username": "acme_admin", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 3600
    assert body["user"]["role"] == "admin"
    assert "hashed_password" not in body["user"]

    resp = await client.post(
        "/api/auth/login",
        json={"email": "ACME_ADMIN@example.com", "password": PASSWORD, "remember_me": True},
    )
    assert resp.status_code == 200
    assert resp.json()["expires_in"] == 7 * 24 * 3600


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(client, admin):
    resp = await client.post("/api/auth/login", json={"username": "acme_admin", "password": "nope"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_CREDENTIALS"

    resp = await client.post("/api/auth/login", json={"username": "ghost", "password": PASSWORD})
    assert resp.json()["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_login_requires_identifier(client, database):
    resp = await client.post("/api/auth/login", json={"password": PASSWORD})
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_deactivated_user_cannot_login(client, admin, editor):
    resp = await client.delete(f"/api/users/{editor.id}", headers=auth_headers(admin))
    assert resp.status_code == 200

    resp = await client.post("/api/auth/login", json={"username": "acme_editor", "password": PASSWORD})
    assert resp.status_code == 403
    assert resp.json()["code"] == "ACCOUNT_DEACTIVATED"

    # 旧令牌同样失效
    resp = await client.get("/api/auth/me", headers=auth_headers(editor))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_disabled_tenant_blocks_login(client, superadmin, tenant, admin):
    resp = await client.post(f"/api/tenants/{tenant.id}/disable", json={"reason": "unpaid"}, headers=auth_headers(superadmin))
    assert resp.status_code == 200

    resp = await client.post("/api/auth/login", json={"username": "acme_admin", "password": PASSWORD})
    assert resp.status_code == 403
    assert resp.json()["code"] == "TENANT_DISABLED"


@pytest.mark.asyncio
async def test_me_returns_tenant_and_permissions(client, tenant, editor):
    resp = await client.get("/api/auth/me", headers=auth_headers(editor))
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["username"] == "acme_editor"
    assert body["tenant"]["subdomain"] == "acme"
    assert "content.create" in body["permissions"]
    assert "users.create" not in body["permissions"]


@pytest.mark.asyncio
async def test_missing_or_invalid_token(client, database):
    resp = await client.get("/api/auth/me")
    assert resp.status_code == 401

    resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_change_password(client, editor):
    headers = auth_headers(editor)
    resp = await client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong", "new_password": "N3w!Password"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_PASSWORD"

    resp = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "weak"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "WEAK_PASSWORD"

    resp = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "N3w!Password"},
        headers=headers,
    )
    assert resp.status_code == 200

    resp = await client.post("/api/auth/login", json={"username": "acme_editor", "password": "N3w!Password"})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_update_profile(client, editor, viewer):
    resp = await client.put("/api/auth/profile", json={"phone": "+91 555 0100"}, headers=auth_headers(editor))
    assert resp.status_code == 200
    assert resp.json()["phone"] == "+91 555 0100"

    resp = await client.put("/api/auth/profile", json={"username": "acme_viewer"}, headers=auth_headers(editor))
    assert resp.status_code == 409
    assert resp.json()["code"] == "USERNAME_EXISTS"

    resp = await client.put("/api/auth/profile", json={"new_password": "N3w!Password"}, headers=auth_headers(editor))
    assert resp.status_code == 400
    assert resp.json()["code"] == "CURRENT_PASSWORD_REQUIRED"


@pytest.mark.asyncio
async def test_password_strength_is_public(client, database):
    resp = await client.post("/api/auth/password-strength", json={"password": "abcdefgh"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is False
    assert body["score"] == 2


@pytest.mark.asyncio
async def test_login_rate_limited(client, admin):
    for _ in range(20):
        await client.post("/api/auth/login", json={"username": "acme_admin", "password": "nope"})
    resp = await client.post("/api/auth/login", json={"username": "acme_admin", "password": PASSWORD})
    assert resp.status_code == 429
    assert resp.json()["code"] == "RATE_LIMITED"
