"""
租户管理接口测试

- 超级管理员创建/禁用/启用/删除租户
- 租户管理员只能访问自己的租户
- 品牌配置合并与公开样式表
"""

import pytest

from conftest import PASSWORD, auth_headers


def _tenant_payload(subdomain: str = "initech", **extra) -> dict:
    return {
        "name": "Initech",
        "subdomain": subdomain,
        "admin_username": f"{subdomain}_admin",
        "admin_email": f"{subdomain}_admin@example.com",
        "admin_password": PASSWORD,
        **extra,
    }


@pytest.mark.asyncio
async def test_create_tenant_with_admin(client, superadmin):
    resp = await client.post("/api/tenants", json=_tenant_payload(), headers=auth_headers(superadmin))
    assert resp.status_code == 201
    body = resp.json()
    assert body["subdomain"] == "initech"
    assert body["status"] == "active"
    assert body["admin"]["role"] == "admin"
    assert body["admin_user_id"] == body["admin"]["id"]
    assert "png" in body["allowed_formats"]

    resp = await client.post("/api/auth/login", json={"username": "initech_admin", "password": PASSWORD})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_create_tenant_validation(client, superadmin, tenant):
    headers = auth_headers(superadmin)
    resp = await client.post("/api/tenants", json=_tenant_payload("acme"), headers=headers)
    assert resp.status_code == 409
    assert resp.json()["code"] == "SUBDOMAIN_EXISTS"

    resp = await client.post("/api/tenants", json=_tenant_payload("Bad_Sub"), headers=headers)
    assert resp.status_code == 422

    resp = await client.post("/api/tenants", json=_tenant_payload("weakco", admin_password="abc"), headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "WEAK_PASSWORD"


@pytest.mark.asyncio
async def test_only_superadmin_creates_tenants(client, admin):
    resp = await client.post("/api/tenants", json=_tenant_payload(), headers=auth_headers(admin))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_sees_only_own_tenant(client, tenant, admin, other_tenant_admin):
    resp = await client.get(f"/api/tenants/{tenant.id}", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["user_count"] == 1

    resp = await client.get(f"/api/tenants/{other_tenant_admin.tenant_id}", headers=auth_headers(admin))
    assert resp.status_code == 404
    assert resp.json()["code"] == "TENANT_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_and_filter_tenants(client, superadmin, tenant, other_tenant_admin):
    headers = auth_headers(superadmin)
    resp = await client.get("/api/tenants", headers=headers)
    assert resp.json()["total"] == 2

    resp = await client.get("/api/tenants", params={"search": "glob"}, headers=headers)
    items = resp.json()["items"]
    assert [t["subdomain"] for t in items] == ["globex"]


@pytest.mark.asyncio
async def test_disable_and_enable(client, superadmin, tenant, admin):
    headers = auth_headers(superadmin)
    resp = await client.post(f"/api/tenants/{tenant.id}/disable", json={"reason": "audit"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "disabled"
    assert resp.json()["disabled_reason"] == "audit"

    resp = await client.get("/api/auth/me", headers=auth_headers(admin))
    assert resp.status_code == 403
    assert resp.json()["code"] == "TENANT_DISABLED"

    resp = await client.post(f"/api/tenants/{tenant.id}/disable", headers=headers)
    assert resp.json()["code"] == "TENANT_ALREADY_DISABLED"

    resp = await client.post(f"/api/tenants/{tenant.id}/enable", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["disabled_at"] is None


@pytest.mark.asyncio
async def test_delete_tenant_removes_users(client, superadmin, tenant, admin, editor):
    headers = auth_headers(superadmin)
    resp = await client.delete(f"/api/tenants/{tenant.id}", headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"/api/tenants/{tenant.id}", headers=headers)
    assert resp.status_code == 404
    resp = await client.get(f"/api/users/{editor.id}", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_tenant_users_and_stats(client, tenant, admin, editor):
    headers = auth_headers(admin)
    resp = await client.get(f"/api/tenants/{tenant.id}/users", headers=headers)
    assert resp.json()["total"] == 2

    resp = await client.post(
        f"/api/tenants/{tenant.id}/users",
        json={"username": "reader", "email": "reader@example.com", "password": PASSWORD, "role": "viewer"},
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["tenant_id"] == tenant.id

    resp = await client.get(f"/api/tenants/{tenant.id}/stats", headers=headers)
    stats = resp.json()
    assert stats["user_count"] == 3
    assert stats["users_by_role"] == {"admin": 1, "editor": 1, "viewer": 1}
    assert stats["max_users"] == 10


@pytest.mark.asyncio
async def test_branding_merge_and_css(client, tenant, admin):
    headers = auth_headers(admin)
    resp = await client.put(
        f"/api/tenants/{tenant.id}/branding",
        json={"colors": {"primary": "#112233"}, "custom_css": ".hero { color: red; }"},
        headers=headers,
    )
    assert resp.status_code == 200
    branding = resp.json()
    assert branding["colors"]["primary"] == "#112233"
    assert branding["colors"]["accent"] == "#10b981"

    resp = await client.get(f"/api/tenants/{tenant.id}/branding/styles.css")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/css")
    assert "--tenant-color-primary: #112233;" in resp.text
    assert ".hero { color: red; }" in resp.text

    resp = await client.post(f"/api/tenants/{tenant.id}/branding/reset", headers=headers)
    assert resp.json()["colors"]["primary"] == "#3b82f6"
