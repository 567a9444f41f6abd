"""
超级管理员接口测试：角色、平台设置、平台统计
"""

import pytest

from conftest import PASSWORD, auth_headers
from jcms.main import seed_system_roles


@pytest.mark.asyncio
async def test_system_roles_seeded_once(client, superadmin):
    assert await seed_system_roles() == 4
    assert await seed_system_roles() == 0

    resp = await client.get("/api/superadmin/roles", headers=auth_headers(superadmin))
    roles = {r["name"]: r for r in resp.json()}
    assert set(roles) == {"superadmin", "admin", "editor", "viewer"}
    assert roles["superadmin"]["user_count"] == 1
    assert all(r["is_system"] for r in roles.values())


@pytest.mark.asyncio
async def test_custom_role_lifecycle(client, superadmin):
    await seed_system_roles()
    headers = auth_headers(superadmin)

    resp = await client.post(
        "/api/superadmin/roles",
        json={"name": "auditor", "permissions": ["analytics.read", "bogus.perm"]},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_PERMISSION"

    resp = await client.post(
        "/api/superadmin/roles",
        json={"name": "auditor", "description": "Read-only analytics", "permissions": ["analytics.read"]},
        headers=headers,
    )
    assert resp.status_code == 201
    role = resp.json()
    assert role["is_system"] is False

    resp = await client.post("/api/superadmin/roles", json={"name": "auditor"}, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["code"] == "ROLE_EXISTS"

    resp = await client.put(
        f"/api/superadmin/roles/{role['id']}",
        json={"permissions": ["analytics.read", "content.read"]},
        headers=headers,
    )
    assert resp.json()["permissions"] == ["analytics.read", "content.read"]

    resp = await client.delete(f"/api/superadmin/roles/{role['id']}", headers=headers)
    assert resp.status_code == 200
    resp = await client.get(f"/api/superadmin/roles/{role['id']}", headers=headers)
    assert resp.json()["code"] == "ROLE_NOT_FOUND"


@pytest.mark.asyncio
async def test_system_role_cannot_be_deleted(client, superadmin):
    await seed_system_roles()
    headers = auth_headers(superadmin)
    resp = await client.get("/api/superadmin/roles", headers=headers)
    editor_role = next(r for r in resp.json() if r["name"] == "editor")

    resp = await client.delete(f"/api/superadmin/roles/{editor_role['id']}", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "SYSTEM_ROLE"


@pytest.mark.asyncio
async def test_role_permissions_take_effect(client, superadmin, editor):
    await seed_system_roles()
    headers = auth_headers(superadmin)
    resp = await client.get("/api/superadmin/roles", headers=headers)
    editor_role = next(r for r in resp.json() if r["name"] == "editor")

    resp = await client.post("/api/content", json={"title": "Before"}, headers=auth_headers(editor))
    assert resp.status_code == 201

    await client.put(
        f"/api/superadmin/roles/{editor_role['id']}",
        json={"permissions": ["content.read"]},
        headers=headers,
    )
    resp = await client.post("/api/content", json={"title": "After"}, headers=auth_headers(editor))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_non_superadmin_rejected(client, admin):
    resp = await client.get("/api/superadmin/roles", headers=auth_headers(admin))
    assert resp.status_code == 403
    resp = await client.get("/api/superadmin/settings", headers=auth_headers(admin))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_settings_override_and_reset(client, superadmin, admin, editor):
    headers = auth_headers(superadmin)

    resp = await client.get("/api/superadmin/settings", headers=headers)
    items = {i["key"]: i for i in resp.json()["items"]}
    assert items["free_max_editors"]["value"] == 1
    assert items["free_max_editors"]["source"] == "default"

    resp = await client.put("/api/superadmin/settings/free_max_editors", json={"value": 2}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["source"] == "database"
    assert resp.json()["value"] == 2

    # 新上限立即生效
    resp = await client.post(
        "/api/users",
        json={"username": "writer_two", "email": "writer_two@example.com", "password": PASSWORD, "role": "editor"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201

    resp = await client.put("/api/superadmin/settings/not_a_setting", json={"value": 1}, headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "SETTING_NOT_FOUND"

    resp = await client.post("/api/superadmin/settings/reset", headers=headers)
    assert resp.json()["reset_keys"] == ["free_max_editors"]

    resp = await client.get("/api/superadmin/settings/free_max_editors", headers=headers)
    assert resp.json()["source"] == "default"


@pytest.mark.asyncio
async def test_platform_stats(client, superadmin, admin, editor, other_tenant_admin):
    await client.post("/api/content", json={"title": "Post"}, headers=auth_headers(editor))
    await client.post(
        "/api/subscriptions/activate",
        json={"subscription_type": "Yearly"},
        headers=auth_headers(admin),
    )

    resp = await client.get("/api/superadmin/stats", headers=auth_headers(superadmin))
    stats = resp.json()
    assert stats["tenants"] == {"total": 2, "active": 2, "disabled": 0}
    assert stats["users"]["total"] == 4
    assert stats["users"]["by_role"]["admin"] == 2
    assert stats["content"]["total"] == 1
    assert stats["subscriptions"]["active"] == 1
    assert stats["subscriptions"]["revenue"] == {"INR": 4999}
