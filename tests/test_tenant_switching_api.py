"""
租户切换接口测试

- 可访问租户列表按角色区分
- 切换时校验访问权
- 按子域名公开查询
"""

import pytest

from conftest import auth_headers


@pytest.mark.asyncio
async def test_accessible_tenants(client, superadmin, admin, other_tenant_admin):
    resp = await client.get("/api/tenant-switching/my/tenants", headers=auth_headers(superadmin))
    assert resp.status_code == 200
    body = resp.json()
    assert [t["subdomain"] for t in body["tenants"]] == ["acme", "globex"]
    assert body["current_tenant"] is None

    resp = await client.get("/api/tenant-switching/my/tenants", headers=auth_headers(admin))
    body = resp.json()
    assert [t["subdomain"] for t in body["tenants"]] == ["acme"]
    assert body["current_tenant"] == admin.tenant_id
    assert body["tenants"][0]["colors"]["primary"] == "#3b82f6"


@pytest.mark.asyncio
async def test_disabled_tenants_are_not_listed(client, superadmin, tenant, other_tenant_admin):
    headers = auth_headers(superadmin)
    resp = await client.post(f"/api/tenants/{tenant.id}/disable", headers=headers)
    assert resp.status_code == 200

    resp = await client.get("/api/tenant-switching/my/tenants", headers=headers)
    assert [t["subdomain"] for t in resp.json()["tenants"]] == ["globex"]

    resp = await client.post("/api/tenant-switching/switch", json={"tenant_id": tenant.id}, headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "TENANT_NOT_FOUND"


@pytest.mark.asyncio
async def test_switch_checks_access(client, superadmin, admin, other_tenant_admin):
    resp = await client.post(
        "/api/tenant-switching/switch",
        json={"tenant_id": other_tenant_admin.tenant_id},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 403

    resp = await client.post(
        "/api/tenant-switching/switch",
        json={"tenant_id": admin.tenant_id},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    assert resp.json()["subdomain"] == "acme"

    resp = await client.post(
        "/api/tenant-switching/switch",
        json={"tenant_id": other_tenant_admin.tenant_id},
        headers=auth_headers(superadmin),
    )
    assert resp.status_code == 200
    assert resp.json()["subdomain"] == "globex"


@pytest.mark.asyncio
async def test_current_context(client, superadmin, editor):
    resp = await client.get("/api/tenant-switching/my/context", headers=auth_headers(editor))
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["username"] == "acme_editor"
    assert body["tenant"]["subdomain"] == "acme"
    assert "colors" in body["tenant"]["branding"]

    resp = await client.get("/api/tenant-switching/my/context", headers=auth_headers(superadmin))
    assert resp.status_code == 200
    assert resp.json()["tenant"] is None


@pytest.mark.asyncio
async def test_lookup_by_subdomain_is_public(client, superadmin, admin, tenant):
    resp = await client.put(
        f"/api/tenants/{tenant.id}/branding",
        json={"colors": {"primary": "#ff0000"}},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200

    resp = await client.get("/api/tenant-switching/lookup/ACME")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == tenant.id
    assert body["branding"]["colors"]["primary"] == "#ff0000"
    assert body["branding"]["colors"]["secondary"] == "#64748b"

    resp = await client.get("/api/tenant-switching/lookup/nobody")
    assert resp.status_code == 404

    await client.post(f"/api/tenants/{tenant.id}/disable", headers=auth_headers(superadmin))
    resp = await client.get("/api/tenant-switching/lookup/acme")
    assert resp.status_code == 404
