"""
订阅接口测试

- 套餐、状态、限制
- 激活后清除文件过期时间、提升编辑上限
- 续订从当前结束时间顺延
- 取消、到期任务
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from conftest import PASSWORD, auth_headers, upload
from jcms.db.session import SessionLocal
from jcms.infra.timeutils import utcnow
from jcms.models import MediaFile, Subscription
from jcms.services.subscriptions import expire_due_subscriptions


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def _activate(client, admin, subscription_type: str = "Monthly") -> dict:
    resp = await client.post(
        "/api/subscriptions/activate",
        json={"subscription_type": subscription_type, "payment_reference": "pay_123"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_plans(client, editor):
    resp = await client.get("/api/subscriptions/plans", headers=auth_headers(editor))
    plans = {p["subscription_type"]: p for p in resp.json()}
    assert plans["Monthly"]["amount"] == 999
    assert plans["Yearly"]["amount"] == 4999
    assert plans["Monthly"]["currency"] == "INR"


@pytest.mark.asyncio
async def test_free_status_and_limits(client, admin):
    resp = await client.get("/api/subscriptions/status", headers=auth_headers(admin))
    body = resp.json()
    assert body["status"] == "Inactive"
    assert body["is_subscribed"] is False

    resp = await client.get("/api/subscriptions/limits", headers=auth_headers(admin))
    assert resp.json() == {
        "max_file_size_mb": 10,
        "max_admins": 1,
        "max_editors": 1,
        "file_expiration_days": 15,
        "is_subscribed": False,
    }


@pytest.mark.asyncio
async def test_superadmin_is_premium(client, superadmin):
    resp = await client.get("/api/subscriptions/status", headers=auth_headers(superadmin))
    assert resp.json()["status"] == "Premium"
    assert resp.json()["limits"]["max_file_size_mb"] == 100


@pytest.mark.asyncio
async def test_activate_clears_expirations_and_raises_limits(client, admin, editor):
    item = (await upload(client, editor, ("a.txt", b"x", "text/plain")))["items"][0]
    assert item["expires_at"] is not None

    body = await _activate(client, admin)
    assert body["cleared_expirations"] == 1
    assert body["subscription"]["subscription_type"] == "Monthly"
    assert body["subscription"]["amount"] == 999
    assert body["invoice"]["invoice_number"].startswith("INV-")
    assert body["invoice"]["status"] == "paid"
    assert body["invoice"]["billing_name"] == "Acme Inc"

    resp = await client.get(f"/api/media/{item['id']}", headers=auth_headers(editor))
    assert resp.json()["expires_at"] is None

    new_item = (await upload(client, editor, ("b.txt", b"x", "text/plain")))["items"][0]
    assert new_item["expires_at"] is None

    resp = await client.post(
        "/api/users",
        json={"username": "writer_two", "email": "writer_two@example.com", "password": PASSWORD, "role": "editor"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201

    resp = await client.get("/api/subscriptions/status", headers=auth_headers(admin))
    status = resp.json()
    assert status["status"] == "Active"
    assert status["days_remaining"] >= 27


@pytest.mark.asyncio
async def test_renewal_extends_from_current_end(client, admin):
    first = await _activate(client, admin)
    second = await _activate(client, admin, "Yearly")
    assert _parse(second["subscription"]["start_date"]) == _parse(first["subscription"]["end_date"])

    resp = await client.get("/api/subscriptions/history", headers=auth_headers(admin))
    history = resp.json()
    assert len(history) == 2
    active = [s for s in history if s["is_active"]]
    assert [s["subscription_type"] for s in active] == ["Yearly"]

    resp = await client.get("/api/subscriptions/invoices", headers=auth_headers(admin))
    assert sorted(i["amount"] for i in resp.json()) == [999, 4999]


@pytest.mark.asyncio
async def test_only_tenant_admin_activates(client, editor, superadmin):
    payload = {"subscription_type": "Monthly"}
    resp = await client.post("/api/subscriptions/activate", json=payload, headers=auth_headers(editor))
    assert resp.status_code == 403
    resp = await client.post("/api/subscriptions/activate", json=payload, headers=auth_headers(superadmin))
    assert resp.status_code == 403

    resp = await client.post(
        "/api/subscriptions/activate", json={"subscription_type": "Weekly"}, headers=auth_headers(editor)
    )
    assert resp.status_code in (403, 422)


@pytest.mark.asyncio
async def test_cancel_restores_expirations(client, admin, editor):
    await _activate(client, admin)
    item = (await upload(client, editor, ("a.txt", b"x", "text/plain")))["items"][0]

    resp = await client.post("/api/subscriptions/cancel", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["canceled_at"] is not None
    assert resp.json()["is_active"] is False

    resp = await client.get(f"/api/media/{item['id']}", headers=auth_headers(editor))
    assert resp.json()["expires_at"] is not None

    resp = await client.post("/api/subscriptions/cancel", headers=auth_headers(admin))
    assert resp.status_code == 404
    assert resp.json()["code"] == "NO_ACTIVE_SUBSCRIPTION"


@pytest.mark.asyncio
async def test_superadmin_views(client, superadmin, tenant, admin):
    await _activate(client, admin)
    headers = auth_headers(superadmin)

    resp = await client.get("/api/subscriptions/all", headers=headers)
    body = resp.json()
    assert body["total"] == 1
    assert body["items"][0]["tenant_name"] == "Acme Inc"

    resp = await client.get(f"/api/subscriptions/tenant/{tenant.id}", headers=headers)
    assert resp.json()["status"]["status"] == "Active"
    assert len(resp.json()["history"]) == 1

    resp = await client.post(f"/api/subscriptions/tenant/{tenant.id}/cancel", headers=headers)
    assert resp.status_code == 200

    resp = await client.get("/api/subscriptions/all", params={"active_only": "true"}, headers=headers)
    assert resp.json()["total"] == 0

    resp = await client.get("/api/subscriptions/tenant/missing", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_expired_subscription_job(client, admin, editor):
    body = await _activate(client, admin)
    item = (await upload(client, editor, ("a.txt", b"x", "text/plain")))["items"][0]

    async with SessionLocal() as session:
        assert await expire_due_subscriptions(session) == 0
        await session.execute(
            update(Subscription)
            .where(Subscription.id == body["subscription"]["id"])
            .values(end_date=utcnow() - timedelta(minutes=1))
        )
        await session.commit()
        assert await expire_due_subscriptions(session) == 1

        media = await session.get(MediaFile, item["id"])
        assert media.expires_at is not None

    resp = await client.get("/api/subscriptions/status", headers=auth_headers(admin))
    assert resp.json()["status"] == "Inactive"
