"""
内容接口测试

- 创建、slug 去重、更新
- 编辑只能看到和修改自己的内容
- 发布 / 取消发布 / 定时发布
- 公开读取与浏览量
"""

from datetime import timedelta

import pytest
from sqlalchemy import update

from conftest import auth_headers
from jcms.db.session import SessionLocal
from jcms.infra.timeutils import utcnow
from jcms.models import Content
from jcms.services.content import publish_due_content


async def _create(client, user, **fields) -> dict:
    payload = {"title": "Hello World", "body": "<p>Hi</p>", **fields}
    resp = await client.post("/api/content", json=payload, headers=auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_generates_unique_slugs(client, editor):
    first = await _create(client, editor)
    second = await _create(client, editor)
    assert first["slug"] == "hello-world"
    assert second["slug"] == "hello-world-2"
    assert first["status"] == "draft"
    assert first["published_at"] is None
    assert first["author_id"] == editor.id


@pytest.mark.asyncio
async def test_slugs_are_per_tenant(client, editor, other_tenant_admin):
    mine = await _create(client, editor)
    theirs = await _create(client, other_tenant_admin)
    assert mine["slug"] == theirs["slug"] == "hello-world"


@pytest.mark.asyncio
async def test_editor_visibility(client, admin, editor):
    admin_post = await _create(client, admin, title="Admin post")
    editor_post = await _create(client, editor, title="Editor post")

    resp = await client.get("/api/content", headers=auth_headers(editor))
    assert [c["id"] for c in resp.json()["items"]] == [editor_post["id"]]

    resp = await client.get(f"/api/content/{admin_post['id']}", headers=auth_headers(editor))
    assert resp.status_code == 404
    assert resp.json()["code"] == "CONTENT_NOT_FOUND"

    resp = await client.get("/api/content", headers=auth_headers(admin))
    assert resp.json()["total"] == 2


@pytest.mark.asyncio
async def test_viewer_cannot_create(client, viewer):
    resp = await client.post("/api/content", json={"title": "Nope"}, headers=auth_headers(viewer))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_and_filters(client, editor):
    post = await _create(client, editor, tags=["news"])
    await _create(client, editor, title="Other", tags=["misc"])
    headers = auth_headers(editor)

    resp = await client.put(
        f"/api/content/{post['id']}",
        json={"title": "Renamed", "slug": "Fresh Slug"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["slug"] == "fresh-slug"

    resp = await client.get("/api/content", params={"tag": "news"}, headers=headers)
    assert [c["id"] for c in resp.json()["items"]] == [post["id"]]

    resp = await client.get("/api/content", params={"search": "renam"}, headers=headers)
    assert resp.json()["total"] == 1


@pytest.mark.asyncio
async def test_publish_flow_and_public_read(client, editor):
    post = await _create(client, editor)
    headers = auth_headers(editor)

    resp = await client.get(f"/api/public/content/{post['slug']}")
    assert resp.status_code == 404

    resp = await client.post(f"/api/content/{post['id']}/publish", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "published"
    assert resp.json()["published_at"] is not None

    resp = await client.get(f"/api/public/content/{post['slug']}")
    assert resp.status_code == 200
    assert resp.json()["views"] == 1
    resp = await client.get(f"/api/public/content/{post['id']}")
    assert resp.json()["views"] == 2

    resp = await client.post(f"/api/content/{post['id']}/unpublish", headers=headers)
    assert resp.json()["status"] == "draft"
    resp = await client.get(f"/api/public/content/{post['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_schedule_requires_future_time(client, editor):
    post = await _create(client, editor)
    headers = auth_headers(editor)

    past = (utcnow() - timedelta(hours=1)).isoformat()
    resp = await client.post(f"/api/content/{post['id']}/schedule", json={"scheduled_at": past}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_SCHEDULE"

    future = (utcnow() + timedelta(hours=1)).isoformat()
    resp = await client.post(f"/api/content/{post['id']}/schedule", json={"scheduled_at": future}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "scheduled"


@pytest.mark.asyncio
async def test_due_scheduled_content_gets_published(client, editor):
    post = await _create(client, editor)
    future = (utcnow() + timedelta(hours=1)).isoformat()
    await client.post(f"/api/content/{post['id']}/schedule", json={"scheduled_at": future}, headers=auth_headers(editor))

    async with SessionLocal() as session:
        assert await publish_due_content(session) == 0
        await session.execute(
            update(Content).where(Content.id == post["id"]).values(scheduled_at=utcnow() - timedelta(minutes=1))
        )
        await session.commit()
        assert await publish_due_content(session) == 1

    resp = await client.get(f"/api/public/content/{post['slug']}")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_soft_delete(client, admin, editor):
    post = await _create(client, editor)
    resp = await client.delete(f"/api/content/{post['id']}", headers=auth_headers(editor))
    assert resp.status_code == 200

    resp = await client.get(f"/api/content/{post['id']}", headers=auth_headers(admin))
    assert resp.status_code == 404

    async with SessionLocal() as session:
        row = await session.get(Content, post["id"])
        assert row.deleted is True
        assert row.deleted_at is not None


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(client, editor):
    post = await _create(client, editor, excerpt="Short")
    headers = auth_headers(editor)

    for field in ("title", "body", "tags"):
        resp = await client.put(f"/api/content/{post['id']}", json={field: None}, headers=headers)
        assert resp.status_code == 422, field
        assert resp.json()["code"] == "VALIDATION_ERROR"

    resp = await client.put(f"/api/content/{post['id']}", json={"excerpt": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["excerpt"] is None
    assert resp.json()["title"] == "Hello World"
