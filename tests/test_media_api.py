"""
媒体文件接口测试

- 批量上传、格式与数量限制
- 未订阅租户的文件过期时间
- 访问控制（own / all / 跨租户）
- 下载、变体、格式转换、删除
"""

import io
import os

import pytest
from PIL import Image
from sqlalchemy import func, select

from conftest import auth_headers, png_bytes, upload
from jcms.config import get_settings
from jcms.db.session import SessionLocal
from jcms.models import MediaFile
from jcms.services import media as media_module
from jcms.services.media import cleanup_expired


@pytest.mark.asyncio
async def test_upload_image_and_document(client, editor):
    body = await upload(
        client,
        editor,
        ("photo.png", png_bytes(), "image/png"),
        ("notes.pdf", b"%PDF-1.4 test", "application/pdf"),
        tags="summer, travel",
    )
    assert body["errors"] == []
    image, document = body["items"]

    assert image["kind"] == "image"
    assert image["format"] == "png"
    assert (image["width"], image["height"]) == (64, 48)
    assert image["tags"] == ["summer", "travel"]
    assert image["title"] == "photo"
    # 免费租户的文件会过期
    assert image["expires_at"] is not None

    assert document["kind"] == "file"
    assert document["file_type"] == "document"
    assert document["mime_type"] == "application/pdf"


@pytest.mark.asyncio
async def test_single_upload_uses_title(client, editor):
    body = await upload(client, editor, ("a.png", png_bytes(), "image/png"), title="Cover shot")
    assert body["items"][0]["title"] == "Cover shot"


@pytest.mark.asyncio
async def test_partial_failure_reports_errors(client, editor):
    body = await upload(
        client,
        editor,
        ("ok.png", png_bytes(), "image/png"),
        ("scan.bmp", b"BM", "image/bmp"),
    )
    assert len(body["items"]) == 1
    assert body["errors"][0]["filename"] == "scan.bmp"
    assert body["errors"][0]["code"] == "FORMAT_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_all_failed_returns_first_error(client, editor):
    resp = await client.post(
        "/api/media/upload",
        files=[("files", ("scan.bmp", b"BM", "image/bmp"))],
        headers=auth_headers(editor),
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "FORMAT_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_too_many_files(client, editor):
    files = [("files", (f"f{i}.txt", b"x", "text/plain")) for i in range(11)]
    resp = await client.post("/api/media/upload", files=files, headers=auth_headers(editor))
    assert resp.status_code == 400
    assert resp.json()["code"] == "TOO_MANY_FILES"


@pytest.mark.asyncio
async def test_viewer_cannot_upload(client, viewer):
    resp = await client.post(
        "/api/media/upload",
        files=[("files", ("a.txt", b"x", "text/plain"))],
        headers=auth_headers(viewer),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_listing_scopes(client, admin, editor, other_tenant_admin):
    await upload(client, editor, ("mine.png", png_bytes(), "image/png"))
    await upload(client, admin, ("boss.txt", b"hello", "text/plain"))
    await upload(client, other_tenant_admin, ("other.txt", b"hello", "text/plain"))

    resp = await client.get("/api/media", headers=auth_headers(editor))
    assert [m["original_name"] for m in resp.json()["items"]] == ["mine.png"]

    resp = await client.get("/api/media", headers=auth_headers(admin))
    assert resp.json()["total"] == 2

    resp = await client.get("/api/media", params={"mine": "true"}, headers=auth_headers(admin))
    assert [m["original_name"] for m in resp.json()["items"]] == ["boss.txt"]

    resp = await client.get("/api/media", params={"kind": "image"}, headers=auth_headers(admin))
    assert resp.json()["total"] == 1


@pytest.mark.asyncio
async def test_access_control_on_single_file(client, admin, editor, other_tenant_admin):
    item = (await upload(client, admin, ("boss.png", png_bytes(), "image/png")))["items"][0]

    resp = await client.get(f"/api/media/{item['id']}", headers=auth_headers(editor))
    assert resp.status_code == 403

    resp = await client.get(f"/api/media/{item['id']}", headers=auth_headers(other_tenant_admin))
    assert resp.status_code == 404

    resp = await client.get(f"/api/media/{item['id']}", headers=auth_headers(admin))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_download_counts_access(client, editor):
    item = (await upload(client, editor, ("doc.txt", b"hello world", "text/plain")))["items"][0]
    resp = await client.get(f"/api/media/{item['id']}/download", headers=auth_headers(editor))
    assert resp.status_code == 200
    assert resp.content == b"hello world"

    resp = await client.get(f"/api/media/{item['id']}", headers=auth_headers(editor))
    assert resp.json()["access_count"] == 1
    assert resp.json()["last_accessed_at"] is not None


@pytest.mark.asyncio
async def test_variant_never_upscales(client, editor):
    item = (await upload(client, editor, ("big.png", png_bytes((400, 200)), "image/png")))["items"][0]
    headers = auth_headers(editor)

    resp = await client.get(f"/api/media/{item['id']}/variants/thumbnail", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/webp"
    assert max(Image.open(io.BytesIO(resp.content)).size) == 150

    resp = await client.get(f"/api/media/{item['id']}/variants/large", params={"format": "png"}, headers=headers)
    assert Image.open(io.BytesIO(resp.content)).size == (400, 200)

    resp = await client.get(f"/api/media/{item['id']}/variants/huge", headers=headers)
    assert resp.json()["code"] == "INVALID_SIZE"


@pytest.mark.asyncio
async def test_convert_creates_new_file(client, editor):
    item = (await upload(client, editor, ("pic.png", png_bytes(), "image/png")))["items"][0]
    resp = await client.post(
        f"/api/media/{item['id']}/convert",
        json={"format": "webp", "quality": 70},
        headers=auth_headers(editor),
    )
    assert resp.status_code == 201
    converted = resp.json()
    assert converted["source_id"] == item["id"]
    assert converted["format"] == "webp"
    assert converted["original_name"] == "pic.webp"
    assert converted["id"] != item["id"]


@pytest.mark.asyncio
async def test_convert_rejects_documents(client, editor):
    item = (await upload(client, editor, ("doc.txt", b"x", "text/plain")))["items"][0]
    resp = await client.post(f"/api/media/{item['id']}/convert", json={"format": "png"}, headers=auth_headers(editor))
    assert resp.status_code == 400
    assert resp.json()["code"] == "NOT_AN_IMAGE"


@pytest.mark.asyncio
async def test_update_and_delete(client, editor):
    item = (await upload(client, editor, ("pic.png", png_bytes(), "image/png")))["items"][0]
    headers = auth_headers(editor)

    resp = await client.put(
        f"/api/media/{item['id']}",
        json={"title": "Renamed", "notes": "keep", "tags": ["a"]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["notes"] == "keep"

    async with SessionLocal() as session:
        path = (await session.get(MediaFile, item["id"])).storage_path

    resp = await client.delete(f"/api/media/{item['id']}", headers=headers)
    assert resp.status_code == 200
    resp = await client.get(f"/api/media/{item['id']}", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "FILE_NOT_FOUND"

    assert not os.path.exists(path)


@pytest.mark.asyncio
async def test_expiring_and_cleanup(client, editor):
    item = (await upload(client, editor, ("old.txt", b"x", "text/plain")))["items"][0]
    headers = auth_headers(editor)

    resp = await client.get("/api/media/expiring", params={"days": 30}, headers=headers)
    assert resp.json()["total"] == 1

    resp = await client.get("/api/media/expiring", params={"days": 1}, headers=headers)
    assert resp.json()["total"] == 0

    async with SessionLocal() as session:
        media = await session.get(MediaFile, item["id"])
        media.expires_at = media.created_at
        await session.commit()

    # 已过期等待清理的文件不再算作"即将过期"
    resp = await client.get("/api/media/expiring", params={"days": 30}, headers=headers)
    assert resp.json()["total"] == 0

    async with SessionLocal() as session:
        assert await cleanup_expired(session) == 1


@pytest.mark.asyncio
async def test_formats_endpoint(client, editor):
    resp = await client.get("/api/media/formats", headers=auth_headers(editor))
    body = resp.json()
    assert "png" in body["allowed_formats"]
    assert "webp" in body["conversion_formats"]
    assert body["variant_sizes"]["thumbnail"] == 150


def _stored_files() -> set[str]:
    root = get_settings().upload_path
    return {os.path.join(d, f) for d, _, names in os.walk(root) for f in names}


@pytest.mark.asyncio
async def test_unexpected_error_discards_whole_batch(client, editor, monkeypatch):
    calls = []

    def failing_dimensions(path):
        calls.append(path)
        if len(calls) == 2:
            raise OSError("disk went away")
        return (64, 48)

    monkeypatch.setattr(media_module, "read_dimensions", failing_dimensions)
    before = _stored_files()

    with pytest.raises(OSError):
        await client.post(
            "/api/media/upload",
            files=[
                ("files", ("a.png", png_bytes(), "image/png")),
                ("files", ("b.png", png_bytes(), "image/png")),
            ],
            headers=auth_headers(editor),
        )

    assert _stored_files() == before
    async with SessionLocal() as session:
        count = (await session.execute(select(func.count(MediaFile.id)))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_update_rejects_null_title(client, editor):
    item = (await upload(client, editor, ("photo.png", png_bytes(), "image/png")))["items"][0]
    headers = auth_headers(editor)

    resp = await client.put(f"/api/media/{item['id']}", json={"title": None}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"

    resp = await client.put(f"/api/media/{item['id']}", json={"notes": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["title"] == "photo"
