"""
集合接口测试

- 创建、统计、成员增删与重排（position 连续）
- 访问控制
- ZIP 下载
- 通过隧道公开 / 取消公开
"""

import io
import json
import zipfile

import pytest

from conftest import auth_headers, png_bytes, upload
from jcms.infra.tunnel import get_tunnel_manager

TUNNEL_URL = "https://quiet-river-1234.trycloudflare.com"


async def _collection(client, user, **fields) -> dict:
    payload = {"name": "Summer Gallery", "description": "Beach photos", **fields}
    resp = await client.post("/api/collections", json=payload, headers=auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _media_ids(client, user, count: int) -> list[str]:
    files = [(f"img{i}.png", png_bytes(color="blue"), "image/png") for i in range(count)]
    body = await upload(client, user, *files)
    return [m["id"] for m in body["items"]]


async def _add(client, user, collection_id: str, media_ids: list[str]) -> dict:
    resp = await client.post(
        f"/api/collections/{collection_id}/items",
        json={"media_ids": media_ids},
        headers=auth_headers(user),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_collection(client, editor):
    body = await _collection(client, editor)
    assert body["slug"] == "summer-gallery"
    assert body["visibility"] == "private"
    assert body["download_enabled"] is True
    assert body["stats"]["total_items"] == 0
    assert body["recent_items"] == []

    again = await _collection(client, editor)
    assert again["slug"] == "summer-gallery-2"


@pytest.mark.asyncio
async def test_add_items_skips_duplicates_and_foreign_files(client, editor, other_tenant_admin):
    collection = await _collection(client, editor)
    ids = await _media_ids(client, editor, 2)
    foreign = await _media_ids(client, other_tenant_admin, 1)

    result = await _add(client, editor, collection["id"], ids + foreign)
    assert result["added"] == ids
    assert result["skipped"] == foreign
    assert result["total_items"] == 2

    result = await _add(client, editor, collection["id"], [ids[0]])
    assert result["added"] == []
    assert result["skipped"] == [ids[0]]

    resp = await client.get(f"/api/collections/{collection['id']}", headers=auth_headers(editor))
    detail = resp.json()
    assert [item["position"] for item in detail["items"]] == [0, 1]
    assert [item["media"]["id"] for item in detail["items"]] == ids
    assert detail["items_total"] == 2
    assert detail["stats"]["private_items"] == 2
    assert len(detail["recent_items"]) == 2


@pytest.mark.asyncio
async def test_remove_and_reorder_keep_positions_contiguous(client, editor):
    collection = await _collection(client, editor)
    ids = await _media_ids(client, editor, 3)
    await _add(client, editor, collection["id"], ids)
    headers = auth_headers(editor)

    resp = await client.put(
        f"/api/collections/{collection['id']}/reorder",
        json={"media_ids": [ids[2], ids[0]]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["order"] == [ids[2], ids[0], ids[1]]

    resp = await client.request(
        "DELETE",
        f"/api/collections/{collection['id']}/items",
        json={"media_ids": [ids[0]]},
        headers=headers,
    )
    assert resp.json()["removed"] == 1

    resp = await client.get(f"/api/collections/{collection['id']}", headers=headers)
    items = resp.json()["items"]
    assert [(i["position"], i["media"]["id"]) for i in items] == [(0, ids[2]), (1, ids[1])]

    resp = await client.put(
        f"/api/collections/{collection['id']}/reorder",
        json={"media_ids": [ids[0]]},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_ITEMS"


@pytest.mark.asyncio
async def test_deleting_media_compacts_positions(client, editor):
    collection = await _collection(client, editor)
    ids = await _media_ids(client, editor, 3)
    await _add(client, editor, collection["id"], ids)

    resp = await client.delete(f"/api/media/{ids[1]}", headers=auth_headers(editor))
    assert resp.status_code == 200

    resp = await client.get(f"/api/collections/{collection['id']}", headers=auth_headers(editor))
    items = resp.json()["items"]
    assert [(i["position"], i["media"]["id"]) for i in items] == [(0, ids[0]), (1, ids[2])]


@pytest.mark.asyncio
async def test_cover_must_be_member(client, editor):
    collection = await _collection(client, editor)
    ids = await _media_ids(client, editor, 2)
    await _add(client, editor, collection["id"], ids[:1])
    headers = auth_headers(editor)

    resp = await client.put(f"/api/collections/{collection['id']}", json={"cover_file_id": ids[1]}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_COVER"

    resp = await client.put(
        f"/api/collections/{collection['id']}",
        json={"cover_file_id": ids[0], "name": "Winter Gallery"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["cover_file_id"] == ids[0]
    assert resp.json()["slug"] == "winter-gallery"


@pytest.mark.asyncio
async def test_access_rules(client, admin, editor, other_tenant_admin):
    mine = await _collection(client, editor)

    resp = await client.get(f"/api/collections/{mine['id']}", headers=auth_headers(admin))
    assert resp.status_code == 200

    resp = await client.get(f"/api/collections/{mine['id']}", headers=auth_headers(other_tenant_admin))
    assert resp.status_code == 404
    assert resp.json()["code"] == "COLLECTION_NOT_FOUND"

    admins = await _collection(client, admin, name="Admin only")
    resp = await client.get(f"/api/collections/{admins['id']}", headers=auth_headers(editor))
    assert resp.status_code == 403

    resp = await client.get("/api/collections", headers=auth_headers(editor))
    assert [c["id"] for c in resp.json()["items"]] == [mine["id"]]


@pytest.mark.asyncio
async def test_zip_download(client, editor):
    collection = await _collection(client, editor)
    headers = auth_headers(editor)

    resp = await client.get(f"/api/collections/{collection['id']}/download", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "COLLECTION_EMPTY"

    ids = await _media_ids(client, editor, 2)
    await _add(client, editor, collection["id"], ids)

    resp = await client.get(f"/api/collections/{collection['id']}/download", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/zip"
    assert 'filename="summer-gallery.zip"' in resp.headers["content-disposition"]

    archive = zipfile.ZipFile(io.BytesIO(resp.content))
    assert sorted(archive.namelist()) == ["collection_info.json", "img0.png", "img1.png"]
    info = json.loads(archive.read("collection_info.json"))
    assert info["collectionName"] == "Summer Gallery"
    assert info["description"] == "Beach photos"
    assert info["imageCount"] == 2
    assert info["exportedAt"]


@pytest.mark.asyncio
async def test_duplicate_names_in_zip(client, editor):
    collection = await _collection(client, editor)
    first = await upload(client, editor, ("same.png", png_bytes(), "image/png"))
    second = await upload(client, editor, ("same.png", png_bytes(), "image/png"))
    await _add(client, editor, collection["id"], [first["items"][0]["id"], second["items"][0]["id"]])

    resp = await client.get(f"/api/collections/{collection['id']}/download", headers=auth_headers(editor))
    names = zipfile.ZipFile(io.BytesIO(resp.content)).namelist()
    assert "same.png" in names
    assert "same_1.png" in names


@pytest.mark.asyncio
async def test_download_disabled(client, editor):
    collection = await _collection(client, editor, download_enabled=False)
    ids = await _media_ids(client, editor, 1)
    await _add(client, editor, collection["id"], ids)

    resp = await client.get(f"/api/collections/{collection['id']}/download", headers=auth_headers(editor))
    assert resp.status_code == 403
    assert resp.json()["code"] == "DOWNLOAD_DISABLED"


@pytest.mark.asyncio
async def test_publish_requires_running_tunnel(client, admin):
    collection = await _collection(client, admin)
    ids = await _media_ids(client, admin, 1)
    await _add(client, admin, collection["id"], ids)

    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json()["code"] == "TUNNEL_NOT_RUNNING"


@pytest.mark.asyncio
async def test_editor_cannot_publish(client, editor):
    collection = await _collection(client, editor)
    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=auth_headers(editor))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_publish_and_unpublish(client, admin):
    collection = await _collection(client, admin, name="My Photos!")
    ids = await _media_ids(client, admin, 2)
    headers = auth_headers(admin)
    get_tunnel_manager().tunnel_url = TUNNEL_URL

    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "COLLECTION_EMPTY"

    await _add(client, admin, collection["id"], ids)
    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["published"] == 2
    assert body["failed"] == 0
    assert body["tunnel_url"] == TUNNEL_URL
    assert body["collection"]["visibility"] == "public"
    assert body["collection"]["stats"]["public_items"] == 2
    for result in body["results"]:
        assert result["success"] is True
        assert result["public_url"].startswith(f"{TUNNEL_URL}/public/my-photos/")

    public_dir = get_tunnel_manager().public_root / "my-photos"
    assert len(list(public_dir.iterdir())) == 2

    resp = await client.post(f"/api/collections/{collection['id']}/unpublish", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["visibility"] == "private"
    assert resp.json()["tunnel_url"] is None
    assert resp.json()["stats"]["public_items"] == 0
    assert not public_dir.exists()


@pytest.mark.asyncio
async def test_delete_collection_keeps_media(client, editor):
    collection = await _collection(client, editor)
    ids = await _media_ids(client, editor, 1)
    await _add(client, editor, collection["id"], ids)
    headers = auth_headers(editor)

    resp = await client.delete(f"/api/collections/{collection['id']}", headers=headers)
    assert resp.status_code == 200
    resp = await client.get(f"/api/collections/{collection['id']}", headers=headers)
    assert resp.status_code == 404
    resp = await client.get(f"/api/media/{ids[0]}", headers=headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_tunnel_endpoints_without_binary(client, admin, editor):
    resp = await client.get("/api/tunnel/status", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["is_running"] is False
    assert resp.json()["available"] is False

    resp = await client.post("/api/tunnel/start", headers=auth_headers(admin))
    assert resp.status_code == 503
    assert resp.json()["code"] == "TUNNEL_UNAVAILABLE"

    resp = await client.post("/api/tunnel/stop", headers=auth_headers(admin))
    assert resp.json()["stopped"] is False

    resp = await client.get("/api/tunnel/status", headers=auth_headers(editor))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_publish_leaves_already_public_files_alone(client, admin):
    collection = await _collection(client, admin, name="Mixed")
    ids = await _media_ids(client, admin, 2)
    await _add(client, admin, collection["id"], ids)
    headers = auth_headers(admin)
    get_tunnel_manager().tunnel_url = TUNNEL_URL

    resp = await client.put(f"/api/media/{ids[0]}", json={"visibility": "public"}, headers=headers)
    assert resp.status_code == 200

    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["published"] == 1
    assert [r["media_id"] for r in body["results"]] == [ids[1]]

    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "ALREADY_PUBLIC"

    resp = await client.post(f"/api/collections/{collection['id']}/unpublish", headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"/api/media/{ids[0]}", headers=headers)
    assert resp.json()["visibility"] == "public"
    resp = await client.get(f"/api/media/{ids[1]}", headers=headers)
    assert resp.json()["visibility"] == "private"
    assert resp.json()["public_url"] is None


@pytest.mark.asyncio
async def test_unpublish_keeps_files_published_by_other_collections(client, admin):
    first = await _collection(client, admin, name="First")
    second = await _collection(client, admin, name="Second")
    ids = await _media_ids(client, admin, 2)
    await _add(client, admin, first["id"], ids[:1])
    await _add(client, admin, second["id"], ids)
    headers = auth_headers(admin)
    get_tunnel_manager().tunnel_url = TUNNEL_URL

    resp = await client.post(f"/api/collections/{first['id']}/publish", headers=headers)
    assert resp.json()["published"] == 1
    resp = await client.post(f"/api/collections/{second['id']}/publish", headers=headers)
    assert resp.json()["published"] == 1

    resp = await client.post(f"/api/collections/{second['id']}/unpublish", headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"/api/media/{ids[0]}", headers=headers)
    assert resp.json()["visibility"] == "public"
    assert "/public/first/" in resp.json()["public_url"]
    resp = await client.get(f"/api/media/{ids[1]}", headers=headers)
    assert resp.json()["visibility"] == "private"


@pytest.mark.asyncio
async def test_deleting_published_collection_reverts_members(client, admin):
    collection = await _collection(client, admin, name="Gone Soon")
    ids = await _media_ids(client, admin, 1)
    await _add(client, admin, collection["id"], ids)
    headers = auth_headers(admin)
    get_tunnel_manager().tunnel_url = TUNNEL_URL

    resp = await client.post(f"/api/collections/{collection['id']}/publish", headers=headers)
    assert resp.status_code == 200
    public_dir = get_tunnel_manager().public_root / "gone-soon"
    assert public_dir.exists()

    resp = await client.delete(f"/api/collections/{collection['id']}", headers=headers)
    assert resp.status_code == 200
    assert not public_dir.exists()

    resp = await client.get(f"/api/media/{ids[0]}", headers=headers)
    assert resp.json()["visibility"] == "private"
    assert resp.json()["public_url"] is None


@pytest.mark.asyncio
async def test_rename_published_collection(client, admin):
    collection = await _collection(client, admin, name="Launch Day")
    ids = await _media_ids(client, admin, 1)
    await _add(client, admin, collection["id"], ids)
    headers = auth_headers(admin)
    get_tunnel_manager().tunnel_url = TUNNEL_URL
    await client.post(f"/api/collections/{collection['id']}/publish", headers=headers)

    resp = await client.put(f"/api/collections/{collection['id']}", json={"name": "Launch Week"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "COLLECTION_PUBLISHED"

    # 公开目录名不变时允许
    resp = await client.put(f"/api/collections/{collection['id']}", json={"name": "launch day"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "launch day"

    await client.post(f"/api/collections/{collection['id']}/unpublish", headers=headers)
    resp = await client.put(f"/api/collections/{collection['id']}", json={"name": "Launch Week"}, headers=headers)
    assert resp.status_code == 200
