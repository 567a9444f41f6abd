"""
集合服务

- 成员按 position 排序，任何增删/重排之后 position 都从 0 连续编号
- 只能加入同一租户的文件，重复加入会被忽略
- ZIP 导出：磁盘上存在的成员文件 + collection_info.json
- 通过 Cloudflare Tunnel 发布：复制私有成员到公开目录并设置公网地址，
  全部成功时集合才标记为 public；已公开的集合不能改名

访问规则：superadmin 任意；admin 本租户任意；其他角色只能访问自己的集合。
"""

import io
import json
import zipfile
from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.auth.permissions import ADMIN, SUPERADMIN
from jcms.exceptions import DomainError, NotFoundError, PermissionDeniedError, StorageError, TunnelError
from jcms.infra.logging import get_logger
from jcms.infra.storage import sanitize_filename
from jcms.infra.text import format_file_size, slugify
from jcms.infra.timeutils import utcnow
from jcms.infra.tunnel import TunnelManager, clean_name
from jcms.models import Collection, CollectionItem, MediaFile, User
from jcms.schemas.collection import CollectionCreate, CollectionUpdate

logger = get_logger(__name__)

INFO_FILENAME = "collection_info.json"


# ==================== 访问控制 ====================

def ensure_can_access(actor: User, collection: Collection) -> None:
    """
    Raises:
        NotFoundError: 其他租户的集合
        PermissionDeniedError: 同租户但不是自己的集合
    """
    if actor.role == SUPERADMIN:
        return
    if collection.tenant_id != actor.tenant_id:
        raise NotFoundError("Collection not found", code="COLLECTION_NOT_FOUND")
    if actor.role == ADMIN:
        return
    if collection.owner_id != actor.id:
        raise PermissionDeniedError("You do not have access to this collection", code="FORBIDDEN")


async def get_collection(db: AsyncSession, actor: User, collection_id: str) -> Collection:
    collection = await db.get(Collection, collection_id)
    if collection is None:
        raise NotFoundError("Collection not found", code="COLLECTION_NOT_FOUND")
    ensure_can_access(actor, collection)
    return collection


# ==================== 查询 ====================

async def unique_slug(db: AsyncSession, name: str, exclude_id: str | None = None) -> str:
    base_slug = slugify(name, max_length=100)
    slug = base_slug
    suffix = 2
    while True:
        query = select(Collection.id).where(Collection.slug == slug)
        if exclude_id:
            query = query.where(Collection.id != exclude_id)
        if not (await db.execute(query)).first():
            return slug
        slug = f"{base_slug}-{suffix}"
        suffix += 1


async def member_media(
    db: AsyncSession,
    collection_id: str,
    skip: int = 0,
    limit: int | None = None,
) -> list[tuple[CollectionItem, MediaFile]]:
    """按 position 排序的成员"""
    query = (
        select(CollectionItem, MediaFile)
        .join(MediaFile, MediaFile.id == CollectionItem.media_id)
        .where(CollectionItem.collection_id == collection_id)
        .order_by(CollectionItem.position, CollectionItem.added_at)
        .offset(skip)
    )
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return [(item, media) for item, media in result.all()]


async def recent_media(db: AsyncSession, collection_id: str, limit: int = 4) -> list[MediaFile]:
    """最近加入的成员，用于列表预览"""
    result = await db.execute(
        select(MediaFile)
        .join(CollectionItem, CollectionItem.media_id == MediaFile.id)
        .where(CollectionItem.collection_id == collection_id)
        .order_by(CollectionItem.added_at.desc(), CollectionItem.position.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def collection_stats(db: AsyncSession, collection_id: str) -> dict:
    row = (await db.execute(
        select(
            func.count(MediaFile.id),
            func.coalesce(func.sum(MediaFile.file_size), 0),
        )
        .join(CollectionItem, CollectionItem.media_id == MediaFile.id)
        .where(CollectionItem.collection_id == collection_id)
    )).one()
    public_items = (await db.execute(
        select(func.count(MediaFile.id))
        .join(CollectionItem, CollectionItem.media_id == MediaFile.id)
        .where(CollectionItem.collection_id == collection_id, MediaFile.visibility == "public")
    )).scalar() or 0

    total_items = row[0] or 0
    total_size = int(row[1] or 0)
    return {
        "total_items": total_items,
        "total_size": total_size,
        "formatted_size": format_file_size(total_size),
        "public_items": public_items,
        "private_items": total_items - public_items,
    }


async def list_collections(
    db: AsyncSession,
    actor: User,
    *,
    search: str | None = None,
    visibility: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Collection], int]:
    conditions = []
    if actor.role != SUPERADMIN:
        conditions.append(Collection.tenant_id == actor.tenant_id)
        if actor.role != ADMIN:
            conditions.append(Collection.owner_id == actor.id)
    if search:
        conditions.append(func.lower(Collection.name).like(f"%{search.lower()}%"))
    if visibility:
        conditions.append(Collection.visibility == visibility)

    total = (await db.execute(select(func.count(Collection.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Collection).where(*conditions).order_by(Collection.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


# ==================== 增删改 ====================

async def create_collection(db: AsyncSession, actor: User, data: CollectionCreate) -> Collection:
    collection = Collection(
        tenant_id=actor.tenant_id,
        owner_id=actor.id,
        name=data.name,
        slug=await unique_slug(db, data.name),
        description=data.description,
        visibility=data.visibility,
        tags=data.tags,
        download_enabled=data.download_enabled,
    )
    db.add(collection)
    await db.commit()
    logger.info("集合已创建", extra={"collection_id": collection.id})
    return collection


async def update_collection(db: AsyncSession, collection: Collection, data: CollectionUpdate) -> Collection:
    update_data = data.model_dump(exclude_unset=True)

    if "cover_file_id" in update_data and update_data["cover_file_id"]:
        member = await db.execute(
            select(CollectionItem.id).where(
                CollectionItem.collection_id == collection.id,
                CollectionItem.media_id == update_data["cover_file_id"],
            )
        )
        if not member.first():
            raise DomainError("Cover file must be a member of the collection", code="INVALID_COVER")

    if update_data.get("name") and update_data["name"] != collection.name:
        # 公开目录按名称定位，已公开的集合改名会与目录脱节
        if collection.visibility == "public" and clean_name(update_data["name"]) != clean_name(collection.name):
            raise DomainError(
                "Unpublish the collection before renaming it",
                code="COLLECTION_PUBLISHED",
            )
        collection.slug = await unique_slug(db, update_data["name"], exclude_id=collection.id)

    for key, value in update_data.items():
        setattr(collection, key, value)

    await db.commit()
    await db.refresh(collection)
    return collection


async def delete_collection(db: AsyncSession, collection: Collection, tunnel: TunnelManager | None = None) -> None:
    """删除集合，成员文件保留；经由本集合公开的成员恢复为私有"""
    reverted = revert_published_members(collection, [media for _, media in await member_media(db, collection.id)])
    await db.execute(delete(CollectionItem).where(CollectionItem.collection_id == collection.id))
    await db.delete(collection)
    await db.commit()
    if tunnel is not None and (reverted or collection.visibility == "public"):
        tunnel.remove_public_directory(collection.name)
    logger.info("集合已删除", extra={"collection_id": collection.id})


async def compact_positions(db: AsyncSession, collection_id: str) -> None:
    """position 重新从 0 连续编号"""
    result = await db.execute(
        select(CollectionItem)
        .where(CollectionItem.collection_id == collection_id)
        .order_by(CollectionItem.position, CollectionItem.added_at)
    )
    for index, item in enumerate(result.scalars().all()):
        item.position = index


async def add_items(db: AsyncSession, collection: Collection, media_ids: Sequence[str]) -> dict:
    """
    追加成员

    Returns:
        {"added": [...], "skipped": [...]}，skipped 为重复或不存在/跨租户的文件
    """
    existing = set((await db.execute(
        select(CollectionItem.media_id).where(CollectionItem.collection_id == collection.id)
    )).scalars().all())

    tenant_condition = (
        MediaFile.tenant_id.is_(None) if collection.tenant_id is None
        else MediaFile.tenant_id == collection.tenant_id
    )
    valid = set((await db.execute(
        select(MediaFile.id).where(MediaFile.id.in_(list(media_ids)), tenant_condition)
    )).scalars().all())

    next_position = (await db.execute(
        select(func.coalesce(func.max(CollectionItem.position), -1))
        .where(CollectionItem.collection_id == collection.id)
    )).scalar()
    next_position = (next_position if next_position is not None else -1) + 1

    added, skipped = [], []
    for media_id in dict.fromkeys(media_ids):
        if media_id in existing or media_id not in valid:
            skipped.append(media_id)
            continue
        db.add(CollectionItem(collection_id=collection.id, media_id=media_id, position=next_position))
        existing.add(media_id)
        added.append(media_id)
        next_position += 1

    collection.updated_at = utcnow()
    await db.commit()
    return {"added": added, "skipped": skipped}


async def remove_items(db: AsyncSession, collection: Collection, media_ids: Sequence[str]) -> int:
    result = await db.execute(
        delete(CollectionItem).where(
            CollectionItem.collection_id == collection.id,
            CollectionItem.media_id.in_(list(media_ids)),
        )
    )
    if collection.cover_file_id in media_ids:
        collection.cover_file_id = None
    await compact_positions(db, collection.id)
    collection.updated_at = utcnow()
    await db.commit()
    return result.rowcount or 0


async def reorder_items(db: AsyncSession, collection: Collection, media_ids: Sequence[str]) -> None:
    """
    按给定顺序重排

    未出现在列表中的成员保持原有相对顺序，排在末尾。

    Raises:
        DomainError: 列表中包含非成员文件
    """
    result = await db.execute(
        select(CollectionItem)
        .where(CollectionItem.collection_id == collection.id)
        .order_by(CollectionItem.position, CollectionItem.added_at)
    )
    items = list(result.scalars().all())
    by_media = {item.media_id: item for item in items}

    unknown = [media_id for media_id in media_ids if media_id not in by_media]
    if unknown:
        raise DomainError(f"Not members of the collection: {', '.join(unknown)}", code="INVALID_ITEMS")

    ordered = [by_media[media_id] for media_id in dict.fromkeys(media_ids)]
    ordered_ids = {item.media_id for item in ordered}
    ordered.extend(item for item in items if item.media_id not in ordered_ids)

    for index, item in enumerate(ordered):
        item.position = index
    collection.updated_at = utcnow()
    await db.commit()


# ==================== ZIP 导出 ====================

def build_zip(collection: Collection, members: list[MediaFile]) -> bytes:
    """
    打包集合文件

    同名文件加序号区分；磁盘上已不存在的文件跳过。
    """
    buffer = io.BytesIO()
    used_names: set[str] = set()
    exported = 0
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for media in members:
            try:
                name = sanitize_filename(media.original_name)
            except StorageError:
                name = media.stored_name
            stem, dot, ext = name.rpartition(".")
            candidate = name
            counter = 1
            while candidate in used_names or candidate == INFO_FILENAME:
                candidate = f"{stem}_{counter}.{ext}" if dot else f"{name}_{counter}"
                counter += 1
            try:
                archive.write(media.storage_path, arcname=candidate)
            except FileNotFoundError:
                logger.warning(f"导出时文件缺失，已跳过: {media.storage_path}")
                continue
            used_names.add(candidate)
            exported += 1

        info = {
            "collectionName": collection.name,
            "description": collection.description or "",
            "imageCount": exported,
            "createdAt": collection.created_at.isoformat() if collection.created_at else None,
            "exportedAt": utcnow().isoformat(),
        }
        archive.writestr(INFO_FILENAME, json.dumps(info, indent=2, ensure_ascii=False))

    return buffer.getvalue()


async def export_zip(db: AsyncSession, collection: Collection) -> tuple[bytes, str]:
    """
    Returns:
        (zip 字节, 下载文件名)

    Raises:
        PermissionDeniedError: 集合禁止下载
        NotFoundError: 集合为空
    """
    if not collection.download_enabled:
        raise PermissionDeniedError("Downloads are disabled for this collection", code="DOWNLOAD_DISABLED")

    members = [media for _, media in await member_media(db, collection.id)]
    if not members:
        raise NotFoundError("Collection is empty", code="COLLECTION_EMPTY")

    data = build_zip(collection, members)
    filename = f"{slugify(collection.name)}.zip"
    logger.info("集合已打包下载", extra={"collection_id": collection.id, "files": len(members)})
    return data, filename


# ==================== 隧道发布 ====================

def revert_published_members(collection: Collection, members: list[MediaFile]) -> int:
    """
    公开地址位于本集合公开目录下的成员恢复为私有

    Returns:
        恢复的文件数
    """
    prefix = f"/public/{clean_name(collection.name)}/"
    reverted = 0
    for media in members:
        if media.public_url and prefix in media.public_url:
            media.visibility = "private"
            media.public_url = None
            media.published_at = None
            reverted += 1
    return reverted


async def publish_collection(db: AsyncSession, collection: Collection, tunnel: TunnelManager) -> dict:
    """
    通过隧道公开集合

    Returns:
        {"published": n, "failed": n, "results": [...], "tunnel_url": ...}

    Raises:
        DomainError: 隧道未运行 / 集合为空 / 没有私有成员
    """
    if not tunnel.is_running:
        raise DomainError("Tunnel is not running. Start the tunnel first", code="TUNNEL_NOT_RUNNING")

    members = await member_media(db, collection.id)
    if not members:
        raise DomainError("Collection is empty", code="COLLECTION_EMPTY")

    # 只处理私有成员，单独设为公开的文件保持原样
    private_members = [media for _, media in members if media.visibility == "private"]
    if not private_members:
        raise DomainError("Collection is already public or has no private files", code="ALREADY_PUBLIC")

    now = utcnow()
    results = []
    for media in private_members:
        try:
            public_url = tunnel.copy_to_public(media.storage_path, collection.name, media.stored_name)
        except (OSError, TunnelError, StorageError) as exc:
            logger.warning(f"文件公开失败 {media.id}: {exc}")
            results.append({"media_id": media.id, "success": False, "public_url": None, "error": str(exc)})
            continue
        media.visibility = "public"
        media.public_url = public_url
        media.published_at = now
        results.append({"media_id": media.id, "success": True, "public_url": public_url, "error": None})

    published = sum(1 for r in results if r["success"])
    failed = len(results) - published
    if failed == 0:
        collection.visibility = "public"
        collection.tunnel_url = tunnel.tunnel_url
        collection.published_at = now

    await db.commit()
    await db.refresh(collection)
    logger.info(
        "集合已发布",
        extra={"collection_id": collection.id, "published": published, "failed": failed},
    )
    return {"published": published, "failed": failed, "results": results, "tunnel_url": tunnel.tunnel_url}


async def unpublish_collection(db: AsyncSession, collection: Collection, tunnel: TunnelManager) -> Collection:
    """撤销公开：删除公开目录，经由本集合公开的成员恢复为私有"""
    revert_published_members(collection, [media for _, media in await member_media(db, collection.id)])
    tunnel.remove_public_directory(collection.name)
    collection.visibility = "private"
    collection.tunnel_url = None
    collection.published_at = None
    await db.commit()
    await db.refresh(collection)
    logger.info("集合已取消公开", extra={"collection_id": collection.id})
    return collection
