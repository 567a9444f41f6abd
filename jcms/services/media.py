"""
媒体文件服务

上传流程：
1. 清理文件名，按扩展名分类（image/document/...）
2. 图片格式必须在租户 allowed_formats 内
3. 按订阅等级限制单文件大小，边写边计数
4. 检查租户存储配额 max_storage_mb
5. 图片读取宽高；未订阅租户的文件设置 expires_at

文件写盘和 Pillow 处理都是同步操作，通过 run_in_threadpool 执行。
"""

import mimetypes
from datetime import timedelta

from fastapi import UploadFile
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from jcms.exceptions import DomainError, NotFoundError, StorageError
from jcms.infra.imaging import convert_image, read_dimensions
from jcms.infra.logging import get_logger
from jcms.infra.storage import StoredFile, classify_file, get_storage, is_image_format, sanitize_filename
from jcms.infra.timeutils import utcnow
from jcms.models import CollectionItem, MediaFile, Tenant, User
from jcms.services.collections import compact_positions
from jcms.services.subscriptions import TenantLimits

logger = get_logger(__name__)


async def storage_used(db: AsyncSession, tenant_id: str | None) -> int:
    condition = MediaFile.tenant_id.is_(None) if tenant_id is None else MediaFile.tenant_id == tenant_id
    result = await db.execute(select(func.coalesce(func.sum(MediaFile.file_size), 0)).where(condition))
    return int(result.scalar() or 0)


async def store_upload(
    db: AsyncSession,
    actor: User,
    tenant: Tenant | None,
    upload: UploadFile,
    limits: TenantLimits,
    title: str | None = None,
    tags: list[str] | None = None,
) -> MediaFile:
    """
    保存单个上传文件并创建记录（不提交事务）

    Raises:
        StorageError: 文件名非法、格式不允许、超出大小或存储配额
    """
    original_name = sanitize_filename(upload.filename or "")
    file_type, fmt = classify_file(original_name)
    kind = "image" if is_image_format(fmt) else "file"

    if kind == "image" and tenant is not None and tenant.allowed_formats:
        allowed = {f.lower() for f in tenant.allowed_formats}
        if fmt not in allowed:
            raise StorageError(
                f"Format '{fmt}' is not allowed. Allowed formats: {', '.join(sorted(allowed))}",
                code="FORMAT_NOT_ALLOWED",
            )

    storage = get_storage()
    stored = await run_in_threadpool(
        storage.save_stream,
        upload.file,
        tenant_id=actor.tenant_id,
        user_id=actor.id,
        kind=kind,
        extension=fmt,
        max_bytes=limits.max_file_size_bytes,
    )

    try:
        media = await _create_record(db, actor, tenant, upload, limits, stored, original_name,
                                     file_type=file_type, fmt=fmt, kind=kind, title=title, tags=tags)
    except Exception:
        # 记录未建成时不留下孤立文件
        storage.delete(stored.path)
        raise
    logger.info(
        "文件已上传",
        extra={"media_id": media.id, "kind": kind, "file_size": stored.size},
    )
    return media


async def _create_record(
    db: AsyncSession,
    actor: User,
    tenant: Tenant | None,
    upload: UploadFile,
    limits: TenantLimits,
    stored: StoredFile,
    original_name: str,
    *,
    file_type: str,
    fmt: str,
    kind: str,
    title: str | None,
    tags: list[str] | None,
) -> MediaFile:
    # max_storage_mb 为 -1 表示不限制
    if tenant is not None and tenant.max_storage_mb >= 0:
        quota_bytes = tenant.max_storage_mb * 1024 * 1024
        if await storage_used(db, tenant.id) + stored.size > quota_bytes:
            raise StorageError(
                f"Storage quota of {tenant.max_storage_mb} MB exceeded",
                code="STORAGE_QUOTA_EXCEEDED",
            )

    width = height = None
    if kind == "image":
        dimensions = await run_in_threadpool(read_dimensions, stored.path)
        if dimensions:
            width, height = dimensions

    mime_type = upload.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mimetypes.guess_type(original_name)[0] or "application/octet-stream"

    expires_at = None
    if limits.file_expiration_days:
        expires_at = utcnow() + timedelta(days=limits.file_expiration_days)

    media = MediaFile(
        tenant_id=actor.tenant_id,
        owner_id=actor.id,
        title=title or original_name.rsplit(".", 1)[0] or original_name,
        original_name=original_name,
        stored_name=stored.stored_name,
        storage_path=str(stored.path),
        kind=kind,
        file_type=file_type,
        format=fmt,
        mime_type=mime_type,
        file_size=stored.size,
        width=width,
        height=height,
        tags=list(tags or []),
        expires_at=expires_at,
    )
    db.add(media)
    await db.flush()
    return media


async def list_media(
    db: AsyncSession,
    actor: User,
    *,
    scope: str = "own",
    kind: str | None = None,
    file_type: str | None = None,
    visibility: str | None = None,
    search: str | None = None,
    tag: str | None = None,
    owner_id: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[MediaFile], int]:
    """
    Args:
        scope: "all" 可见本租户（superadmin 全部），"own" 只看自己的
    """
    conditions = []
    if actor.tenant_id is not None:
        conditions.append(MediaFile.tenant_id == actor.tenant_id)
    elif scope != "all":
        conditions.append(MediaFile.tenant_id.is_(None))
    if scope != "all":
        conditions.append(MediaFile.owner_id == actor.id)
    elif owner_id:
        conditions.append(MediaFile.owner_id == owner_id)

    if kind:
        conditions.append(MediaFile.kind == kind)
    if file_type:
        conditions.append(MediaFile.file_type == file_type)
    if visibility:
        conditions.append(MediaFile.visibility == visibility)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(MediaFile.title).like(pattern),
            func.lower(MediaFile.original_name).like(pattern),
        ))

    query = select(MediaFile).where(*conditions).order_by(MediaFile.created_at.desc())

    if tag:
        rows = [m for m in (await db.execute(query)).scalars().all() if tag in (m.tags or [])]
        return rows[skip:skip + limit], len(rows)

    total = (await db.execute(select(func.count(MediaFile.id)).where(*conditions))).scalar() or 0
    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all()), total


async def get_media(db: AsyncSession, media_id: str) -> MediaFile:
    media = await db.get(MediaFile, media_id)
    if media is None:
        raise NotFoundError("File not found", code="FILE_NOT_FOUND")
    return media


async def record_access(db: AsyncSession, media: MediaFile) -> None:
    media.access_count = (media.access_count or 0) + 1
    media.last_accessed_at = utcnow()
    await db.commit()


async def update_media(db: AsyncSession, media: MediaFile, data) -> MediaFile:
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(media, key, value)
    await db.commit()
    await db.refresh(media)
    return media


async def delete_media(db: AsyncSession, media: MediaFile) -> None:
    """删除文件：磁盘文件、集合成员关系、数据库记录"""
    collection_ids = list((await db.execute(
        select(CollectionItem.collection_id).where(CollectionItem.media_id == media.id)
    )).scalars().all())
    await db.execute(delete(CollectionItem).where(CollectionItem.media_id == media.id))
    for collection_id in collection_ids:
        await compact_positions(db, collection_id)

    await db.delete(media)
    await db.commit()

    if not get_storage().delete(media.storage_path):
        logger.warning(f"磁盘文件不存在或无法删除: {media.storage_path}")
    logger.info("文件已删除", extra={"media_id": media.id, "collections": len(collection_ids)})


async def convert_media(
    db: AsyncSession,
    actor: User,
    media: MediaFile,
    fmt: str,
    quality: int,
    limits: TenantLimits,
) -> MediaFile:
    """
    转换图片格式，生成新的文件记录

    Raises:
        DomainError: 源文件不是图片
        ImageProcessingError: 格式不支持或转换失败
    """
    if media.kind != "image":
        raise DomainError("Only images can be converted", code="NOT_AN_IMAGE")

    data, extension, mime_type, width, height = await run_in_threadpool(
        convert_image, media.storage_path, fmt, quality
    )
    stored = await run_in_threadpool(
        get_storage().save_bytes,
        data,
        tenant_id=media.tenant_id,
        user_id=actor.id,
        kind="image",
        extension=extension,
    )

    stem = media.original_name.rsplit(".", 1)[0]
    expires_at = None
    if limits.file_expiration_days:
        expires_at = utcnow() + timedelta(days=limits.file_expiration_days)

    converted = MediaFile(
        tenant_id=media.tenant_id,
        owner_id=actor.id,
        title=f"{media.title} ({extension})",
        original_name=f"{stem}.{extension}",
        stored_name=stored.stored_name,
        storage_path=str(stored.path),
        kind="image",
        file_type="image",
        format=extension,
        mime_type=mime_type,
        file_size=stored.size,
        width=width,
        height=height,
        tags=list(media.tags or []),
        source_id=media.id,
        expires_at=expires_at,
    )
    db.add(converted)
    await db.commit()
    logger.info(
        "图片已转换",
        extra={"media_id": converted.id, "source_id": media.id, "format": extension},
    )
    return converted


async def list_expiring(
    db: AsyncSession,
    actor: User,
    *,
    scope: str = "own",
    days: int = 7,
) -> list[MediaFile]:
    """days 天内将要过期的文件（已过期、等待清理的不包括在内）"""
    now = utcnow()
    conditions = [
        MediaFile.expires_at > now,
        MediaFile.expires_at <= now + timedelta(days=days),
    ]
    if actor.tenant_id is not None:
        conditions.append(MediaFile.tenant_id == actor.tenant_id)
    if scope != "all":
        conditions.append(MediaFile.owner_id == actor.id)

    result = await db.execute(select(MediaFile).where(*conditions).order_by(MediaFile.expires_at))
    return list(result.scalars().all())


async def cleanup_expired(db: AsyncSession) -> int:
    """
    删除已过期的文件（后台任务）

    Returns:
        删除的文件数
    """
    now = utcnow()
    result = await db.execute(
        select(MediaFile).where(MediaFile.expires_at.is_not(None), MediaFile.expires_at <= now)
    )
    expired = list(result.scalars().all())
    for media in expired:
        await delete_media(db, media)
    if expired:
        logger.info(f"已清理过期文件: {len(expired)}")
    return len(expired)
