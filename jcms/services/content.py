"""
内容服务

可见性：
- editor/viewer 只能看到自己创建的内容
- admin 可见本租户全部内容
- superadmin 可见全部

所有读取路径都过滤已软删除（deleted=True）的内容。
slug 在租户内唯一，重复时追加 -2、-3 ...
"""

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.auth.permissions import ADMIN, SUPERADMIN
from jcms.exceptions import DomainError, NotFoundError, PermissionDeniedError
from jcms.infra.logging import get_logger
from jcms.infra.text import slugify
from jcms.infra.timeutils import as_utc, utcnow
from jcms.models import Content, User
from jcms.schemas.content import ContentCreate, ContentUpdate

logger = get_logger(__name__)


def _visibility_conditions(actor: User) -> list:
    conditions = [Content.deleted.is_(False)]
    if actor.role == SUPERADMIN:
        return conditions
    conditions.append(Content.tenant_id == actor.tenant_id)
    if actor.role != ADMIN:
        conditions.append(Content.author_id == actor.id)
    return conditions


async def unique_slug(
    db: AsyncSession,
    tenant_id: str | None,
    base: str,
    exclude_id: str | None = None,
) -> str:
    """在租户内生成唯一 slug"""
    base_slug = slugify(base, max_length=100)
    slug = base_slug
    suffix = 2
    while True:
        query = select(Content.id).where(Content.slug == slug)
        query = query.where(Content.tenant_id.is_(None) if tenant_id is None else Content.tenant_id == tenant_id)
        if exclude_id:
            query = query.where(Content.id != exclude_id)
        if not (await db.execute(query)).first():
            return slug
        slug = f"{base_slug}-{suffix}"
        suffix += 1


async def list_content(
    db: AsyncSession,
    actor: User,
    *,
    status: str | None = None,
    content_type: str | None = None,
    search: str | None = None,
    tag: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Content], int]:
    conditions = _visibility_conditions(actor)
    if status:
        conditions.append(Content.status == status)
    if content_type:
        conditions.append(Content.type == content_type)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(func.lower(Content.title).like(pattern), func.lower(Content.body).like(pattern)))

    query = select(Content).where(*conditions).order_by(Content.created_at.desc())

    if tag:
        # JSON 数组在不同数据库上的查询方式不同，标签过滤在内存中完成
        rows = [c for c in (await db.execute(query)).scalars().all() if tag in (c.tags or [])]
        return rows[skip:skip + limit], len(rows)

    total = (await db.execute(select(func.count(Content.id)).where(*conditions))).scalar() or 0
    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all()), total


async def get_visible_content(db: AsyncSession, actor: User, content_id: str) -> Content:
    result = await db.execute(
        select(Content).where(Content.id == content_id, *_visibility_conditions(actor))
    )
    content = result.scalar_one_or_none()
    if content is None:
        raise NotFoundError("Content not found", code="CONTENT_NOT_FOUND")
    return content


def ensure_can_edit(actor: User, content: Content) -> None:
    if actor.role in (SUPERADMIN, ADMIN):
        return
    if content.author_id != actor.id:
        raise PermissionDeniedError("You can only modify your own content", code="FORBIDDEN")


async def create_content(db: AsyncSession, actor: User, data: ContentCreate) -> Content:
    content = Content(
        tenant_id=actor.tenant_id,
        author_id=actor.id,
        title=data.title,
        body=data.body,
        excerpt=data.excerpt,
        type=data.type,
        status=data.status,
        tags=data.tags,
        cover_image_url=data.cover_image_url,
        slug=await unique_slug(db, actor.tenant_id, data.slug or data.title),
        meta_title=data.meta_title,
        meta_description=data.meta_description,
        published_at=utcnow() if data.status == "published" else None,
    )
    db.add(content)
    await db.commit()
    logger.info("内容已创建", extra={"content_id": content.id, "status": content.status})
    return content


async def update_content(db: AsyncSession, actor: User, content: Content, data: ContentUpdate) -> Content:
    ensure_can_edit(actor, content)
    update_data = data.model_dump(exclude_unset=True)

    slug = update_data.pop("slug", None)
    if slug:
        content.slug = await unique_slug(db, content.tenant_id, slug, exclude_id=content.id)

    for key, value in update_data.items():
        setattr(content, key, value)

    await db.commit()
    await db.refresh(content)
    return content


async def delete_content(db: AsyncSession, actor: User, content: Content) -> None:
    """软删除"""
    ensure_can_edit(actor, content)
    content.deleted = True
    content.deleted_at = utcnow()
    await db.commit()
    logger.info("内容已删除", extra={"content_id": content.id})


async def publish_content(db: AsyncSession, actor: User, content: Content) -> Content:
    ensure_can_edit(actor, content)
    content.status = "published"
    content.published_at = utcnow()
    content.scheduled_at = None
    await db.commit()
    await db.refresh(content)
    return content


async def unpublish_content(db: AsyncSession, actor: User, content: Content) -> Content:
    ensure_can_edit(actor, content)
    content.status = "draft"
    content.scheduled_at = None
    await db.commit()
    await db.refresh(content)
    return content


async def schedule_content(db: AsyncSession, actor: User, content: Content, scheduled_at) -> Content:
    """
    定时发布

    Raises:
        DomainError: 时间不在未来
    """
    ensure_can_edit(actor, content)
    scheduled_at = as_utc(scheduled_at)
    if scheduled_at <= utcnow():
        raise DomainError("Scheduled time must be in the future", code="INVALID_SCHEDULE")
    content.status = "scheduled"
    content.scheduled_at = scheduled_at
    await db.commit()
    await db.refresh(content)
    return content


async def get_public_content(db: AsyncSession, id_or_slug: str) -> Content:
    """
    公开读取已发布内容（按 ID 或 slug），并累加浏览量
    """
    result = await db.execute(
        select(Content)
        .where(
            or_(Content.id == id_or_slug, Content.slug == id_or_slug),
            Content.status == "published",
            Content.deleted.is_(False),
        )
        .order_by(Content.published_at.desc())
    )
    content = result.scalars().first()
    if content is None:
        raise NotFoundError("Content not found", code="CONTENT_NOT_FOUND")
    content.views = (content.views or 0) + 1
    await db.commit()
    await db.refresh(content)
    return content


async def publish_due_content(db: AsyncSession) -> int:
    """
    发布到点的定时内容（后台任务）

    Returns:
        发布的内容数
    """
    now = utcnow()
    result = await db.execute(
        update(Content)
        .where(
            Content.status == "scheduled",
            Content.deleted.is_(False),
            Content.scheduled_at <= now,
        )
        .values(status="published", published_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = result.rowcount or 0
    if count:
        logger.info(f"定时内容已发布: {count}")
    return count
