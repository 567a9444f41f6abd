"""
租户管理服务

- 创建租户时同时创建租户管理员
- 删除租户时清理其全部数据：用户、文件（含磁盘）、集合、内容、订阅、发票、支持请求
- 彻底删除用户时清理该用户拥有的文件、集合和内容

删除顺序显式处理，不依赖数据库的级联（SQLite 默认不启用外键约束）。
"""

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.auth.passwords import ensure_password_policy, hash_password
from jcms.auth.permissions import ADMIN, SUPERADMIN
from jcms.exceptions import ConflictError, PermissionDeniedError
from jcms.infra.logging import get_logger
from jcms.infra.storage import get_storage
from jcms.models import (
    Collection,
    CollectionItem,
    ContactMessage,
    Content,
    Invoice,
    MediaFile,
    Subscription,
    Tenant,
    User,
)
from jcms.models.tenant import DEFAULT_ALLOWED_FORMATS
from jcms.schemas.tenant import TenantCreate
from jcms.services.branding import default_branding
from jcms.services.users import ensure_unique_identity

logger = get_logger(__name__)


async def create_tenant(db: AsyncSession, data: TenantCreate) -> tuple[Tenant, User]:
    """
    创建租户及其管理员

    Raises:
        ConflictError: 子域名、用户名或邮箱已存在
        PasswordPolicyError: 管理员密码不满足策略
    """
    subdomain = data.subdomain.lower()
    existing = await db.execute(select(Tenant.id).where(Tenant.subdomain == subdomain))
    if existing.first():
        raise ConflictError(f"Subdomain '{subdomain}' is already taken", code="SUBDOMAIN_EXISTS")

    ensure_password_policy(data.admin_password)
    await ensure_unique_identity(db, data.admin_username, data.admin_email)

    tenant = Tenant(
        name=data.name,
        subdomain=subdomain,
        status="active",
        max_users=data.max_users,
        max_storage_mb=data.max_storage_mb,
        allowed_formats=data.allowed_formats or list(DEFAULT_ALLOWED_FORMATS),
        branding=default_branding(),
    )
    db.add(tenant)
    await db.flush()  # 获取 tenant.id

    admin = User(
        tenant_id=tenant.id,
        username=data.admin_username,
        email=str(data.admin_email).lower(),
        hashed_password=hash_password(data.admin_password),
        role=ADMIN,
        is_active=True,
    )
    db.add(admin)
    await db.flush()

    tenant.admin_user_id = admin.id
    await db.commit()

    logger.info("租户已创建", extra={"new_tenant": tenant.id, "subdomain": subdomain})
    return tenant, admin


async def tenant_counts(db: AsyncSession, tenant_id: str) -> dict[str, int]:
    user_count = (await db.execute(
        select(func.count(User.id)).where(User.tenant_id == tenant_id)
    )).scalar() or 0
    media_count = (await db.execute(
        select(func.count(MediaFile.id)).where(MediaFile.tenant_id == tenant_id)
    )).scalar() or 0
    content_count = (await db.execute(
        select(func.count(Content.id)).where(Content.tenant_id == tenant_id, Content.deleted.is_(False))
    )).scalar() or 0
    return {
        "user_count": user_count,
        "media_count": media_count,
        "content_count": content_count,
    }


async def tenant_stats(db: AsyncSession, tenant_id: str) -> dict:
    """租户统计：用户角色分布、存储占用、集合数量"""
    role_rows = await db.execute(
        select(User.role, func.count(User.id))
        .where(User.tenant_id == tenant_id, User.is_active.is_(True))
        .group_by(User.role)
    )
    storage_row = (await db.execute(
        select(func.count(MediaFile.id), func.coalesce(func.sum(MediaFile.file_size), 0))
        .where(MediaFile.tenant_id == tenant_id)
    )).one()
    collection_count = (await db.execute(
        select(func.count(Collection.id)).where(Collection.tenant_id == tenant_id)
    )).scalar() or 0

    counts = await tenant_counts(db, tenant_id)
    return {
        **counts,
        "users_by_role": {role: count for role, count in role_rows.all()},
        "storage_used_bytes": int(storage_row[1] or 0),
        "collection_count": collection_count,
    }


async def _delete_media_rows(db: AsyncSession, media_ids: list[str]) -> None:
    if not media_ids:
        return
    await db.execute(delete(CollectionItem).where(CollectionItem.media_id.in_(media_ids)))
    await db.execute(delete(MediaFile).where(MediaFile.id.in_(media_ids)))


async def _delete_collections(db: AsyncSession, collection_ids: list[str]) -> None:
    if not collection_ids:
        return
    await db.execute(delete(CollectionItem).where(CollectionItem.collection_id.in_(collection_ids)))
    await db.execute(delete(Collection).where(Collection.id.in_(collection_ids)))


async def delete_tenant(db: AsyncSession, tenant: Tenant) -> None:
    """删除租户及其全部数据"""
    tenant_id = tenant.id

    collection_ids = list((await db.execute(
        select(Collection.id).where(Collection.tenant_id == tenant_id)
    )).scalars().all())
    await _delete_collections(db, collection_ids)

    media_ids = list((await db.execute(
        select(MediaFile.id).where(MediaFile.tenant_id == tenant_id)
    )).scalars().all())
    await _delete_media_rows(db, media_ids)

    await db.execute(delete(Content).where(Content.tenant_id == tenant_id))
    await db.execute(delete(Invoice).where(Invoice.tenant_id == tenant_id))
    await db.execute(delete(Subscription).where(Subscription.tenant_id == tenant_id))
    await db.execute(delete(ContactMessage).where(ContactMessage.tenant_id == tenant_id))
    await db.execute(delete(User).where(User.tenant_id == tenant_id))
    await db.delete(tenant)
    await db.commit()

    get_storage().delete_tree(tenant_id)
    logger.info("租户已删除", extra={"deleted_tenant": tenant_id, "media_files": len(media_ids)})


async def purge_user(db: AsyncSession, user: User) -> None:
    """
    彻底删除用户及其拥有的文件、集合和内容

    Raises:
        PermissionDeniedError: 目标是 superadmin
    """
    if user.role == SUPERADMIN:
        raise PermissionDeniedError("Superadmin cannot be deleted", code="CANNOT_DELETE_SUPERADMIN")

    storage = get_storage()
    media = (await db.execute(select(MediaFile).where(MediaFile.owner_id == user.id))).scalars().all()
    for item in media:
        storage.delete(item.storage_path)
    await _delete_media_rows(db, [item.id for item in media])

    collection_ids = list((await db.execute(
        select(Collection.id).where(Collection.owner_id == user.id)
    )).scalars().all())
    await _delete_collections(db, collection_ids)

    await db.execute(delete(Content).where(Content.author_id == user.id))

    if user.tenant_id:
        tenant = await db.get(Tenant, user.tenant_id)
        if tenant is not None and tenant.admin_user_id == user.id:
            tenant.admin_user_id = None

    await db.delete(user)
    await db.commit()
    logger.info("用户已彻底删除", extra={"deleted_user": user.id, "media_files": len(media)})
