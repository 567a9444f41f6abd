"""
统计分析服务

所有统计都按 tenant_id 过滤；tenant_id 为 None 时表示 superadmin 的全局视图。
按天/按月分组在 Python 中完成，避免依赖特定数据库的日期函数。
"""

import time
from collections import Counter, defaultdict
from datetime import timedelta

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.infra.logging import get_logger
from jcms.infra.text import format_file_size
from jcms.infra.timeutils import as_utc, utcnow
from jcms.models import Content, MediaFile, Tenant, User

logger = get_logger(__name__)

_STARTED_AT = time.monotonic()


def _tenant_filter(model, tenant_id: str | None) -> list:
    return [] if tenant_id is None else [model.tenant_id == tenant_id]


def _media_summary(media: MediaFile, username: str | None = None) -> dict:
    return {
        "id": media.id,
        "title": media.title,
        "original_name": media.original_name,
        "kind": media.kind,
        "format": media.format,
        "file_size": media.file_size,
        "owner_id": media.owner_id,
        "username": username,
        "created_at": media.created_at,
    }


async def _usernames(db: AsyncSession, user_ids: set[str]) -> dict[str, str]:
    if not user_ids:
        return {}
    result = await db.execute(select(User.id, User.username).where(User.id.in_(list(user_ids))))
    return {user_id: username for user_id, username in result.all()}


async def dashboard(db: AsyncSession, tenant_id: str | None) -> dict:
    """概览：用户数、文件数、最近上传、角色分布、最近 7 天每日上传"""
    total_users = (await db.execute(
        select(func.count(User.id)).where(*_tenant_filter(User, tenant_id))
    )).scalar() or 0
    total_files = (await db.execute(
        select(func.count(MediaFile.id)).where(*_tenant_filter(MediaFile, tenant_id))
    )).scalar() or 0
    total_size = (await db.execute(
        select(func.coalesce(func.sum(MediaFile.file_size), 0)).where(*_tenant_filter(MediaFile, tenant_id))
    )).scalar() or 0

    recent = list((await db.execute(
        select(MediaFile)
        .where(*_tenant_filter(MediaFile, tenant_id))
        .order_by(MediaFile.created_at.desc())
        .limit(10)
    )).scalars().all())
    names = await _usernames(db, {m.owner_id for m in recent})

    role_rows = await db.execute(
        select(User.role, func.count(User.id))
        .where(*_tenant_filter(User, tenant_id))
        .group_by(User.role)
    )

    today = utcnow().date()
    since = utcnow() - timedelta(days=7)
    created = (await db.execute(
        select(MediaFile.created_at).where(*_tenant_filter(MediaFile, tenant_id), MediaFile.created_at >= since)
    )).scalars().all()
    per_day = Counter(as_utc(value).date() for value in created)
    uploads_by_day = [
        {"date": (today - timedelta(days=offset)).isoformat(), "count": per_day.get(today - timedelta(days=offset), 0)}
        for offset in range(6, -1, -1)
    ]

    return {
        "total_users": total_users,
        "total_files": total_files,
        "total_size": int(total_size),
        "formatted_size": format_file_size(int(total_size)),
        "recent_uploads": [_media_summary(m, names.get(m.owner_id)) for m in recent],
        "users_by_role": {role: count for role, count in role_rows.all()},
        "uploads_by_day": uploads_by_day,
    }


async def user_activity(db: AsyncSession, tenant_id: str | None, days: int = 30) -> dict:
    """活跃上传者、新用户、上传最多的用户"""
    since = utcnow() - timedelta(days=days)

    active_uploaders = (await db.execute(
        select(func.count(func.distinct(MediaFile.owner_id)))
        .where(*_tenant_filter(MediaFile, tenant_id), MediaFile.created_at >= since)
    )).scalar() or 0
    new_users = (await db.execute(
        select(func.count(User.id)).where(*_tenant_filter(User, tenant_id), User.created_at >= since)
    )).scalar() or 0

    top_rows = await db.execute(
        select(User.id, User.username, User.email, func.count(MediaFile.id).label("uploads"))
        .join(MediaFile, MediaFile.owner_id == User.id)
        .where(*_tenant_filter(User, tenant_id))
        .group_by(User.id, User.username, User.email)
        .order_by(func.count(MediaFile.id).desc())
        .limit(10)
    )

    return {
        "period_days": days,
        "active_users_count": active_uploaders,
        "new_users_count": new_users,
        "top_active_users": [
            {"user_id": user_id, "username": username, "email": email, "total_uploads": uploads}
            for user_id, username, email, uploads in top_rows.all()
        ],
    }


async def content_insights(db: AsyncSession, tenant_id: str | None) -> dict:
    """重复文件、最大文件、格式趋势、内容状态分布"""
    duplicate_rows = await db.execute(
        select(MediaFile.original_name, MediaFile.file_size, func.count(MediaFile.id))
        .where(*_tenant_filter(MediaFile, tenant_id))
        .group_by(MediaFile.original_name, MediaFile.file_size)
        .having(func.count(MediaFile.id) > 1)
    )
    duplicates = [
        {"original_name": name, "file_size": size, "count": count}
        for name, size, count in duplicate_rows.all()
    ]

    largest = list((await db.execute(
        select(MediaFile)
        .where(*_tenant_filter(MediaFile, tenant_id))
        .order_by(MediaFile.file_size.desc())
        .limit(10)
    )).scalars().all())
    names = await _usernames(db, {m.owner_id for m in largest})

    format_rows = await db.execute(
        select(MediaFile.format, MediaFile.created_at).where(*_tenant_filter(MediaFile, tenant_id))
    )
    trends: dict[tuple[str, str], int] = defaultdict(int)
    for fmt, created_at in format_rows.all():
        trends[(fmt, f"{as_utc(created_at):%Y-%m}")] += 1
    format_trends = [
        {"format": fmt, "month": month, "count": count}
        for (fmt, month), count in sorted(trends.items(), key=lambda kv: (kv[0][1], kv[0][0]), reverse=True)
    ]

    status_rows = await db.execute(
        select(Content.status, func.count(Content.id))
        .where(*_tenant_filter(Content, tenant_id), Content.deleted.is_(False))
        .group_by(Content.status)
    )
    converted = (await db.execute(
        select(func.count(MediaFile.id)).where(*_tenant_filter(MediaFile, tenant_id), MediaFile.source_id.is_not(None))
    )).scalar() or 0

    return {
        "duplicate_files": duplicates,
        "largest_files": [_media_summary(m, names.get(m.owner_id)) for m in largest],
        "format_trends": format_trends,
        "content_by_status": {status: count for status, count in status_rows.all()},
        "total_conversions": converted,
    }


async def predictions(db: AsyncSession, tenant_id: str | None) -> dict:
    """
    存储增长预测

    按最近 30 天中有上传的日子计算日均上传量，乘以 30 得到月增长，
    再乘以平均文件大小得到预计新增存储（MB）。
    """
    since = utcnow() - timedelta(days=30)
    created = (await db.execute(
        select(MediaFile.created_at).where(*_tenant_filter(MediaFile, tenant_id), MediaFile.created_at >= since)
    )).scalars().all()
    per_day = Counter(as_utc(value).date() for value in created)
    avg_daily = sum(per_day.values()) / len(per_day) if per_day else 0.0

    avg_size = (await db.execute(
        select(func.avg(MediaFile.file_size)).where(*_tenant_filter(MediaFile, tenant_id))
    )).scalar() or 0

    active_users = (await db.execute(
        select(func.count(func.distinct(MediaFile.owner_id)))
        .where(*_tenant_filter(MediaFile, tenant_id), MediaFile.created_at >= since)
    )).scalar() or 0

    projected_monthly = avg_daily * 30
    return {
        "avg_daily_uploads": round(avg_daily, 2),
        "projected_monthly_growth": round(projected_monthly, 2),
        "projected_storage_need_mb": round(projected_monthly * float(avg_size) / 1024 / 1024),
        "active_users_trend": active_users,
    }


async def system_health(db: AsyncSession) -> dict:
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error(f"数据库检查失败: {exc}")
        database = "error"
    return {
        "uptime_seconds": int(time.monotonic() - _STARTED_AT),
        "database": database,
        "timestamp": utcnow(),
    }


async def compare_tenants(db: AsyncSession, tenant_ids: list[str] | None = None) -> list[dict]:
    """
    租户对比（superadmin）

    未指定 tenant_ids 时对比全部 active 租户。
    """
    query = select(Tenant).order_by(Tenant.created_at)
    query = query.where(Tenant.id.in_(tenant_ids)) if tenant_ids else query.where(Tenant.status == "active")
    tenants = (await db.execute(query)).scalars().all()

    since = utcnow() - timedelta(days=30)
    comparison = []
    for tenant in tenants:
        total_users = (await db.execute(
            select(func.count(User.id)).where(User.tenant_id == tenant.id)
        )).scalar() or 0
        active_users = (await db.execute(
            select(func.count(User.id)).where(User.tenant_id == tenant.id, User.is_active.is_(True))
        )).scalar() or 0
        used = int((await db.execute(
            select(func.coalesce(func.sum(MediaFile.file_size), 0)).where(MediaFile.tenant_id == tenant.id)
        )).scalar() or 0)
        new_images = (await db.execute(
            select(func.count(MediaFile.id)).where(
                MediaFile.tenant_id == tenant.id, MediaFile.kind == "image", MediaFile.created_at >= since
            )
        )).scalar() or 0
        new_files = (await db.execute(
            select(func.count(MediaFile.id)).where(
                MediaFile.tenant_id == tenant.id, MediaFile.kind == "file", MediaFile.created_at >= since
            )
        )).scalar() or 0

        quota = tenant.max_storage_mb * 1024 * 1024 if tenant.max_storage_mb >= 0 else 0
        comparison.append({
            "tenant": {
                "id": tenant.id,
                "name": tenant.name,
                "subdomain": tenant.subdomain,
                "created_at": tenant.created_at,
            },
            "users": {"total": total_users, "active": active_users},
            "storage": {
                "used_bytes": used,
                "quota_bytes": quota,
                "percentage": round(used / quota * 100, 2) if quota else 0.0,
            },
            "activity": {"new_images": new_images, "new_files": new_files, "total": new_images + new_files},
        })
    return comparison
