"""
审计日志

写入由 AuditLogMiddleware 触发；查询与统计供活动日志和分析接口使用。
tenant_id 为 None 表示不按租户过滤（superadmin 视图）。
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.infra.logging import get_logger
from jcms.infra.timeutils import utcnow
from jcms.models.audit_log import AuditLog

logger = get_logger(__name__)

_MAX_TEXT = 500


async def record_audit_log(
    session: AsyncSession,
    *,
    request_id: str,
    action: str,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    tenant_id: str | None = None,
    user_id: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    query_params: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    error_message: str | None = None,
) -> AuditLog:
    """添加一条审计记录（不提交事务）"""
    entry = AuditLog(
        request_id=request_id,
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        method=method,
        path=path[:_MAX_TEXT],
        query_params=query_params,
        status_code=status_code,
        duration_ms=duration_ms,
        ip_address=ip_address,
        user_agent=user_agent[:_MAX_TEXT] if user_agent else None,
        error_message=error_message,
    )
    session.add(entry)
    logger.debug(f"审计: {action} -> {status_code}", extra={"audit_action": action})
    return entry


def _filters(
    tenant_id: str | None = None,
    user_id: str | None = None,
    action: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> list:
    filters = []
    if tenant_id:
        filters.append(AuditLog.tenant_id == tenant_id)
    if user_id:
        filters.append(AuditLog.user_id == user_id)
    if action:
        filters.append(AuditLog.action == action)
    if start_time:
        filters.append(AuditLog.created_at >= start_time)
    if end_time:
        filters.append(AuditLog.created_at <= end_time)
    return filters


async def query_audit_logs(
    session: AsyncSession,
    *,
    tenant_id: str | None = None,
    user_id: str | None = None,
    action: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """按条件分页查询，最新的在前"""
    filters = _filters(tenant_id, user_id, action, start_time, end_time)
    total = (await session.execute(select(func.count(AuditLog.id)).where(*filters))).scalar() or 0
    result = await session.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_audit_stats(
    session: AsyncSession,
    *,
    tenant_id: str | None = None,
    hours: int = 24,
) -> dict[str, Any]:
    """
    最近 hours 小时的活动统计

    Returns:
        总请求数、错误数（状态码 >= 400）与错误率、活跃用户数、平均耗时、
        按操作和按状态码段（2xx/4xx/5xx）的计数
    """
    filters = _filters(tenant_id=tenant_id, start_time=utcnow() - timedelta(hours=hours))

    total, active_users, avg_duration = (await session.execute(
        select(
            func.count(AuditLog.id),
            func.count(func.distinct(AuditLog.user_id)),
            func.avg(AuditLog.duration_ms),
        ).where(*filters)
    )).one()

    by_action = dict((await session.execute(
        select(AuditLog.action, func.count(AuditLog.id)).where(*filters).group_by(AuditLog.action)
    )).all())

    by_status: dict[str, int] = {}
    for code, count in (await session.execute(
        select(AuditLog.status_code, func.count(AuditLog.id)).where(*filters).group_by(AuditLog.status_code)
    )).all():
        bucket = f"{code // 100}xx"
        by_status[bucket] = by_status.get(bucket, 0) + count
    errors = sum(count for bucket, count in by_status.items() if bucket[0] in "45")

    return {
        "period_hours": hours,
        "total_requests": total or 0,
        "error_requests": errors,
        "error_rate": errors / total if total else 0,
        "active_users": active_users or 0,
        "avg_duration_ms": round(float(avg_duration or 0), 2),
        "by_action": by_action,
        "by_status": by_status,
    }
