"""
活动日志接口

admin 查看本租户的审计日志，superadmin 查看全部（可按租户过滤）。
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_admin_or_above
from jcms.schemas.audit import AuditLogListResponse, AuditLogResponse
from jcms.services.audit import get_audit_stats, query_audit_logs

router = APIRouter(prefix="/api/activity", tags=["activity"])


def _scope(ctx: AuthContext, tenant_id: str | None) -> str | None:
    # 非 superadmin 忽略 tenant_id 参数
    return tenant_id if ctx.is_superadmin else ctx.tenant_id


@router.get("", response_model=AuditLogListResponse)
async def list_activity(
    action: str | None = Query(None, description="操作名，如 content_create"),
    user_id: str | None = Query(None),
    tenant_id: str | None = Query(None, description="仅 superadmin 可用"),
    start_time: datetime | None = Query(None),
    end_time: datetime | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> AuditLogListResponse:
    logs, total = await query_audit_logs(
        db,
        tenant_id=_scope(ctx, tenant_id),
        user_id=user_id,
        action=action,
        start_time=start_time,
        end_time=end_time,
        limit=limit,
        offset=skip,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/stats")
async def activity_stats(
    hours: int = Query(24, ge=1, le=24 * 90),
    tenant_id: str | None = Query(None),
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await get_audit_stats(db, tenant_id=_scope(ctx, tenant_id), hours=hours)
