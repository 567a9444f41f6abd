"""
统计分析接口

需要 analytics.read 权限（admin 及以上）。
admin 的数据限定在本租户，superadmin 为全平台。
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_permission, require_superadmin
from jcms.services import analytics as analytics_service
from jcms.services.audit import get_audit_stats

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

require_analytics = require_permission("analytics.read")


@router.get("/dashboard")
async def dashboard(
    ctx: AuthContext = Depends(require_analytics),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await analytics_service.dashboard(db, ctx.tenant_scope())


@router.get("/users")
async def user_activity(
    days: int = Query(30, ge=1, le=365),
    ctx: AuthContext = Depends(require_analytics),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await analytics_service.user_activity(db, ctx.tenant_scope(), days=days)


@router.get("/content")
async def content_insights(
    ctx: AuthContext = Depends(require_analytics),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await analytics_service.content_insights(db, ctx.tenant_scope())


@router.get("/predictions")
async def predictions(
    ctx: AuthContext = Depends(require_analytics),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await analytics_service.predictions(db, ctx.tenant_scope())


@router.get("/system")
async def system_health(
    ctx: AuthContext = Depends(require_analytics),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await analytics_service.system_health(db)


@router.get("/audit")
async def audit_stats(
    hours: int = Query(24, ge=1, le=24 * 90),
    ctx: AuthContext = Depends(require_analytics),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await get_audit_stats(db, tenant_id=ctx.tenant_scope(), hours=hours)


@router.get("/tenants")
async def compare_tenants(
    tenant_ids: list[str] | None = Query(None, description="为空时对比全部 active 租户"),
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> list[dict]:
    return await analytics_service.compare_tenants(db, tenant_ids)
