"""
租户切换接口

- 可访问的租户列表：superadmin 为全部启用中的租户，其他用户只有自己的租户
- 切换只校验访问权并返回目标租户信息，服务端不保存"当前租户"状态
- 按子域名查询租户为公开接口，供登录页加载品牌配置
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, get_auth_context
from jcms.models import Tenant
from jcms.schemas.tenant import (
    AccessibleTenantsResponse,
    TenantContextResponse,
    TenantPublicInfo,
    TenantSummary,
    TenantSwitchRequest,
)
from jcms.schemas.user import UserResponse
from jcms.services.branding import effective_branding

router = APIRouter(prefix="/api/tenant-switching", tags=["tenant-switching"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


def _summary(tenant: Tenant) -> TenantSummary:
    branding = effective_branding(tenant.branding)
    return TenantSummary(
        id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        logo_url=branding.get("logo_url") or None,
        colors=branding.get("colors", {}),
    )


def _public_info(tenant: Tenant) -> TenantPublicInfo:
    return TenantPublicInfo(
        id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        branding=effective_branding(tenant.branding),
    )


@router.get("/my/tenants", response_model=AccessibleTenantsResponse)
async def my_tenants(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> AccessibleTenantsResponse:
    if ctx.is_superadmin:
        result = await db.execute(select(Tenant).where(Tenant.status == "active").order_by(Tenant.name))
        tenants = list(result.scalars().all())
    else:
        # 认证依赖已拒绝租户被禁用的用户
        tenants = [ctx.tenant] if ctx.tenant is not None else []
    return AccessibleTenantsResponse(tenants=[_summary(t) for t in tenants], current_tenant=ctx.tenant_id)


@router.post("/switch", response_model=TenantSummary)
async def switch_tenant(
    data: TenantSwitchRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> TenantSummary:
    tenant = await db.get(Tenant, data.tenant_id)
    if tenant is None or tenant.status != "active":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_err("TENANT_NOT_FOUND", "Tenant not found or inactive"),
        )
    if not ctx.is_superadmin and ctx.tenant_id != tenant.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=_err("FORBIDDEN", "You do not have access to this tenant"),
        )
    return _summary(tenant)


@router.get("/my/context", response_model=TenantContextResponse)
async def my_context(ctx: AuthContext = Depends(get_auth_context)) -> TenantContextResponse:
    if ctx.tenant is None and not ctx.is_superadmin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_err("NO_TENANT_CONTEXT", "No tenant context found"),
        )
    return TenantContextResponse(
        user=UserResponse.model_validate(ctx.user),
        tenant=_public_info(ctx.tenant) if ctx.tenant is not None else None,
    )


@router.get("/lookup/{subdomain}", response_model=TenantPublicInfo)
async def lookup_by_subdomain(
    subdomain: str,
    db: AsyncSession = Depends(get_db_session),
) -> TenantPublicInfo:
    """公开接口（无需登录）"""
    result = await db.execute(
        select(Tenant).where(func.lower(Tenant.subdomain) == subdomain.lower(), Tenant.status == "active")
    )
    tenant = result.scalar_one_or_none()
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_err("TENANT_NOT_FOUND", "Tenant not found"))
    return _public_info(tenant)
