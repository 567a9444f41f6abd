"""
租户管理接口

- 租户增删改查、禁用/启用：仅超级管理员
- 租户用户列表/创建、统计：该租户的管理员或超级管理员
- 品牌配置：该租户的管理员或超级管理员；styles.css 公开访问
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_admin_or_above, require_superadmin
from jcms.infra.timeutils import utcnow
from jcms.models import Tenant
from jcms.schemas.tenant import (
    BrandingUpdate,
    TenantCreate,
    TenantCreateResponse,
    TenantDisableRequest,
    TenantListResponse,
    TenantResponse,
    TenantUpdate,
)
from jcms.schemas.user import UserCreate, UserListResponse, UserResponse
from jcms.services import branding as branding_service
from jcms.services import tenants as tenant_service
from jcms.services import users as user_service

router = APIRouter(prefix="/api/tenants", tags=["tenants"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


async def _get_tenant_or_404(db: AsyncSession, tenant_id: str) -> Tenant:
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail=_err("TENANT_NOT_FOUND", "Tenant not found"))
    return tenant


async def _get_managed_tenant(db: AsyncSession, ctx: AuthContext, tenant_id: str) -> Tenant:
    """超级管理员可访问任意租户，管理员只能访问自己的租户"""
    if not ctx.is_superadmin and ctx.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=_err("TENANT_NOT_FOUND", "Tenant not found"))
    return await _get_tenant_or_404(db, tenant_id)


async def _with_counts(db: AsyncSession, tenant: Tenant) -> TenantResponse:
    response = TenantResponse.model_validate(tenant)
    counts = await tenant_service.tenant_counts(db, tenant.id)
    response.user_count = counts["user_count"]
    response.media_count = counts["media_count"]
    response.content_count = counts["content_count"]
    return response


# ==================== 租户管理（超级管理员） ====================

@router.post("", response_model=TenantCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    data: TenantCreate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> TenantCreateResponse:
    """创建租户及其管理员账号"""
    tenant, admin = await tenant_service.create_tenant(db, data)
    await db.refresh(tenant)
    return TenantCreateResponse(
        **TenantResponse.model_validate(tenant).model_dump(),
        admin=UserResponse.model_validate(admin),
    )


@router.get("", response_model=TenantListResponse)
async def list_tenants(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: str | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> TenantListResponse:
    conditions = []
    if status_filter:
        conditions.append(Tenant.status == status_filter)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(func.lower(Tenant.name).like(pattern), func.lower(Tenant.subdomain).like(pattern)))

    total = (await db.execute(select(func.count(Tenant.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Tenant).where(*conditions).order_by(Tenant.created_at.desc()).offset(skip).limit(limit)
    )
    return TenantListResponse(
        items=[await _with_counts(db, t) for t in result.scalars().all()],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str,
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> TenantResponse:
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    return await _with_counts(db, tenant)


@router.put("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    data: TenantUpdate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> TenantResponse:
    tenant = await _get_tenant_or_404(db, tenant_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(tenant, key, value)
    await db.commit()
    await db.refresh(tenant)
    return await _with_counts(db, tenant)


@router.post("/{tenant_id}/disable", response_model=TenantResponse)
async def disable_tenant(
    tenant_id: str,
    data: TenantDisableRequest | None = None,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> TenantResponse:
    """禁用租户，该租户用户的请求将被拒绝"""
    tenant = await _get_tenant_or_404(db, tenant_id)
    if tenant.status == "disabled":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("TENANT_ALREADY_DISABLED", "Tenant is already disabled"),
        )
    tenant.status = "disabled"
    tenant.disabled_at = utcnow()
    tenant.disabled_reason = data.reason if data else None
    await db.commit()
    await db.refresh(tenant)
    return TenantResponse.model_validate(tenant)


@router.post("/{tenant_id}/enable", response_model=TenantResponse)
async def enable_tenant(
    tenant_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> TenantResponse:
    tenant = await _get_tenant_or_404(db, tenant_id)
    if tenant.status == "active":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("TENANT_ALREADY_ACTIVE", "Tenant is already active"),
        )
    tenant.status = "active"
    tenant.disabled_at = None
    tenant.disabled_reason = None
    await db.commit()
    await db.refresh(tenant)
    return TenantResponse.model_validate(tenant)


@router.delete("/{tenant_id}")
async def delete_tenant(
    tenant_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """删除租户及其全部数据（不可恢复）"""
    tenant = await _get_tenant_or_404(db, tenant_id)
    await tenant_service.delete_tenant(db, tenant)
    return {"message": "Tenant deleted successfully", "id": tenant_id}


# ==================== 租户用户与统计 ====================

@router.get("/{tenant_id}/users", response_model=UserListResponse)
async def list_tenant_users(
    tenant_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    users, total = await user_service.list_users(db, ctx.user, tenant_id=tenant.id, skip=skip, limit=limit)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/{tenant_id}/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant_user(
    tenant_id: str,
    data: UserCreate,
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    user = await user_service.create_user(db, ctx.user, data.model_copy(update={"tenant_id": tenant.id}))
    return UserResponse.model_validate(user)


@router.get("/{tenant_id}/stats")
async def tenant_stats(
    tenant_id: str,
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    stats = await tenant_service.tenant_stats(db, tenant.id)
    stats["max_users"] = tenant.max_users
    stats["max_storage_mb"] = tenant.max_storage_mb
    return stats


# ==================== 品牌配置 ====================

@router.get("/{tenant_id}/branding")
async def get_branding(
    tenant_id: str,
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    return branding_service.effective_branding(tenant.branding)


@router.put("/{tenant_id}/branding")
async def update_branding(
    tenant_id: str,
    data: BrandingUpdate,
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """与现有配置深度合并"""
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    # JSON 列需要整体赋值才会被标记为已修改
    tenant.branding = branding_service.apply_update(tenant.branding, data.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(tenant)
    return branding_service.effective_branding(tenant.branding)


@router.post("/{tenant_id}/branding/reset")
async def reset_branding(
    tenant_id: str,
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    tenant = await _get_managed_tenant(db, ctx, tenant_id)
    tenant.branding = branding_service.default_branding()
    await db.commit()
    return branding_service.effective_branding(tenant.branding)


@router.get("/{tenant_id}/branding/styles.css")
async def branding_css(
    tenant_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """公开的租户样式表（无需登录）"""
    tenant = await _get_tenant_or_404(db, tenant_id)
    return Response(
        content=branding_service.render_css(tenant.branding),
        media_type="text/css",
        headers={"Cache-Control": "public, max-age=300"},
    )
