"""
超级管理员接口

所有接口需要 superadmin 角色。

- 角色：增删改查；内置角色不可删除，被用户使用中的角色不可删除
- 平台设置：读写立即生效，键限定在已知设置项内
- 平台统计
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_superadmin
from jcms.auth.permissions import PERMISSIONS
from jcms.infra.logging import get_logger
from jcms.infra.text import format_file_size
from jcms.models import Collection, Content, Invoice, MediaFile, Role, Subscription, Tenant, User
from jcms.schemas.admin import (
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    SystemSettingItem,
    SystemSettingListResponse,
    SystemSettingResetResponse,
    SystemSettingUpdate,
)
from jcms.services import system_settings as settings_service

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/superadmin",
    tags=["superadmin"],
    dependencies=[Depends(require_superadmin)],
)


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


def _check_permissions(permissions: list[str]) -> None:
    unknown = sorted(set(permissions) - set(PERMISSIONS))
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("INVALID_PERMISSION", f"Unknown permissions: {', '.join(unknown)}"),
        )


async def _user_count(db: AsyncSession, role_name: str) -> int:
    result = await db.execute(select(func.count(User.id)).where(User.role == role_name))
    return result.scalar() or 0


async def _role_response(db: AsyncSession, role: Role) -> RoleResponse:
    response = RoleResponse.model_validate(role)
    response.user_count = await _user_count(db, role.name)
    return response


async def _get_role(db: AsyncSession, role_id: str) -> Role:
    role = await db.get(Role, role_id)
    if role is None:
        raise HTTPException(status_code=404, detail=_err("ROLE_NOT_FOUND", "Role not found"))
    return role


# ==================== 角色 ====================

@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(db: AsyncSession = Depends(get_db_session)) -> list[RoleResponse]:
    result = await db.execute(select(Role).order_by(Role.is_system.desc(), Role.name))
    return [await _role_response(db, role) for role in result.scalars().all()]


@router.get("/permissions")
async def list_permissions() -> dict[str, str]:
    """全部可分配的权限及说明"""
    return PERMISSIONS


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    db: AsyncSession = Depends(get_db_session),
) -> RoleResponse:
    existing = await db.execute(select(Role.id).where(Role.name == data.name))
    if existing.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_err("ROLE_EXISTS", f"Role '{data.name}' already exists"),
        )
    _check_permissions(data.permissions)

    role = Role(
        name=data.name,
        description=data.description,
        permissions=list(data.permissions),
        is_system=False,
    )
    db.add(role)
    await db.commit()
    await db.refresh(role)
    logger.info(f"角色已创建: {role.name}")
    return await _role_response(db, role)


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(role_id: str, db: AsyncSession = Depends(get_db_session)) -> RoleResponse:
    return await _role_response(db, await _get_role(db, role_id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: RoleUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> RoleResponse:
    role = await _get_role(db, role_id)
    if data.permissions is not None:
        _check_permissions(data.permissions)
        role.permissions = list(data.permissions)
    if data.description is not None:
        role.description = data.description
    await db.commit()
    await db.refresh(role)
    return await _role_response(db, role)


@router.delete("/roles/{role_id}")
async def delete_role(role_id: str, db: AsyncSession = Depends(get_db_session)) -> dict:
    role = await _get_role(db, role_id)
    if role.is_system:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("SYSTEM_ROLE", "System roles cannot be deleted"),
        )
    in_use = await _user_count(db, role.name)
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("ROLE_IN_USE", f"Role is assigned to {in_use} user(s)"),
        )
    await db.delete(role)
    await db.commit()
    return {"message": "Role deleted successfully", "id": role_id}


# ==================== 平台设置 ====================

@router.get("/settings", response_model=SystemSettingListResponse)
async def list_settings(db: AsyncSession = Depends(get_db_session)) -> SystemSettingListResponse:
    """全部设置项：已写入数据库的取数据库值，其余取环境变量默认值"""
    items = [SystemSettingItem(**item) for item in await settings_service.list_settings(db)]
    return SystemSettingListResponse(items=items, total=len(items))


@router.get("/settings/{key}", response_model=SystemSettingItem)
async def get_setting(key: str, db: AsyncSession = Depends(get_db_session)) -> SystemSettingItem:
    for item in await settings_service.list_settings(db):
        if item["key"] == key:
            return SystemSettingItem(**item)
    raise HTTPException(status_code=404, detail=_err("SETTING_NOT_FOUND", f"Unknown setting: {key}"))


@router.put("/settings/{key}", response_model=SystemSettingItem)
async def update_setting(
    key: str,
    data: SystemSettingUpdate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> SystemSettingItem:
    """更新设置（立即生效，无需重启）"""
    try:
        row = await settings_service.put_setting(db, key, data.value, data.description)
    except settings_service.UnknownSettingError:
        raise HTTPException(status_code=404, detail=_err("SETTING_NOT_FOUND", f"Unknown setting: {key}"))

    logger.info(f"平台设置已更新: {key}", extra={"setting": key, "updated_by": ctx.user_id})
    return SystemSettingItem(
        key=row.key,
        value=settings_service.parse_value(row.value),
        description=row.description,
        source="database",
        updated_at=row.updated_at,
    )


@router.post("/settings/reset", response_model=SystemSettingResetResponse)
async def reset_settings(db: AsyncSession = Depends(get_db_session)) -> SystemSettingResetResponse:
    reset_keys = await settings_service.reset_settings(db)
    return SystemSettingResetResponse(
        message="All platform settings have been reset to environment defaults",
        reset_keys=reset_keys,
    )


# ==================== 平台统计 ====================

@router.get("/stats")
async def platform_stats(db: AsyncSession = Depends(get_db_session)) -> dict:
    async def count(query) -> int:
        return (await db.execute(query)).scalar() or 0

    tenant_rows = await db.execute(select(Tenant.status, func.count(Tenant.id)).group_by(Tenant.status))
    tenants_by_status = {status_name: total for status_name, total in tenant_rows.all()}

    role_rows = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))

    total_size = int(await count(select(func.coalesce(func.sum(MediaFile.file_size), 0))))
    revenue_rows = await db.execute(
        select(Invoice.currency, func.coalesce(func.sum(Invoice.amount), 0))
        .where(Invoice.status == "paid")
        .group_by(Invoice.currency)
    )

    return {
        "tenants": {
            "total": sum(tenants_by_status.values()),
            "active": tenants_by_status.get("active", 0),
            "disabled": tenants_by_status.get("disabled", 0),
        },
        "users": {
            "total": await count(select(func.count(User.id))),
            "active": await count(select(func.count(User.id)).where(User.is_active.is_(True))),
            "by_role": {role: total for role, total in role_rows.all()},
        },
        "media": {
            "total_files": await count(select(func.count(MediaFile.id))),
            "total_size": total_size,
            "formatted_size": format_file_size(total_size),
        },
        "content": {
            "total": await count(select(func.count(Content.id)).where(Content.deleted.is_(False))),
        },
        "collections": {
            "total": await count(select(func.count(Collection.id))),
        },
        "subscriptions": {
            "active": await count(
                select(func.count(Subscription.id)).where(
                    Subscription.is_active.is_(True), Subscription.is_expired.is_(False)
                )
            ),
            "revenue": {currency: int(amount) for currency, amount in revenue_rows.all()},
        },
    }
