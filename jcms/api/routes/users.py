"""
用户管理接口

- admin 管理本租户的 editor/viewer
- superadmin 管理任意租户的非 superadmin 用户
- DELETE 默认停用；permanent=true 时彻底删除用户及其文件、集合和内容
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_permission
from jcms.schemas.user import (
    PasswordResetRequest,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from jcms.services import users as user_service
from jcms.services.tenants import purge_user

router = APIRouter(prefix="/api/users", tags=["users"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


@router.get("", response_model=UserListResponse)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    tenant_id: str | None = Query(None, description="仅超级管理员可用"),
    role: str | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    ctx: AuthContext = Depends(require_permission("users.read")),
    db: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    users, total = await user_service.list_users(
        db,
        ctx.user,
        tenant_id=tenant_id,
        role=role,
        is_active=is_active,
        search=search,
        skip=skip,
        limit=limit,
    )
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    ctx: AuthContext = Depends(require_permission("users.create")),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.create_user(db, ctx.user, data)
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    ctx: AuthContext = Depends(require_permission("users.read")),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.get_visible_user(db, ctx.user, user_id)
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    ctx: AuthContext = Depends(require_permission("users.update")),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    target = await user_service.get_visible_user(db, ctx.user, user_id)
    user = await user_service.update_user(db, ctx.user, target, data)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    permanent: bool = Query(False, description="True 时彻底删除用户及其数据"),
    ctx: AuthContext = Depends(require_permission("users.delete")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    target = await user_service.get_visible_user(db, ctx.user, user_id)

    if not permanent:
        await user_service.deactivate_user(db, ctx.user, target)
        return {"message": "User deactivated successfully", "id": target.id, "permanent": False}

    user_service.ensure_can_manage(ctx.user, target)
    if target.id == ctx.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("CANNOT_DELETE_SELF", "You cannot delete your own account"),
        )
    await purge_user(db, target)
    return {"message": "User permanently deleted", "id": user_id, "permanent": True}


@router.post("/{user_id}/reactivate", response_model=UserResponse)
async def reactivate_user(
    user_id: str,
    ctx: AuthContext = Depends(require_permission("users.update")),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    target = await user_service.get_visible_user(db, ctx.user, user_id)
    user = await user_service.reactivate_user(db, ctx.user, target)
    return UserResponse.model_validate(user)


@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: str,
    data: PasswordResetRequest,
    ctx: AuthContext = Depends(require_permission("users.update")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    target = await user_service.get_visible_user(db, ctx.user, user_id)
    await user_service.reset_password(db, ctx.user, target, data.new_password)
    return {"message": "Password reset successfully"}
