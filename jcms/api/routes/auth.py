"""
认证接口

- 登录（用户名或邮箱），按客户端 IP 限流
- 当前用户信息、修改密码、更新个人资料
- 密码强度检查（无需登录）
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import client_ip, get_db_session
from jcms.auth.dependencies import AuthContext, get_auth_context
from jcms.auth.passwords import check_password_policy
from jcms.auth.rate_limit import get_login_rate_limiter
from jcms.auth.tokens import create_access_token
from jcms.infra.logging import get_logger
from jcms.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    PasswordStrengthRequest,
    PasswordStrengthResponse,
    ProfileUpdate,
    TokenResponse,
)
from jcms.schemas.user import UserResponse
from jcms.services.users import authenticate, change_password, ensure_unique_identity

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """
    登录

    remember_me=True 时令牌有效期为 7 天，否则 1 小时。
    """
    ip = client_ip(request)
    if not get_login_rate_limiter().allow(ip):
        logger.warning(f"登录请求过于频繁: {ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=_err("RATE_LIMITED", "Too many login attempts. Please try again later"),
        )

    user = await authenticate(db, data.identifier, data.password)
    token, expires_in = create_access_token(user.id, user.role, user.tenant_id, remember_me=data.remember_me)
    logger.info("用户登录", extra={"login_user": user.id, "remember_me": data.remember_me})
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.get("/me")
async def me(ctx: AuthContext = Depends(get_auth_context)) -> dict:
    """当前用户、所属租户和权限列表"""
    tenant = None
    if ctx.tenant is not None:
        tenant = {"id": ctx.tenant.id, "name": ctx.tenant.name, "subdomain": ctx.tenant.subdomain}
    return {
        "user": UserResponse.model_validate(ctx.user).model_dump(mode="json"),
        "tenant": tenant,
        "permissions": sorted(ctx.permissions),
    }


@router.post("/change-password")
async def change_own_password(
    data: ChangePasswordRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await change_password(db, ctx.user, data.current_password, data.new_password)
    return {"message": "Password changed successfully"}


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    """
    更新个人资料

    同时提供 new_password 时必须提供正确的 current_password。
    """
    user = ctx.user
    if data.new_password:
        if not data.current_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=_err("CURRENT_PASSWORD_REQUIRED", "Current password is required to set a new password"),
            )
        await change_password(db, user, data.current_password, data.new_password)

    email = str(data.email).lower() if data.email else None
    await ensure_unique_identity(db, data.username, email, exclude_id=user.id)
    if data.username:
        user.username = data.username
    if email:
        user.email = email
    if data.phone is not None:
        user.phone = data.phone

    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.post("/password-strength", response_model=PasswordStrengthResponse)
async def password_strength(data: PasswordStrengthRequest) -> PasswordStrengthResponse:
    result = check_password_policy(data.password)
    return PasswordStrengthResponse(valid=result.valid, errors=result.errors, score=result.score)
