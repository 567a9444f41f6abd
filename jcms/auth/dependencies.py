"""
JWT 认证与授权依赖

认证流程：
1. 从请求头获取 Bearer Token
2. 解码 JWT，取出用户 ID
3. 加载用户和租户，检查账号状态与租户状态
4. 解析角色权限（数据库角色覆盖内置表）
5. 返回认证上下文 AuthContext

使用示例：
    @router.get("/users")
    async def list_users(ctx: AuthContext = Depends(require_permission("users.read"))):
        ...
"""

import logging
from dataclasses import dataclass, field

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.auth.permissions import (
    ADMIN_ROLES,
    EDITOR_ROLES,
    SUPERADMIN,
    default_permissions,
    has_permission,
    resolve_scope,
)
from jcms.auth.tokens import TokenError, decode_access_token
from jcms.db.session import get_db
from jcms.infra.logging import bind_context
from jcms.models import Role, Tenant, User

logger = logging.getLogger(__name__)


def _parse_authorization_header(header_val: str | None) -> str:
    if not header_val or not header_val.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "detail": "Missing or invalid Authorization header"},
        )
    return header_val.split(" ", 1)[1].strip()


@dataclass
class AuthContext:
    user: User
    tenant: Tenant | None
    permissions: set[str] = field(default_factory=set)

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def tenant_id(self) -> str | None:
        return self.user.tenant_id

    @property
    def is_superadmin(self) -> bool:
        return self.user.role == SUPERADMIN

    def tenant_scope(self) -> str | None:
        """
        数据隔离范围

        superadmin 返回 None（不过滤），其余用户返回自己的租户 ID。
        """
        return None if self.is_superadmin else self.user.tenant_id

    def can(self, permission: str) -> bool:
        return has_permission(self.permissions, permission)


async def load_permissions(db: AsyncSession, role: str) -> set[str]:
    """数据库中的角色定义优先，不存在时使用内置表"""
    result = await db.execute(select(Role).where(Role.name == role))
    role_row = result.scalar_one_or_none()
    if role_row is not None:
        return set(role_row.permissions or [])
    return set(default_permissions(role))


async def get_auth_context(
    request: Request,
    authorization: str = Header(None),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    raw_token = _parse_authorization_header(authorization)
    try:
        payload = decode_access_token(raw_token)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_TOKEN", "detail": "Invalid or expired token"},
        )

    user = await db.get(User, payload["sub"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_TOKEN", "detail": "User not found"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCOUNT_DEACTIVATED", "detail": "Your account has been deactivated"},
        )

    tenant = None
    if user.tenant_id:
        tenant = await db.get(Tenant, user.tenant_id)
        if tenant is None or tenant.status != "active":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "TENANT_DISABLED", "detail": "Your organization has been disabled"},
            )

    permissions = await load_permissions(db, user.role)

    # 供日志与审计中间件使用
    bind_context(user_id=user.id, tenant_id=user.tenant_id)
    request.state.user_id = user.id
    request.state.tenant_id = user.tenant_id

    return AuthContext(user=user, tenant=tenant, permissions=permissions)


def require_roles(*roles: str):
    """
    角色校验依赖工厂

    用法：Depends(require_roles("superadmin", "admin"))
    """

    async def checker(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if ctx.role not in roles:
            logger.warning(f"角色不足: user={ctx.user_id} role={ctx.role} required={roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "detail": "Insufficient role"},
            )
        return ctx

    return checker


require_superadmin = require_roles(SUPERADMIN)
require_admin_or_above = require_roles(*ADMIN_ROLES)
require_editor_or_above = require_roles(*EDITOR_ROLES)


def require_permission(permission: str):
    """
    权限校验依赖工厂

    用法：Depends(require_permission("users.create"))
    """

    async def checker(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not ctx.can(permission):
            logger.warning(f"权限不足: user={ctx.user_id} role={ctx.role} permission={permission}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "detail": f"Missing permission: {permission}"},
            )
        return ctx

    return checker


def check_resource_access(
    ctx: AuthContext,
    base_permission: str,
    owner_id: str | None,
    tenant_id: str | None,
) -> None:
    """
    检查对单个资源的访问权限

    - 作用域 all：superadmin 任意资源，其他角色仅本租户
    - 作用域 own：仅自己拥有的资源

    Args:
        base_permission: 不带作用域的权限，如 "images.update"

    Raises:
        HTTPException: 403/404
    """
    if not ctx.is_superadmin and tenant_id != ctx.tenant_id:
        # 不泄露其他租户资源的存在
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "detail": "Resource not found"},
        )

    scope = resolve_scope(ctx.permissions, base_permission)
    if scope == "all":
        return
    if scope == "own" and owner_id == ctx.user_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "FORBIDDEN", "detail": "You do not have access to this resource"},
    )
