"""
用户管理服务

角色规则：
- superadmin 只能由脚本创建，不能通过 API 修改或删除
- superadmin 可以在任意租户创建 admin/editor/viewer
- admin 只能在自己的租户创建和管理 editor/viewer
- 每个租户的管理员、编辑数量受订阅限制，总人数受租户 max_users 限制

删除默认为停用（软删除），permanent=True 时彻底删除用户及其数据。
"""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.auth.passwords import ensure_password_policy, hash_password, verify_password
from jcms.auth.permissions import ADMIN, EDITOR, SUPERADMIN, TENANT_ROLES
from jcms.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    PermissionDeniedError,
    SubscriptionLimitError,
)
from jcms.infra.logging import get_logger
from jcms.infra.timeutils import utcnow
from jcms.models import Tenant, User
from jcms.schemas.user import UserCreate, UserUpdate
from jcms.services.subscriptions import get_limits

logger = get_logger(__name__)


async def ensure_unique_identity(
    db: AsyncSession,
    username: str | None,
    email: str | None,
    exclude_id: str | None = None,
) -> None:
    """
    Raises:
        ConflictError: 用户名或邮箱已被占用
    """
    if username:
        query = select(User.id).where(func.lower(User.username) == username.lower())
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError(f"Username '{username}' already exists", code="USERNAME_EXISTS")
    if email:
        query = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError(f"Email '{email}' already exists", code="EMAIL_EXISTS")


async def count_users(db: AsyncSession, tenant_id: str, role: str | None = None) -> int:
    """统计租户内的有效用户"""
    query = select(func.count(User.id)).where(User.tenant_id == tenant_id, User.is_active.is_(True))
    if role:
        query = query.where(User.role == role)
    return (await db.execute(query)).scalar() or 0


async def check_role_capacity(db: AsyncSession, tenant: Tenant, role: str, new_seat: bool = True) -> None:
    """
    检查租户是否还能增加一个该角色的用户

    Args:
        new_seat: False 表示已在职用户改角色，不占用新的 max_users 名额

    Raises:
        SubscriptionLimitError: 超出订阅或租户配额
    """
    if new_seat and await count_users(db, tenant.id) >= tenant.max_users:
        raise SubscriptionLimitError(
            f"Tenant user limit reached ({tenant.max_users})",
            code="USER_LIMIT_REACHED",
        )

    limits = await get_limits(db, tenant.id)
    if role == ADMIN:
        if await count_users(db, tenant.id, ADMIN) >= limits.max_admins:
            raise SubscriptionLimitError(
                f"Admin limit reached ({limits.max_admins}). Each tenant can only have {limits.max_admins} admin",
                code="ADMIN_LIMIT_REACHED",
            )
    elif role == EDITOR:
        if await count_users(db, tenant.id, EDITOR) >= limits.max_editors:
            detail = f"Editor limit reached ({limits.max_editors})"
            if not limits.is_subscribed:
                detail += ". Subscribe to add more editors"
            raise SubscriptionLimitError(detail, code="EDITOR_LIMIT_REACHED")


def assignable_roles(actor: User) -> list[str]:
    if actor.role == SUPERADMIN:
        return list(TENANT_ROLES)
    if actor.role == ADMIN:
        return ["editor", "viewer"]
    return []


def ensure_can_manage(actor: User, target: User) -> None:
    """
    检查 actor 能否管理 target

    Raises:
        NotFoundError: 其他租户的用户（不泄露存在性）
        PermissionDeniedError: 角色不足
    """
    if target.role == SUPERADMIN:
        raise PermissionDeniedError("Cannot modify superadmin", code="CANNOT_MODIFY_SUPERADMIN")
    if actor.role == SUPERADMIN:
        return
    if actor.role != ADMIN or target.tenant_id != actor.tenant_id:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    if target.role not in ("editor", "viewer"):
        raise PermissionDeniedError("Only superadmin can manage admins", code="FORBIDDEN")


async def get_visible_user(db: AsyncSession, actor: User, user_id: str) -> User:
    """
    按可见性规则读取用户

    - superadmin 可见全部
    - 其他角色只能看到本租户的非 superadmin 用户
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    if actor.role == SUPERADMIN:
        return user
    if user.role == SUPERADMIN:
        raise PermissionDeniedError("Access denied", code="FORBIDDEN")
    if user.tenant_id != actor.tenant_id:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


async def list_users(
    db: AsyncSession,
    actor: User,
    *,
    tenant_id: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[User], int]:
    conditions = []
    if actor.role == SUPERADMIN:
        if tenant_id:
            conditions.append(User.tenant_id == tenant_id)
    else:
        conditions.append(User.tenant_id == actor.tenant_id)
        conditions.append(User.role != SUPERADMIN)
    if role:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(func.lower(User.username).like(pattern), func.lower(User.email).like(pattern)))

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(User).where(*conditions).order_by(User.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def create_user(db: AsyncSession, actor: User, data: UserCreate) -> User:
    """
    创建用户

    Raises:
        PermissionDeniedError / DomainError / ConflictError / SubscriptionLimitError / PasswordPolicyError
    """
    if data.role not in assignable_roles(actor):
        raise PermissionDeniedError(
            f"Invalid role. You can only create: {', '.join(assignable_roles(actor))}",
            code="ROLE_NOT_ALLOWED",
        )

    if actor.role == SUPERADMIN:
        tenant_id = data.tenant_id
        if not tenant_id:
            raise DomainError("tenant_id is required", code="TENANT_REQUIRED")
    else:
        tenant_id = actor.tenant_id

    tenant = await db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found", code="TENANT_NOT_FOUND")

    ensure_password_policy(data.password)
    await ensure_unique_identity(db, data.username, data.email)
    await check_role_capacity(db, tenant, data.role)

    user = User(
        tenant_id=tenant.id,
        username=data.username,
        email=str(data.email).lower(),
        hashed_password=hash_password(data.password),
        phone=data.phone,
        role=data.role,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    if data.role == ADMIN and not tenant.admin_user_id:
        tenant.admin_user_id = user.id

    await db.commit()
    logger.info("用户已创建", extra={"created_user": user.id, "role": user.role})
    return user


async def update_user(db: AsyncSession, actor: User, target: User, data: UserUpdate) -> User:
    ensure_can_manage(actor, target)
    update_data = data.model_dump(exclude_unset=True)

    reactivating = update_data.get("is_active") is True and not target.is_active
    if not target.is_active and not reactivating:
        raise DomainError("Cannot update a deactivated user. Reactivate the user first", code="USER_DEACTIVATED")

    new_role = update_data.get("role")
    role_changed = bool(new_role) and new_role != target.role
    if role_changed and new_role not in assignable_roles(actor):
        raise PermissionDeniedError(
            f"Invalid role. You can only assign: {', '.join(assignable_roles(actor))}",
            code="ROLE_NOT_ALLOWED",
        )

    # 重新激活占用新名额；在职用户改角色只检查角色上限
    if reactivating or role_changed:
        tenant = await db.get(Tenant, target.tenant_id)
        if tenant is not None:
            await check_role_capacity(db, tenant, new_role or target.role, new_seat=reactivating)
    if role_changed:
        target.role = new_role

    await ensure_unique_identity(db, update_data.get("username"), update_data.get("email"), exclude_id=target.id)
    if update_data.get("username"):
        target.username = update_data["username"]
    if update_data.get("email"):
        target.email = str(update_data["email"]).lower()
    if "phone" in update_data:
        target.phone = update_data["phone"]

    if reactivating:
        _mark_reactivated(actor, target)
    elif update_data.get("is_active") is False and target.is_active:
        _mark_deactivated(actor, target)

    await db.commit()
    await db.refresh(target)
    return target


def _mark_deactivated(actor: User, target: User) -> None:
    target.is_active = False
    target.deactivated_at = utcnow()
    target.deactivated_by = actor.id


def _mark_reactivated(actor: User, target: User) -> None:
    target.is_active = True
    target.reactivated_at = utcnow()
    target.reactivated_by = actor.id


async def deactivate_user(db: AsyncSession, actor: User, target: User) -> User:
    ensure_can_manage(actor, target)
    if target.id == actor.id:
        raise DomainError("You cannot deactivate your own account", code="CANNOT_DEACTIVATE_SELF")
    if not target.is_active:
        raise DomainError("User is already deactivated", code="USER_ALREADY_DEACTIVATED")
    _mark_deactivated(actor, target)
    await db.commit()
    logger.info("用户已停用", extra={"target_user": target.id})
    return target


async def reactivate_user(db: AsyncSession, actor: User, target: User) -> User:
    ensure_can_manage(actor, target)
    if target.is_active:
        raise DomainError("User is already active", code="USER_ALREADY_ACTIVE")
    tenant = await db.get(Tenant, target.tenant_id)
    if tenant is not None:
        await check_role_capacity(db, tenant, target.role)
    _mark_reactivated(actor, target)
    await db.commit()
    logger.info("用户已重新激活", extra={"target_user": target.id})
    return target


async def reset_password(db: AsyncSession, actor: User, target: User, new_password: str) -> None:
    ensure_can_manage(actor, target)
    ensure_password_policy(new_password)
    target.hashed_password = hash_password(new_password)
    await db.commit()
    logger.info("用户密码已重置", extra={"target_user": target.id})


async def authenticate(db: AsyncSession, identifier: str, password: str) -> User:
    """
    用户名或邮箱 + 密码登录

    Raises:
        DomainError: 凭据错误（400 INVALID_CREDENTIALS）
        PermissionDeniedError: 账号已停用或租户被禁用
    """
    ident = identifier.strip().lower()
    result = await db.execute(
        select(User).where(or_(func.lower(User.username) == ident, func.lower(User.email) == ident))
    )
    user = result.scalars().first()
    if user is None or not verify_password(password, user.hashed_password):
        raise DomainError("Invalid credentials", code="INVALID_CREDENTIALS")

    if not user.is_active:
        raise PermissionDeniedError(
            "Your account has been deactivated. Please contact your administrator",
            code="ACCOUNT_DEACTIVATED",
        )

    if user.tenant_id:
        tenant = await db.get(Tenant, user.tenant_id)
        if tenant is None or tenant.status != "active":
            raise PermissionDeniedError("Your organization has been disabled", code="TENANT_DISABLED")

    user.last_login_at = utcnow()
    await db.commit()
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise DomainError("Current password is incorrect", code="INVALID_PASSWORD")
    ensure_password_policy(new_password)
    user.hashed_password = hash_password(new_password)
    await db.commit()
