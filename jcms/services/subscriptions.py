"""
订阅服务

订阅规则：
- 价格：Monthly 999 / Yearly 4999（INR，可由平台设置覆盖）
- 续订：当前订阅仍有效时，新订阅从当前订阅的结束时间开始顺延
- 激活时停用该租户之前的所有订阅，并清除租户文件的过期时间
- 到期/取消后，租户文件重新获得 file_expiration_days 天的过期时间

限制（免费 / 已订阅）：
- 单文件大小：10 MB / 100 MB
- 管理员数量：1 / 1
- 编辑数量：1 / 10
- 文件保留：15 天 / 永久
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.config import get_settings
from jcms.infra.logging import get_logger
from jcms.infra.timeutils import add_months, add_years, as_utc, utcnow
from jcms.models import Invoice, MediaFile, Subscription, Tenant, User
from jcms.services.system_settings import get_int_setting

logger = get_logger(__name__)

SUBSCRIPTION_TYPES = ("Monthly", "Yearly")

PLAN_DURATIONS = {
    "Monthly": "1 month",
    "Yearly": "1 year",
}


@dataclass
class TenantLimits:
    max_file_size_mb: int
    max_admins: int
    max_editors: int
    file_expiration_days: int | None
    is_subscribed: bool

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def to_dict(self) -> dict:
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "max_admins": self.max_admins,
            "max_editors": self.max_editors,
            "file_expiration_days": self.file_expiration_days,
            "is_subscribed": self.is_subscribed,
        }


def compute_period(subscription_type: str, now: datetime, current_end: datetime | None = None) -> tuple[datetime, datetime]:
    """
    计算订阅起止时间

    当前订阅尚未结束时，新订阅从 current_end 开始。

    Raises:
        ValueError: 未知的订阅类型
    """
    if subscription_type not in SUBSCRIPTION_TYPES:
        raise ValueError(f"Invalid subscription type: {subscription_type}")

    start = now
    current_end = as_utc(current_end)
    if current_end is not None and current_end > now:
        start = current_end

    if subscription_type == "Yearly":
        return start, add_years(start, 1)
    return start, add_months(start, 1)


def generate_invoice_number(now: datetime | None = None) -> str:
    """INV-YYYYMMDD-XXXXXXXX"""
    now = now or utcnow()
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


async def plan_price(db: AsyncSession, subscription_type: str) -> int:
    key = "subscription_price_yearly" if subscription_type == "Yearly" else "subscription_price_monthly"
    return await get_int_setting(db, key)


async def list_plans(db: AsyncSession) -> list[dict]:
    currency = get_settings().subscription_currency
    return [
        {
            "subscription_type": subscription_type,
            "amount": await plan_price(db, subscription_type),
            "currency": currency,
            "duration": PLAN_DURATIONS[subscription_type],
        }
        for subscription_type in SUBSCRIPTION_TYPES
    ]


async def get_active_subscription(db: AsyncSession, tenant_id: str | None) -> Subscription | None:
    """当前有效订阅：is_active、未过期且 end_date 在未来"""
    if not tenant_id:
        return None
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.tenant_id == tenant_id,
            Subscription.is_active.is_(True),
            Subscription.is_expired.is_(False),
        )
        .order_by(Subscription.end_date.desc())
    )
    now = utcnow()
    for subscription in result.scalars().all():
        if as_utc(subscription.end_date) > now:
            return subscription
    return None


async def is_tenant_subscribed(db: AsyncSession, tenant_id: str | None) -> bool:
    return await get_active_subscription(db, tenant_id) is not None


async def get_limits(db: AsyncSession, tenant_id: str | None, is_superadmin: bool = False) -> TenantLimits:
    """
    解析租户当前适用的限制

    superadmin 与无租户的上传按已订阅处理。
    """
    settings = get_settings()
    subscribed = is_superadmin or not tenant_id or await is_tenant_subscribed(db, tenant_id)
    if subscribed:
        return TenantLimits(
            max_file_size_mb=await get_int_setting(db, "subscribed_max_file_size_mb"),
            max_admins=settings.subscribed_max_admins,
            max_editors=await get_int_setting(db, "subscribed_max_editors"),
            file_expiration_days=None,
            is_subscribed=True,
        )
    return TenantLimits(
        max_file_size_mb=await get_int_setting(db, "free_max_file_size_mb"),
        max_admins=settings.free_max_admins,
        max_editors=await get_int_setting(db, "free_max_editors"),
        file_expiration_days=await get_int_setting(db, "file_expiration_days"),
        is_subscribed=False,
    )


async def activate_benefits(db: AsyncSession, tenant_id: str) -> int:
    """
    激活订阅权益：清除租户所有文件的过期时间

    Returns:
        受影响的文件数
    """
    result = await db.execute(
        update(MediaFile)
        .where(MediaFile.tenant_id == tenant_id, MediaFile.expires_at.is_not(None))
        .values(expires_at=None)
    )
    return result.rowcount or 0


async def deactivate_benefits(db: AsyncSession, tenant_id: str, days: int | None = None) -> int:
    """
    取消订阅权益：为没有过期时间的文件设置 now + days

    Returns:
        受影响的文件数
    """
    if days is None:
        days = await get_int_setting(db, "file_expiration_days")
    expires_at = utcnow() + timedelta(days=days)
    result = await db.execute(
        update(MediaFile)
        .where(MediaFile.tenant_id == tenant_id, MediaFile.expires_at.is_(None))
        .values(expires_at=expires_at)
    )
    return result.rowcount or 0


async def activate_subscription(
    db: AsyncSession,
    *,
    tenant: Tenant,
    user: User | None,
    subscription_type: str,
    payment_reference: str | None = None,
    billing_name: str | None = None,
    billing_email: str | None = None,
) -> tuple[Subscription, Invoice, int]:
    """
    激活（或续订）订阅

    Returns:
        (新订阅, 发票, 清除过期时间的文件数)
    """
    now = utcnow()
    current = await get_active_subscription(db, tenant.id)
    start_date, end_date = compute_period(
        subscription_type, now, current.end_date if current else None
    )
    amount = await plan_price(db, subscription_type)
    currency = get_settings().subscription_currency

    await db.execute(
        update(Subscription)
        .where(Subscription.tenant_id == tenant.id, Subscription.is_active.is_(True))
        .values(is_active=False)
    )

    subscription = Subscription(
        tenant_id=tenant.id,
        user_id=user.id if user else None,
        subscription_type=subscription_type,
        start_date=start_date,
        end_date=end_date,
        amount=amount,
        currency=currency,
        payment_status="completed",
        payment_reference=payment_reference,
        is_active=True,
        is_expired=False,
    )
    db.add(subscription)
    await db.flush()

    invoice = Invoice(
        invoice_number=generate_invoice_number(now),
        tenant_id=tenant.id,
        subscription_id=subscription.id,
        plan=subscription_type,
        amount=amount,
        currency=currency,
        status="paid",
        payment_reference=payment_reference,
        billing_name=billing_name or tenant.name,
        billing_email=billing_email or (user.email if user else None),
    )
    db.add(invoice)

    cleared = await activate_benefits(db, tenant.id)
    await db.commit()

    logger.info(
        "订阅已激活",
        extra={
            "subscription_id": subscription.id,
            "subscription_type": subscription_type,
            "end_date": end_date.isoformat(),
            "cleared_expirations": cleared,
        },
    )
    return subscription, invoice, cleared


async def cancel_subscription(db: AsyncSession, tenant_id: str) -> Subscription | None:
    """
    取消当前订阅并恢复文件过期时间

    Returns:
        被取消的订阅，没有有效订阅时返回 None
    """
    subscription = await get_active_subscription(db, tenant_id)
    if subscription is None:
        return None

    subscription.is_active = False
    subscription.canceled_at = utcnow()
    await deactivate_benefits(db, tenant_id)
    await db.commit()

    logger.info("订阅已取消", extra={"subscription_id": subscription.id})
    return subscription


async def expire_due_subscriptions(db: AsyncSession) -> int:
    """
    将已过结束时间的订阅标记为过期，并为相应租户的文件设置过期时间

    Returns:
        过期的订阅数
    """
    now = utcnow()
    result = await db.execute(
        select(Subscription).where(
            Subscription.is_active.is_(True),
            Subscription.is_expired.is_(False),
        )
    )
    expired_tenants: set[str] = set()
    count = 0
    for subscription in result.scalars().all():
        if as_utc(subscription.end_date) <= now:
            subscription.is_active = False
            subscription.is_expired = True
            expired_tenants.add(subscription.tenant_id)
            count += 1
    await db.flush()

    for tenant_id in expired_tenants:
        if not await is_tenant_subscribed(db, tenant_id):
            affected = await deactivate_benefits(db, tenant_id)
            logger.info(
                "订阅到期，文件开始计算过期时间",
                extra={"expired_tenant": tenant_id, "files": affected},
            )

    await db.commit()
    return count


async def subscription_status(db: AsyncSession, tenant_id: str | None, is_superadmin: bool) -> dict:
    """
    订阅状态

    超级管理员固定为 Premium，无结束时间。
    """
    limits = await get_limits(db, tenant_id, is_superadmin=is_superadmin)
    if is_superadmin:
        return {
            "status": "Premium",
            "is_subscribed": True,
            "subscription_type": "Premium",
            "start_date": None,
            "end_date": None,
            "days_remaining": None,
            "limits": limits.to_dict(),
        }

    subscription = await get_active_subscription(db, tenant_id)
    if subscription is None:
        return {
            "status": "Inactive",
            "is_subscribed": False,
            "subscription_type": None,
            "start_date": None,
            "end_date": None,
            "days_remaining": None,
            "limits": limits.to_dict(),
        }

    remaining = as_utc(subscription.end_date) - utcnow()
    return {
        "status": "Active",
        "is_subscribed": True,
        "subscription_type": subscription.subscription_type,
        "start_date": subscription.start_date,
        "end_date": subscription.end_date,
        "days_remaining": max(remaining.days, 0),
        "limits": limits.to_dict(),
    }
