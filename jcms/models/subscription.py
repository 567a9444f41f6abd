"""
订阅与发票模型 (Subscription / Invoice)

订阅类型：
- Monthly: 一个自然月
- Yearly:  一个自然年

每个租户同一时间最多一个 is_active 的订阅。支付由外部完成，
这里只记录调用方提供的 payment_reference。
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "subscriptions"

    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 发起订阅的用户
    user_id: Mapped[str | None] = mapped_column(String(36))

    subscription_type: Mapped[str] = mapped_column(String(20), nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), default="INR", nullable=False)

    # pending / completed / failed / refunded
    payment_status: Mapped[str] = mapped_column(String(20), default="completed", nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255))

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False, index=True)
    is_expired: Mapped[bool] = mapped_column(default=False, nullable=False)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Invoice(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    发票表

    invoice_number 格式：INV-YYYYMMDD-XXXXXXXX
    """
    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    subscription_id: Mapped[str | None] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
    )

    plan: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), default="INR", nullable=False)

    # paid / void
    status: Mapped[str] = mapped_column(String(20), default="paid", nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255))

    billing_name: Mapped[str | None] = mapped_column(String(255))
    billing_email: Mapped[str | None] = mapped_column(String(255))
