"""订阅相关的请求/响应模型"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

SubscriptionType = Literal["Monthly", "Yearly"]


class SubscriptionActivate(BaseModel):
    """
    激活订阅

    支付在外部完成，payment_reference 为支付平台返回的流水号。
    """
    subscription_type: SubscriptionType
    payment_reference: str | None = Field(default=None, max_length=255)
    billing_name: str | None = Field(default=None, max_length=255)
    billing_email: EmailStr | None = None


class SubscriptionResponse(BaseModel):
    id: str
    tenant_id: str
    user_id: str | None = None
    subscription_type: str
    start_date: datetime
    end_date: datetime
    amount: int
    currency: str
    payment_status: str
    payment_reference: str | None = None
    is_active: bool
    is_expired: bool
    canceled_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    tenant_id: str
    subscription_id: str | None = None
    plan: str
    amount: int
    currency: str
    status: str
    payment_reference: str | None = None
    billing_name: str | None = None
    billing_email: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class LimitsResponse(BaseModel):
    max_file_size_mb: int
    max_admins: int
    max_editors: int
    file_expiration_days: int | None = Field(description="None 表示文件不过期")
    is_subscribed: bool


class SubscriptionStatusResponse(BaseModel):
    """
    订阅状态

    status: Premium（超级管理员）/ Active / Inactive
    """
    status: str
    is_subscribed: bool
    subscription_type: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    days_remaining: int | None = None
    limits: LimitsResponse


class PlanResponse(BaseModel):
    subscription_type: str
    amount: int
    currency: str
    duration: str


class ActivateResponse(BaseModel):
    subscription: SubscriptionResponse
    invoice: InvoiceResponse
    cleared_expirations: int
