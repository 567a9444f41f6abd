"""租户相关的请求/响应模型"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field

from jcms.schemas.common import PartialUpdate
from jcms.schemas.user import USERNAME_PATTERN, UserResponse

# 类型定义（用于验证）
TenantStatus = Literal["active", "disabled"]


class TenantCreate(BaseModel):
    """创建租户请求（同时创建租户管理员）"""
    name: str = Field(..., min_length=1, max_length=255, description="租户名称")
    subdomain: str = Field(..., min_length=2, max_length=63, pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
    admin_username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=1)
    max_users: int = Field(default=10, ge=1)
    max_storage_mb: int = Field(default=1024, ge=-1, description="存储限制（MB），-1 表示无限制")
    allowed_formats: list[str] | None = None


class TenantUpdate(PartialUpdate):
    """更新租户请求"""
    non_nullable = ("name", "max_users", "max_storage_mb", "allowed_formats")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    max_users: int | None = Field(default=None, ge=1)
    max_storage_mb: int | None = Field(default=None, ge=-1)
    allowed_formats: list[str] | None = None


class TenantResponse(BaseModel):
    """租户信息响应"""
    id: str
    name: str
    subdomain: str
    status: TenantStatus
    max_users: int
    max_storage_mb: int
    allowed_formats: list[str] = []
    admin_user_id: str | None = None
    created_at: datetime
    updated_at: datetime
    disabled_at: datetime | None = None
    disabled_reason: str | None = None

    # 统计信息（可选，由路由层填充）
    user_count: int | None = None
    media_count: int | None = None
    content_count: int | None = None

    class Config:
        from_attributes = True


class TenantCreateResponse(TenantResponse):
    """创建租户响应（含管理员信息）"""
    admin: UserResponse


class TenantDisableRequest(BaseModel):
    """禁用租户请求"""
    reason: str | None = Field(default=None, max_length=500, description="禁用原因")


class TenantListResponse(BaseModel):
    """租户列表响应"""
    items: list[TenantResponse]
    total: int
    skip: int
    limit: int


class BrandingUpdate(BaseModel):
    """
    品牌配置更新

    各分组与现有配置深度合并，未提供的键保持不变。
    """
    colors: dict[str, Any] | None = None
    typography: dict[str, Any] | None = None
    theme: dict[str, Any] | None = None
    company_info: dict[str, Any] | None = None
    logo_url: str | None = None
    favicon_url: str | None = None
    custom_css: str | None = Field(default=None, max_length=20000)


# ==================== 租户切换 ====================

class TenantSummary(BaseModel):
    """租户选择列表中的一项"""
    id: str
    name: str
    subdomain: str
    logo_url: str | None = None
    colors: dict[str, Any] = {}


class AccessibleTenantsResponse(BaseModel):
    tenants: list[TenantSummary]
    current_tenant: str | None = None


class TenantSwitchRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1)


class TenantPublicInfo(BaseModel):
    """按子域名公开查询的租户信息（含完整品牌配置）"""
    id: str
    name: str
    subdomain: str
    branding: dict[str, Any]


class TenantContextResponse(BaseModel):
    user: UserResponse
    tenant: TenantPublicInfo | None = None
