"""用户相关的请求/响应模型"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

# 可通过 API 创建的角色（superadmin 只能通过脚本创建）
AssignableRole = Literal["admin", "editor", "viewer"]

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class UserCreate(BaseModel):
    """创建用户请求"""
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: AssignableRole = Field(default="editor")
    phone: str | None = Field(default=None, max_length=50)
    tenant_id: str | None = Field(default=None, description="所属租户（仅超级管理员可指定）")


class UserUpdate(BaseModel):
    """更新用户请求"""
    username: str | None = Field(default=None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    role: AssignableRole | None = None
    is_active: bool | None = Field(default=None, description="True 表示重新激活")


class PasswordResetRequest(BaseModel):
    new_password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """用户信息响应（不含密码哈希）"""
    id: str
    username: str
    email: str
    phone: str | None = None
    role: str
    tenant_id: str | None = None
    is_active: bool
    deactivated_at: datetime | None = None
    reactivated_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
    skip: int
    limit: int
