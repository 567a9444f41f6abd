"""超级管理员接口的请求/响应模型（角色、平台设置）"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    description: str | None = Field(default=None, max_length=500)
    permissions: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=500)
    permissions: list[str] | None = None


class RoleResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    permissions: list[str] = []
    is_system: bool
    user_count: int | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SystemSettingItem(BaseModel):
    """平台设置项"""
    key: str = Field(description="设置键名")
    value: Any = Field(description="设置值")
    description: str | None = Field(default=None, description="设置描述")
    source: str = Field(description="database 或 default")
    updated_at: datetime | None = None


class SystemSettingUpdate(BaseModel):
    value: Any = Field(..., description="设置值（将被 JSON 序列化存储）")
    description: str | None = None


class SystemSettingListResponse(BaseModel):
    items: list[SystemSettingItem]
    total: int


class SystemSettingResetResponse(BaseModel):
    message: str
    reset_keys: list[str]
