"""媒体文件相关的请求/响应模型"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from jcms.schemas.common import PartialUpdate

Visibility = Literal["private", "public"]


class MediaResponse(BaseModel):
    id: str
    tenant_id: str | None = None
    owner_id: str
    title: str
    original_name: str
    kind: str
    file_type: str
    format: str
    mime_type: str | None = None
    file_size: int
    visibility: str
    public_url: str | None = None
    published_at: datetime | None = None
    width: int | None = None
    height: int | None = None
    tags: list[str] = []
    notes: str | None = None
    source_id: str | None = None
    expires_at: datetime | None = None
    access_count: int
    last_accessed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MediaListResponse(BaseModel):
    items: list[MediaResponse]
    total: int
    skip: int
    limit: int


class UploadError(BaseModel):
    filename: str
    code: str
    detail: str


class UploadResponse(BaseModel):
    """批量上传结果：成功与失败分开返回"""
    items: list[MediaResponse]
    errors: list[UploadError] = []


class MediaUpdate(PartialUpdate):
    non_nullable = ("title", "tags", "visibility")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    tags: list[str] | None = None
    notes: str | None = Field(default=None, max_length=5000)
    visibility: Visibility | None = None


class ConvertRequest(BaseModel):
    format: Literal["webp", "avif", "jpeg", "jpg", "png"]
    quality: int = Field(default=85, ge=1, le=100)


class ExpiringResponse(BaseModel):
    items: list[MediaResponse]
    total: int
    days: int
