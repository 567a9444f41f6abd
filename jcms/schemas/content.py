"""内容相关的请求/响应模型"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from jcms.schemas.common import PartialUpdate

ContentType = Literal["article", "page", "template"]
ContentStatus = Literal["draft", "published", "scheduled"]


class ContentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(default="")
    excerpt: str | None = Field(default=None, max_length=500)
    type: ContentType = "article"
    status: Literal["draft", "published"] = "draft"
    tags: list[str] = Field(default_factory=list)
    cover_image_url: str | None = Field(default=None, max_length=1000)
    slug: str | None = Field(default=None, max_length=120, description="留空时由标题生成")
    meta_title: str | None = Field(default=None, max_length=60)
    meta_description: str | None = Field(default=None, max_length=160)


class ContentUpdate(PartialUpdate):
    non_nullable = ("title", "body", "type", "tags", "slug")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    body: str | None = None
    excerpt: str | None = Field(default=None, max_length=500)
    type: ContentType | None = None
    tags: list[str] | None = None
    cover_image_url: str | None = Field(default=None, max_length=1000)
    slug: str | None = Field(default=None, max_length=120)
    meta_title: str | None = Field(default=None, max_length=60)
    meta_description: str | None = Field(default=None, max_length=160)


class ScheduleRequest(BaseModel):
    scheduled_at: datetime = Field(..., description="发布时间，必须晚于当前时间")


class ContentResponse(BaseModel):
    id: str
    tenant_id: str | None = None
    author_id: str
    title: str
    body: str
    excerpt: str | None = None
    type: str
    status: str
    tags: list[str] = []
    cover_image_url: str | None = None
    slug: str
    meta_title: str | None = None
    meta_description: str | None = None
    published_at: datetime | None = None
    scheduled_at: datetime | None = None
    views: int
    likes: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContentListResponse(BaseModel):
    items: list[ContentResponse]
    total: int
    skip: int
    limit: int
