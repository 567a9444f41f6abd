"""集合相关的请求/响应模型"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from jcms.schemas.common import PartialUpdate
from jcms.schemas.media import MediaResponse


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    visibility: Literal["private", "public"] = "private"
    tags: list[str] = Field(default_factory=list)
    download_enabled: bool = True


class CollectionUpdate(PartialUpdate):
    non_nullable = ("name", "visibility", "tags", "download_enabled")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    visibility: Literal["private", "public"] | None = None
    tags: list[str] | None = None
    download_enabled: bool | None = None
    cover_file_id: str | None = None


class CollectionStats(BaseModel):
    total_items: int = 0
    total_size: int = 0
    formatted_size: str = "0 B"
    public_items: int = 0
    private_items: int = 0


class CollectionResponse(BaseModel):
    id: str
    tenant_id: str | None = None
    owner_id: str
    name: str
    slug: str
    description: str | None = None
    visibility: str
    tags: list[str] = []
    download_enabled: bool
    cover_file_id: str | None = None
    tunnel_url: str | None = None
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    stats: CollectionStats | None = None
    recent_items: list[MediaResponse] = []

    class Config:
        from_attributes = True


class CollectionListResponse(BaseModel):
    items: list[CollectionResponse]
    total: int
    skip: int
    limit: int


class CollectionItemResponse(BaseModel):
    position: int
    added_at: datetime
    media: MediaResponse


class CollectionDetailResponse(CollectionResponse):
    items: list[CollectionItemResponse] = []
    items_total: int = 0
    skip: int = 0
    limit: int = 50


class CollectionItemsRequest(BaseModel):
    media_ids: list[str] = Field(..., min_length=1)


class ReorderRequest(BaseModel):
    """完整的新顺序"""
    media_ids: list[str]


class PublishItemResult(BaseModel):
    media_id: str
    success: bool
    public_url: str | None = None
    error: str | None = None


class PublishResponse(BaseModel):
    collection: CollectionResponse
    tunnel_url: str | None = None
    published: int
    failed: int
    results: list[PublishItemResult]
