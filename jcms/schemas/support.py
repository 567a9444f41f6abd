"""帮助中心相关的请求/响应模型"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from jcms.schemas.common import PartialUpdate

ContactCategory = Literal["general", "technical", "billing", "feature", "bug"]


class ContactCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    category: ContactCategory = "general"
    name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = None


class ContactResponse(BaseModel):
    id: str
    tenant_id: str | None = None
    user_id: str | None = None
    name: str | None = None
    email: str | None = None
    subject: str
    message: str
    category: str
    status: str
    resolved_by: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FAQCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    answer: str = Field(..., min_length=1)
    category: str = Field(default="general", max_length=50)
    sort_order: int = 0
    is_published: bool = True


class FAQUpdate(PartialUpdate):
    non_nullable = ("question", "answer", "category", "sort_order", "is_published")

    question: str | None = Field(default=None, min_length=1, max_length=500)
    answer: str | None = None
    category: str | None = Field(default=None, max_length=50)
    sort_order: int | None = None
    is_published: bool | None = None


class FAQResponse(BaseModel):
    id: str
    question: str
    answer: str
    category: str
    sort_order: int
    is_published: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    category: str = Field(default="general", max_length=50)
    tags: list[str] = Field(default_factory=list)
    slug: str | None = Field(default=None, max_length=120)
    is_published: bool = True


class ArticleUpdate(PartialUpdate):
    non_nullable = ("title", "body", "category", "tags", "is_published")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    body: str | None = None
    category: str | None = Field(default=None, max_length=50)
    tags: list[str] | None = None
    is_published: bool | None = None


class ArticleResponse(BaseModel):
    id: str
    title: str
    slug: str
    body: str
    category: str
    tags: list[str] = []
    is_published: bool
    views: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
