"""
内容模型 (Content)

富文本内容：文章、页面、模板。

状态流转：
    draft -> published（发布）
    draft -> scheduled（定时）-> published（后台任务到点发布）
    published -> draft（取消发布）

删除为软删除（deleted = True），所有读取路径都过滤已删除内容。
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Content(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "contents"
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_content_tenant_slug"),
        Index("ix_contents_status_scheduled", "status", "scheduled_at"),
    )

    tenant_id: Mapped[str | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
    )

    author_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    excerpt: Mapped[str | None] = mapped_column(String(500))

    # article / page / template
    type: Mapped[str] = mapped_column(String(20), default="article", nullable=False)
    # draft / published / scheduled
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)

    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    cover_image_url: Mapped[str | None] = mapped_column(String(1000))
    slug: Mapped[str] = mapped_column(String(120), nullable=False)

    # SEO
    meta_title: Mapped[str | None] = mapped_column(String(60))
    meta_description: Mapped[str | None] = mapped_column(String(160))

    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    deleted: Mapped[bool] = mapped_column(default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
