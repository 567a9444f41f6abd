"""
集合模型 (Collection / CollectionItem)

集合是有序的媒体文件分组。成员关系放在 collection_items 表中，
position 从 0 开始连续编号，决定展示顺序。

一个集合只能包含同一租户的文件。
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.infra.timeutils import utcnow
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Collection(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    集合表

    字段说明：
    - slug: 由名称生成，全局唯一
    - visibility: private/public，通过隧道发布后为 public
    - download_enabled: 是否允许打包下载
    - tunnel_url: 发布时的隧道地址
    """
    __tablename__ = "collections"

    tenant_id: Mapped[str | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
    )

    owner_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    visibility: Mapped[str] = mapped_column(String(10), default="private", nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    download_enabled: Mapped[bool] = mapped_column(default=True, nullable=False)

    cover_file_id: Mapped[str | None] = mapped_column(String(36))

    tunnel_url: Mapped[str | None] = mapped_column(String(500))
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class CollectionItem(UUIDPrimaryKeyMixin, Base):
    """集合成员"""
    __tablename__ = "collection_items"
    __table_args__ = (
        UniqueConstraint("collection_id", "media_id", name="uq_collection_item"),
    )

    collection_id: Mapped[str] = mapped_column(
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    media_id: Mapped[str] = mapped_column(
        ForeignKey("media_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
