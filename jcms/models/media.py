"""
媒体文件模型 (MediaFile)

图片和普通文件共用一张表，通过 kind 区分：
- image: 图片，记录宽高，可生成缩略图和转换格式
- file:  其他文件（文档、表格、音视频、压缩包等）

未订阅租户上传的文件带 expires_at，到期后由后台任务清理。
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class MediaFile(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    媒体文件表

    字段说明：
    - original_name: 用户上传时的文件名（已清理），仅用于展示和下载
    - stored_name / storage_path: 服务端生成的磁盘文件名和绝对路径
    - file_type: image/document/spreadsheet/presentation/text/video/audio/archive/code/other
    - visibility: private/public，公开后 public_url 指向隧道地址
    """
    __tablename__ = "media_files"
    __table_args__ = (
        Index("ix_media_files_tenant_created", "tenant_id", "created_at"),
    )

    tenant_id: Mapped[str | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
    )

    owner_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False)

    kind: Mapped[str] = mapped_column(String(10), default="file", nullable=False, index=True)
    file_type: Mapped[str] = mapped_column(String(20), default="other", nullable=False)
    format: Mapped[str] = mapped_column(String(20), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(255))
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    visibility: Mapped[str] = mapped_column(String(10), default="private", nullable=False)
    public_url: Mapped[str | None] = mapped_column(String(1000))
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    width: Mapped[int | None] = mapped_column(Integer)
    height: Mapped[int | None] = mapped_column(Integer)

    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    notes: Mapped[str | None] = mapped_column(Text)

    # 由哪个文件转换而来
    source_id: Mapped[str | None] = mapped_column(String(36))

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)

    access_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
