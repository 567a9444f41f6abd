"""
租户模型 (Tenant)

租户是多租户系统的顶层实体，代表一个企业或组织。
所有业务数据（用户、文件、集合、内容、订阅）都通过 tenant_id 隔离。

租户状态（在 schemas/tenant.py 中用 Literal 验证）：
- active: 正常运行
- disabled: 已禁用（该租户用户的请求被拒绝）
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin

DEFAULT_ALLOWED_FORMATS = ["webp", "avif", "jpg", "jpeg", "png", "gif"]


class Tenant(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    租户表

    字段说明：
    - subdomain: 子域名，全局唯一
    - max_users / max_storage_mb: 资源配额
    - allowed_formats: 允许上传的图片格式
    - branding: 品牌配置（颜色、字体、主题、公司信息），JSON
    - admin_user_id: 租户管理员
    """
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    subdomain: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False, index=True)

    disabled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    disabled_reason: Mapped[str | None] = mapped_column(Text)

    # 资源配额
    max_users: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    max_storage_mb: Mapped[int] = mapped_column(Integer, default=1024, nullable=False)

    allowed_formats: Mapped[list[str]] = mapped_column(JSON, default=lambda: list(DEFAULT_ALLOWED_FORMATS))

    branding: Mapped[dict] = mapped_column(JSON, default=dict)

    # 不加外键：User 也引用 tenants，避免循环依赖
    admin_user_id: Mapped[str | None] = mapped_column(String(36))

    @property
    def is_active(self) -> bool:
        return self.status == "active"
