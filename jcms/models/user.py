"""
用户模型 (User)

用户是系统的操作者。superadmin 不属于任何租户（tenant_id 为空），
其余角色（admin/editor/viewer）都属于某个租户。

安全设计：
- 密码使用 bcrypt 哈希存储，永不明文保存
- 用户名、邮箱全局唯一（登录时可用任一）
- 删除默认为停用（is_active = False），记录停用人和时间
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """用户表"""
    __tablename__ = "users"

    # 删除租户时级联删除其用户
    tenant_id: Mapped[str | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
    )

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50))

    # superadmin / admin / editor / viewer
    role: Mapped[str] = mapped_column(String(20), default="editor", nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deactivated_by: Mapped[str | None] = mapped_column(String(36))
    reactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reactivated_by: Mapped[str | None] = mapped_column(String(36))

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def is_superadmin(self) -> bool:
        return self.role == "superadmin"
