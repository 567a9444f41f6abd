"""
角色模型 (Role)

数据库中的角色行覆盖内置的角色权限表（auth/permissions.py）。
is_system 的角色由启动流程自动写入，不可删除。
"""

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Role(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    description: Mapped[str | None] = mapped_column(Text)

    # 权限字符串列表，如 ["users.read", "images.read.own"]
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list)

    is_system: Mapped[bool] = mapped_column(default=False, nullable=False)
