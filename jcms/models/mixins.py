"""
模型混入类 (Mixins)

提供可复用的模型字段和行为，通过多重继承添加到具体模型中。

使用示例：
    class MyModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
        __tablename__ = "my_table"
        # 自动获得 id、created_at 和 updated_at 字段
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from jcms.infra.timeutils import utcnow


def new_id() -> str:
    return str(uuid4())


class UUIDPrimaryKeyMixin:
    """UUID 字符串主键，String(36) 对应 xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx"""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class TimestampMixin:
    """
    时间戳混入类

    - created_at: 记录创建时间
    - updated_at: 记录最后更新时间，每次 UPDATE 时刷新

    时间在 Python 端生成（而不是 server_default），插入后对象上立即可读，
    异步会话中不会因为访问过期属性触发隐式 IO。
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
