"""
平台设置模型 (SystemSetting)

存储超级管理员可在运行时修改的平台级设置，无需重启服务。

配置优先级：数据库（本表）> 环境变量默认值
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jcms.db.base import Base
from jcms.infra.timeutils import utcnow


class SystemSetting(Base):
    """
    平台设置表

    字段说明：
    - key: 设置键名，主键
    - value: 设置值，JSON 字符串格式
    - description: 设置描述
    """
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)

    value: Mapped[str] = mapped_column(Text, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# 可设置项：键 -> (对应的 Settings 字段, 描述)
DEFAULT_SYSTEM_SETTINGS = {
    "free_max_file_size_mb": {
        "description": "未订阅租户单文件大小上限（MB）",
        "settings_key": "free_max_file_size_mb",
    },
    "free_max_editors": {
        "description": "未订阅租户编辑数量上限",
        "settings_key": "free_max_editors",
    },
    "subscribed_max_file_size_mb": {
        "description": "已订阅租户单文件大小上限（MB）",
        "settings_key": "subscribed_max_file_size_mb",
    },
    "subscribed_max_editors": {
        "description": "已订阅租户编辑数量上限",
        "settings_key": "subscribed_max_editors",
    },
    "file_expiration_days": {
        "description": "未订阅租户上传文件保留天数",
        "settings_key": "file_expiration_days",
    },
    "subscription_price_monthly": {
        "description": "月度订阅价格",
        "settings_key": "subscription_price_monthly",
    },
    "subscription_price_yearly": {
        "description": "年度订阅价格",
        "settings_key": "subscription_price_yearly",
    },
}
