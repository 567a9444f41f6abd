"""
平台设置服务

读取顺序：数据库 system_settings 表 > 环境变量（Settings）默认值。
超级管理员通过 /api/superadmin/settings 修改后立即生效，无需重启。
"""

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.config import get_settings
from jcms.models.system_setting import DEFAULT_SYSTEM_SETTINGS, SystemSetting


class UnknownSettingError(KeyError):
    """不在可设置项列表中的键"""


def parse_value(value: str) -> Any:
    """解析设置值，尝试 JSON 解码"""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


def default_value(key: str) -> Any:
    definition = DEFAULT_SYSTEM_SETTINGS.get(key)
    if definition is None:
        raise UnknownSettingError(key)
    settings_key = definition.get("settings_key")
    if settings_key:
        return getattr(get_settings(), settings_key)
    return definition.get("default")


async def get_setting_value(db: AsyncSession, key: str) -> Any:
    row = await db.get(SystemSetting, key)
    if row is not None:
        return parse_value(row.value)
    return default_value(key)


async def get_int_setting(db: AsyncSession, key: str) -> int:
    value = await get_setting_value(db, key)
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default_value(key))


async def list_settings(db: AsyncSession) -> list[dict]:
    """列出全部可设置项及其当前值和来源"""
    result = await db.execute(select(SystemSetting))
    rows = {row.key: row for row in result.scalars().all()}

    items = []
    for key, definition in DEFAULT_SYSTEM_SETTINGS.items():
        row = rows.get(key)
        if row is not None:
            items.append({
                "key": key,
                "value": parse_value(row.value),
                "description": row.description or definition.get("description"),
                "source": "database",
                "updated_at": row.updated_at,
            })
        else:
            items.append({
                "key": key,
                "value": default_value(key),
                "description": definition.get("description"),
                "source": "default",
                "updated_at": None,
            })
    return items


async def put_setting(db: AsyncSession, key: str, value: Any, description: str | None = None) -> SystemSetting:
    """
    写入设置（不存在则创建）

    Raises:
        UnknownSettingError: 键不在可设置项列表中
    """
    if key not in DEFAULT_SYSTEM_SETTINGS:
        raise UnknownSettingError(key)

    if description is None:
        description = DEFAULT_SYSTEM_SETTINGS[key].get("description")

    row = await db.get(SystemSetting, key)
    if row is not None:
        row.value = json.dumps(value)
        row.description = description
    else:
        row = SystemSetting(key=key, value=json.dumps(value), description=description)
        db.add(row)

    await db.commit()
    await db.refresh(row)
    return row


async def reset_settings(db: AsyncSession) -> list[str]:
    """删除全部数据库设置，回退到环境变量默认值"""
    result = await db.execute(select(SystemSetting))
    rows = result.scalars().all()
    reset_keys = [row.key for row in rows]
    for row in rows:
        await db.delete(row)
    await db.commit()
    return reset_keys
