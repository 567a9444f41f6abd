"""
时间工具

数据库中所有时间均为 UTC。SQLite 会丢弃时区信息，读回来是 naive datetime，
所以在 Python 端比较之前统一经过 as_utc()。
"""

import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """naive 视为 UTC，aware 转换为 UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """
    增加自然月

    日期超出目标月份天数时取月末，例如 1 月 31 日 + 1 个月 = 2 月 28/29 日。
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    """增加自然年，2 月 29 日落到非闰年时取 2 月 28 日"""
    return add_months(value, years * 12)
