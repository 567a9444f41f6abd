"""文本处理工具：slug 生成、文件大小格式化"""

import re
import unicodedata

_NON_SLUG = re.compile(r"[^a-z0-9-]")
_DASHES = re.compile(r"-+")


def slugify(value: str, max_length: int = 80) -> str:
    """
    生成 URL 安全的 slug

    "Summer Gallery 2024!" -> "summer-gallery-2024"
    非 ASCII 字符先做 NFKD 归一化再去掉，结果为空时返回 "item"。
    """
    normalized = unicodedata.normalize("NFKD", value or "")
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_SLUG.sub("-", ascii_value)
    slug = _DASHES.sub("-", slug).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or "item"


def format_file_size(size: int | float | None) -> str:
    """1536 -> '1.5 KB'"""
    if not size:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    if index == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {units[index]}".replace(".0 ", " ")
