"""
租户品牌配置

品牌配置以 JSON 存放在 tenants.branding，分组如下：
- colors:       主色、辅色、强调色、背景、文字颜色
- typography:   字体与字号
- theme:        明暗模式、圆角、阴影强度
- company_info: 标语、网站、支持邮箱、电话
- logo_url / favicon_url / custom_css

更新时各分组与现有值深度合并；渲染 CSS 时缺失的键回退到默认值。
"""

import copy
import re
from typing import Any

DEFAULT_BRANDING: dict[str, Any] = {
    "logo_url": "",
    "favicon_url": "",
    "colors": {
        "primary": "#3b82f6",
        "secondary": "#64748b",
        "accent": "#10b981",
        "background": "#ffffff",
        "surface": "#f8fafc",
        "text": {
            "primary": "#1e293b",
            "secondary": "#64748b",
        },
    },
    "typography": {
        "font_family": "Inter, system-ui, sans-serif",
        "font_size": {
            "small": "14px",
            "medium": "16px",
            "large": "18px",
        },
    },
    "theme": {
        "mode": "light",
        "border_radius": "8px",
        "shadow_intensity": "medium",
    },
    "custom_css": "",
    "company_info": {
        "tagline": "",
        "website": "",
        "support_email": "",
        "phone": "",
    },
}

SHADOW_MAP = {
    "none": "none",
    "light": "0 1px 3px rgba(0, 0, 0, 0.1)",
    "medium": "0 4px 6px rgba(0, 0, 0, 0.1)",
    "strong": "0 10px 15px rgba(0, 0, 0, 0.1)",
}

# CSS 值中不允许出现的字符
_CSS_UNSAFE = re.compile(r"[;{}<>\n\r]")


def deep_merge(base: dict, override: dict) -> dict:
    """递归合并，override 中的 None 值被忽略"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def default_branding() -> dict:
    return copy.deepcopy(DEFAULT_BRANDING)


def effective_branding(stored: dict | None) -> dict:
    """存储值叠加在默认值之上"""
    return deep_merge(DEFAULT_BRANDING, stored or {})


def apply_update(stored: dict | None, update: dict) -> dict:
    return deep_merge(stored or {}, update)


def _css_value(value: Any) -> str:
    return _CSS_UNSAFE.sub("", str(value)).strip()


def render_css(stored: dict | None) -> str:
    """生成 CSS 自定义属性"""
    branding = effective_branding(stored)
    colors = branding["colors"]
    typography = branding["typography"]
    theme = branding["theme"]

    variables = [
        ("--tenant-color-primary", colors.get("primary")),
        ("--tenant-color-secondary", colors.get("secondary")),
        ("--tenant-color-accent", colors.get("accent")),
        ("--tenant-color-background", colors.get("background")),
        ("--tenant-color-surface", colors.get("surface")),
        ("--tenant-color-text-primary", colors.get("text", {}).get("primary")),
        ("--tenant-color-text-secondary", colors.get("text", {}).get("secondary")),
        ("--tenant-font-family", typography.get("font_family")),
        ("--tenant-font-size-small", typography.get("font_size", {}).get("small")),
        ("--tenant-font-size-medium", typography.get("font_size", {}).get("medium")),
        ("--tenant-font-size-large", typography.get("font_size", {}).get("large")),
        ("--tenant-border-radius", theme.get("border_radius")),
        ("--tenant-shadow", SHADOW_MAP.get(theme.get("shadow_intensity"), SHADOW_MAP["medium"])),
    ]
    if branding.get("logo_url"):
        variables.append(("--tenant-logo-url", f"url('{_css_value(branding['logo_url'])}')"))

    lines = [":root {"]
    for name, value in variables:
        if value:
            lines.append(f"  {name}: {_css_value(value)};")
    lines.append("}")
    css = "\n".join(lines) + "\n"

    if branding.get("custom_css"):
        css += f"\n/* Custom tenant CSS */\n{branding['custom_css']}\n"
    return css
