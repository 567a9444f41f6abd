"""
图片处理（Pillow）

- 读取图片尺寸
- 生成缩略图/中图/大图（只缩小，不放大）
- 格式转换（webp/avif/jpeg/png）

Pillow 的操作是同步 CPU 密集型的，路由层通过 run_in_threadpool 调用。
"""

from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError, features

from jcms.exceptions import ImageProcessingError
from jcms.infra.logging import get_logger

logger = get_logger(__name__)

# 变体名称 -> 最长边像素
VARIANT_SIZES: dict[str, int] = {
    "thumbnail": 150,
    "medium": 600,
    "large": 1200,
}

# 转换目标格式 -> (Pillow 格式名, 扩展名, MIME)
CONVERT_FORMATS: dict[str, tuple[str, str, str]] = {
    "webp": ("WEBP", "webp", "image/webp"),
    "avif": ("AVIF", "avif", "image/avif"),
    "jpeg": ("JPEG", "jpg", "image/jpeg"),
    "jpg": ("JPEG", "jpg", "image/jpeg"),
    "png": ("PNG", "png", "image/png"),
}

DEFAULT_QUALITY = 85


def avif_supported() -> bool:
    """当前 Pillow 是否带 AVIF 编码器"""
    try:
        return bool(features.check("avif"))
    except ValueError:
        return False


def supported_conversions() -> list[str]:
    formats = ["webp", "jpeg", "png"]
    if avif_supported():
        formats.insert(1, "avif")
    return formats


def read_dimensions(path: str | Path) -> tuple[int, int] | None:
    """
    读取图片宽高

    非图片或损坏的文件返回 None，不抛异常（上传流程不因此失败）。
    """
    try:
        with Image.open(path) as img:
            return img.width, img.height
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning(f"无法读取图片尺寸 {path}: {exc}")
        return None


def _prepare_for(img: Image.Image, pil_format: str) -> Image.Image:
    """JPEG 不支持透明通道，先转 RGB"""
    img = ImageOps.exif_transpose(img)
    if pil_format == "JPEG" and img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    if img.mode == "P":
        return img.convert("RGBA")
    return img


def render_variant(path: str | Path, size: str, fmt: str = "webp") -> tuple[bytes, str]:
    """
    生成指定尺寸的变体

    Args:
        path: 原图路径
        size: thumbnail/medium/large
        fmt: 输出格式

    Returns:
        (图片字节, MIME 类型)

    Raises:
        ImageProcessingError: 尺寸或格式不支持、原图无法解析
    """
    if size not in VARIANT_SIZES:
        raise ImageProcessingError(f"Unknown variant size: {size}")
    pil_format, _, mime_type = _resolve_format(fmt)
    max_side = VARIANT_SIZES[size]

    try:
        with Image.open(path) as img:
            img = _prepare_for(img, pil_format)
            # thumbnail() 保持比例且不会放大
            img.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
            buffer = BytesIO()
            img.save(buffer, format=pil_format, quality=DEFAULT_QUALITY)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageProcessingError(f"Cannot process image: {exc}") from exc

    return buffer.getvalue(), mime_type


def convert_image(path: str | Path, fmt: str, quality: int = DEFAULT_QUALITY) -> tuple[bytes, str, str, int, int]:
    """
    转换图片格式

    Returns:
        (图片字节, 扩展名, MIME 类型, 宽, 高)
    """
    pil_format, extension, mime_type = _resolve_format(fmt)
    try:
        with Image.open(path) as img:
            img = _prepare_for(img, pil_format)
            buffer = BytesIO()
            img.save(buffer, format=pil_format, quality=quality)
            width, height = img.width, img.height
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageProcessingError(f"Cannot convert image: {exc}") from exc

    return buffer.getvalue(), extension, mime_type, width, height


def _resolve_format(fmt: str) -> tuple[str, str, str]:
    key = (fmt or "").lower()
    if key not in CONVERT_FORMATS:
        raise ImageProcessingError(f"Unsupported format: {fmt}")
    if key == "avif" and not avif_supported():
        raise ImageProcessingError("AVIF encoding is not available on this server")
    return CONVERT_FORMATS[key]
