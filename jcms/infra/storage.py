"""
本地文件存储

上传文件按租户隔离存放：
    <upload_dir>/<tenant_id 或 system>/<images|files>/<user_id>/<uuid>.<ext>

安全设计：
- 所有路径都必须解析到存储根目录之内（防止路径穿越）
- 原始文件名只用于展示，磁盘文件名由服务端生成
- 写入时边读边计数，超过大小限制立即中止并删除半截文件
"""

import os
import re
import shutil
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from jcms.config import get_settings
from jcms.exceptions import StorageError
from jcms.infra.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

_UNSAFE_FILENAME = re.compile(r'[/\\:*?"<>|\x00-\x1f]')

IMAGE_FORMATS = {"webp", "avif", "jpg", "jpeg", "png", "gif", "tiff", "tif", "bmp"}

# 扩展名 -> 文件类别
FILE_TYPE_EXTENSIONS: dict[str, set[str]] = {
    "image": IMAGE_FORMATS | {"svg", "ico", "heic"},
    "document": {"pdf", "doc", "docx", "odt", "rtf"},
    "spreadsheet": {"xls", "xlsx", "ods", "csv"},
    "presentation": {"ppt", "pptx", "odp", "key"},
    "text": {"txt", "md", "log", "json", "xml", "yaml", "yml"},
    "video": {"mp4", "mov", "avi", "mkv", "webm", "wmv"},
    "audio": {"mp3", "wav", "ogg", "flac", "aac", "m4a"},
    "archive": {"zip", "rar", "7z", "tar", "gz", "bz2"},
    "code": {"py", "js", "ts", "jsx", "tsx", "html", "css", "java", "c", "cpp", "go", "rs", "sh", "sql"},
}


def sanitize_filename(filename: str) -> str:
    """
    清理文件名中的路径分隔符和危险字符

    "../../etc/passwd" -> "__.__.etc_passwd" 之类，不会再包含 "/" 或 ".."。
    """
    if not filename or not isinstance(filename, str):
        raise StorageError("Invalid filename", code="INVALID_FILENAME")
    cleaned = _UNSAFE_FILENAME.sub("_", filename).replace("..", "_")
    cleaned = cleaned.strip(" .")
    return cleaned or "file"


def resolve_within(base_dir: Path, *parts: str) -> Path:
    """
    拼接路径并确认其位于 base_dir 之内

    Raises:
        StorageError: 检测到路径穿越
    """
    base = base_dir.resolve()
    target = base.joinpath(*parts).resolve()
    if target != base and base not in target.parents:
        raise StorageError("Path traversal attempt detected", code="INVALID_PATH")
    return target


def get_extension(filename: str) -> str:
    """返回不带点的小写扩展名"""
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def classify_file(filename: str) -> tuple[str, str]:
    """
    根据扩展名判断文件类别

    Returns:
        (file_type, format)，例如 ("image", "png")、("other", "bin")
    """
    ext = get_extension(filename)
    for file_type, extensions in FILE_TYPE_EXTENSIONS.items():
        if ext in extensions:
            return file_type, ext
    return "other", ext or "bin"


def is_image_format(fmt: str) -> bool:
    return fmt.lower() in IMAGE_FORMATS


@dataclass
class StoredFile:
    """保存结果"""
    path: Path
    stored_name: str
    size: int


class LocalStorage:
    """本地磁盘存储"""

    def __init__(self, root: Path):
        self.root = root

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def directory_for(self, tenant_id: str | None, kind: str, user_id: str) -> Path:
        """租户/类别/用户 三级目录"""
        folder = "images" if kind == "image" else "files"
        directory = resolve_within(self.root, tenant_id or "system", folder, user_id)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def save_stream(
        self,
        source,
        *,
        tenant_id: str | None,
        user_id: str,
        kind: str,
        extension: str,
        max_bytes: int | None = None,
    ) -> StoredFile:
        """
        将类文件对象写入磁盘

        Args:
            source: 支持 read(n) 的文件对象（如 UploadFile.file）
            max_bytes: 大小上限，None 表示不限制

        Raises:
            StorageError: 超出大小限制或写入失败
        """
        directory = self.directory_for(tenant_id, kind, user_id)
        stored_name = f"{uuid.uuid4().hex}.{extension}" if extension else uuid.uuid4().hex
        target = resolve_within(directory, stored_name)

        size = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_bytes is not None and size > max_bytes:
                        raise StorageError(f"File exceeds limit of {max_bytes} bytes", code="FILE_TOO_LARGE")
                    out.write(chunk)
        except StorageError:
            target.unlink(missing_ok=True)
            raise
        except OSError as exc:
            target.unlink(missing_ok=True)
            raise StorageError(f"Failed to write file: {exc}") from exc

        return StoredFile(path=target, stored_name=stored_name, size=size)

    def save_bytes(
        self,
        data: bytes,
        *,
        tenant_id: str | None,
        user_id: str,
        kind: str,
        extension: str,
    ) -> StoredFile:
        directory = self.directory_for(tenant_id, kind, user_id)
        stored_name = f"{uuid.uuid4().hex}.{extension}"
        target = resolve_within(directory, stored_name)
        target.write_bytes(data)
        return StoredFile(path=target, stored_name=stored_name, size=len(data))

    def delete(self, path: str | Path | None) -> bool:
        """
        安全删除文件

        只删除存储根目录内的文件，文件不存在时返回 False。
        """
        if not path:
            return False
        try:
            target = resolve_within(self.root, str(Path(path).resolve().relative_to(self.root.resolve())))
        except (ValueError, StorageError):
            logger.warning(f"拒绝删除存储目录之外的文件: {path}")
            return False
        if not target.is_file():
            return False
        target.unlink()
        return True

    def delete_tree(self, tenant_id: str) -> None:
        """删除整个租户目录（删除租户时调用）"""
        directory = resolve_within(self.root, tenant_id)
        if directory.is_dir():
            shutil.rmtree(directory, ignore_errors=True)


@lru_cache(maxsize=1)
def get_storage() -> LocalStorage:
    """上传目录存储单例"""
    return LocalStorage(get_settings().upload_path)
