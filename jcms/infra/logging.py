"""
结构化日志

- 生产环境输出单行 JSON，开发环境输出带颜色的控制台格式
- 请求上下文（request_id / tenant_id / user_id）由 ContextFilter 注入每条记录
- extra 中的业务字段（media_id、collection_id 等）原样输出

使用示例：
    from jcms.infra.logging import get_logger

    logger = get_logger(__name__)
    logger.info("集合已公开", extra={"collection_id": collection.id})
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from jcms.config import get_settings

CONTEXT_FIELDS = ("request_id", "tenant_id", "user_id")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"jcms_{name}", default=None) for name in CONTEXT_FIELDS
}

# LogRecord 自带属性
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime", *CONTEXT_FIELDS}


def bind_context(**values: str | None) -> None:
    """
    设置当前请求的日志上下文

    只接受 request_id / tenant_id / user_id，传 None 清除。
    """
    for name, value in values.items():
        if name not in _context:
            raise KeyError(f"Unknown log context field: {name}")
        _context[name].set(value)


def get_request_id() -> str | None:
    return _context["request_id"].get()


class ContextFilter(logging.Filter):
    """把请求上下文写到 LogRecord 上"""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _context.items():
            setattr(record, name, var.get())
        return True


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}


class JSONFormatter(logging.Formatter):
    """
    {"ts": "...", "level": "INFO", "logger": "jcms.services.media",
     "message": "文件已上传", "request_id": "...", "tenant_id": "...", "media_id": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                data[name] = value
        data.update(_extra_fields(record))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    开发环境格式：
    12:00:00 INFO     [a1b2c3d4] jcms.services.media - 文件已上传 media_id=... file_size=1024
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        line = f"{datetime.fromtimestamp(record.created):%H:%M:%S} {color}{record.levelname:8}{self.RESET}"
        request_id = getattr(record, "request_id", None)
        if request_id:
            line += f" [{request_id[:8]}]"
        line += f" {record.name} - {record.getMessage()}"

        extra = _extra_fields(record)
        if extra:
            line += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str | None = None, json_format: bool | None = None) -> None:
    """
    配置根 logger

    Args:
        level: 默认取 LOG_LEVEL
        json_format: 默认取 LOG_JSON；未设置时非开发环境使用 JSON
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    if json_format is None:
        json_format = settings.log_json
    if json_format is None:
        json_format = settings.environment not in ("dev", "development", "test")

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine", "aiosqlite", "PIL", "multipart"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class RequestTimer:
    """
    分阶段计时

        timer = RequestTimer()
        ...保存文件...
        timer.mark("store")
        timer.get_metrics()   # {"total_ms": 12.5, "store_ms": 11.9}
    """

    def __init__(self):
        self.started = time.perf_counter()
        self._last = self.started
        self.stages: dict[str, float] = {}

    def mark(self, stage: str) -> None:
        now = time.perf_counter()
        self.stages[stage] = self.stages.get(stage, 0.0) + (now - self._last)
        self._last = now

    def get_metrics(self) -> dict[str, float]:
        metrics = {"total_ms": round((time.perf_counter() - self.started) * 1000, 2)}
        metrics.update({f"{stage}_ms": round(seconds * 1000, 2) for stage, seconds in self.stages.items()})
        return metrics
