"""
请求追踪中间件

- 接收或生成 X-Request-ID，写入日志上下文
- 响应头返回 X-Request-ID 和 X-Response-Time
- 按状态码选择日志级别记录请求
"""

import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from jcms.infra.logging import RequestTimer, bind_context, get_logger

logger = get_logger(__name__)

# 高频低价值请求不记录成功日志
SKIP_PATHS = ("/healthz", "/favicon.ico")


class RequestTraceMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        # tenant_id / user_id 由认证依赖设置
        bind_context(request_id=request_id, tenant_id=None, user_id=None)

        timer = RequestTimer()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            metrics = timer.get_metrics()
            logger.error(
                f"{request.method} {path} - 500 - {metrics['total_ms']:.0f}ms",
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": 500,
                    "duration_ms": metrics["total_ms"],
                    "error": str(e),
                },
            )
            raise

        metrics = timer.get_metrics()
        message = f"{request.method} {path} - {response.status_code} - {metrics['total_ms']:.0f}ms"
        log_extra = {
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": metrics["total_ms"],
        }

        if response.status_code >= 500:
            logger.error(message, extra=log_extra)
        elif response.status_code >= 400:
            logger.warning(message, extra=log_extra)
        elif path not in SKIP_PATHS and not path.startswith("/public/"):
            logger.info(message, extra=log_extra)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{metrics['total_ms']:.0f}ms"
        return response
