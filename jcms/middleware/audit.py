"""
审计日志中间件

自动记录 /api 下的写操作和文件下载。

操作名由路径推导：
    POST   /api/content                  -> content_create
    PUT    /api/users/<id>               -> users_update
    DELETE /api/media/<id>               -> media_delete
    POST   /api/content/<id>/publish     -> content_publish
    GET    /api/collections/<id>/download -> collections_download

写入在响应返回后异步进行，不影响响应时间。
"""

import asyncio
import re
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from jcms.config import get_settings
from jcms.db.session import SessionLocal
from jcms.infra.logging import get_logger, get_request_id
from jcms.services.audit import record_audit_log

logger = get_logger(__name__)

METHOD_VERBS = {
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}

# 路径末段为这些动作时，操作名取动作本身
ACTION_SEGMENTS = {
    "publish", "unpublish", "schedule", "activate", "cancel", "disable", "enable",
    "reactivate", "reset-password", "start", "stop", "convert", "download",
    "reorder", "items", "change-password", "login", "reset", "resolve", "profile",
}

# 只读但需要审计的动作
AUDITED_READS = {"download"}

# 不审计的路径（密码强度检查等无副作用请求）
SKIP_PATHS = {"/api/auth/password-strength"}

_UUID = re.compile(r"^[0-9a-fA-F-]{32,36}$")


def derive_action(method: str, path: str) -> tuple[str, str, str | None] | None:
    """
    根据方法和路径推导 (action, resource_type, resource_id)

    不需要审计时返回 None。
    """
    if not path.startswith("/api/") or path in SKIP_PATHS:
        return None
    segments = [s for s in path[len("/api/"):].split("/") if s]
    if not segments:
        return None

    resource = segments[0]
    resource_id = segments[1] if len(segments) > 1 and _UUID.match(segments[1]) else None
    last = segments[-1] if len(segments) > 1 else None

    if method == "GET":
        if last in AUDITED_READS:
            return f"{resource}_{last}", resource, resource_id
        return None

    verb = METHOD_VERBS.get(method)
    if verb is None:
        return None
    if last in ACTION_SEGMENTS:
        action = last.replace("-", "_")
        if last == "items":
            action = "items_remove" if method == "DELETE" else "items_add"
        return f"{resource}_{action}", resource, resource_id
    return f"{resource}_{verb}", resource, resource_id


class AuditLogMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not get_settings().audit_enabled:
            return await call_next(request)

        derived = derive_action(request.method, request.url.path)
        if not derived:
            return await call_next(request)
        action, resource_type, resource_id = derived

        request_id = get_request_id() or "unknown"
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000

        # 由认证依赖写入 request.state
        tenant_id = getattr(request.state, "tenant_id", None)
        user_id = getattr(request.state, "user_id", None)

        asyncio.create_task(
            self._record_audit(
                request_id=request_id,
                tenant_id=tenant_id,
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                method=request.method,
                path=request.url.path,
                query_params=dict(request.query_params) or None,
                status_code=response.status_code,
                duration_ms=duration_ms,
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
            )
        )

        return response

    async def _record_audit(self, **fields) -> None:
        try:
            async with SessionLocal() as session:
                await record_audit_log(session=session, **fields)
                await session.commit()
        except Exception as e:
            # 审计写入失败不影响业务
            logger.warning(f"审计日志写入失败: {e}")
