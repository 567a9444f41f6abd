"""
中间件模块

提供 FastAPI 中间件：
- RequestTraceMiddleware: 请求追踪和日志记录
- AuditLogMiddleware: 写操作审计
"""

from jcms.middleware.audit import AuditLogMiddleware
from jcms.middleware.request_trace import RequestTraceMiddleware

__all__ = ["AuditLogMiddleware", "RequestTraceMiddleware"]
