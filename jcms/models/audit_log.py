"""
审计日志模型

记录所有写操作和敏感 API 访问，用于安全审计和活动查询。

字段说明：
- request_id: 请求唯一标识（与 X-Request-ID 头对应）
- tenant_id / user_id: 操作者
- action: 操作类型（login/user_create/media_upload/collection_publish/...）
- resource_type / resource_id: 操作对象
- method / path / status_code / duration_ms: HTTP 信息
- ip_address / user_agent: 客户端信息
"""

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String, Text

from jcms.db.base import Base
from jcms.infra.timeutils import utcnow
from jcms.models.mixins import new_id


class AuditLog(Base):
    """审计日志表"""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    request_id = Column(String(36), nullable=False, index=True, comment="请求 ID")
    tenant_id = Column(String(36), nullable=True, index=True, comment="租户 ID")
    user_id = Column(String(36), nullable=True, index=True, comment="用户 ID")

    # 操作信息
    action = Column(String(50), nullable=False, index=True, comment="操作类型")
    resource_type = Column(String(50), nullable=True, comment="资源类型")
    resource_id = Column(String(36), nullable=True, comment="资源 ID")

    # HTTP 请求信息
    method = Column(String(10), nullable=False, comment="HTTP 方法")
    path = Column(String(500), nullable=False, comment="请求路径")
    query_params = Column(JSON, nullable=True, comment="查询参数")

    # 响应信息
    status_code = Column(Integer, nullable=False, index=True, comment="状态码")
    duration_ms = Column(Float, nullable=False, comment="耗时（毫秒）")

    # 客户端信息
    ip_address = Column(String(45), nullable=True, comment="客户端 IP")
    user_agent = Column(String(500), nullable=True, comment="User-Agent")

    error_message = Column(Text, nullable=True, comment="错误信息")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # 复合索引：按租户和时间查询
    __table_args__ = (
        Index("ix_audit_logs_tenant_created", "tenant_id", "created_at"),
        Index("ix_audit_logs_action_created", "action", "created_at"),
    )

    def __repr__(self):
        return f"<AuditLog {self.id} {self.action} {self.status_code}>"
