class DomainError(Exception):
    """
    业务错误基类

    服务层抛出，由 main.py 中的全局处理器转换为
    {"detail": ..., "code": ...} 响应。
    """

    status_code = 400
    default_code = "BAD_REQUEST"

    def __init__(self, detail: str, code: str | None = None):
        self.detail = detail
        self.code = code or self.default_code
        super().__init__(detail)


class NotFoundError(DomainError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(DomainError):
    status_code = 409
    default_code = "CONFLICT"


class PermissionDeniedError(DomainError):
    status_code = 403
    default_code = "FORBIDDEN"


class StorageError(DomainError):
    """文件存储错误（路径非法、写入失败等）"""
    default_code = "STORAGE_ERROR"


class ImageProcessingError(DomainError):
    """图片处理错误"""
    default_code = "IMAGE_PROCESSING_ERROR"


class TunnelError(DomainError):
    """Cloudflare Tunnel 进程错误"""
    status_code = 502
    default_code = "TUNNEL_ERROR"


class TunnelUnavailableError(TunnelError):
    """cloudflared 可执行文件不可用"""
    status_code = 503
    default_code = "TUNNEL_UNAVAILABLE"


class SubscriptionLimitError(DomainError):
    """超出订阅限制"""
    status_code = 403
    default_code = "SUBSCRIPTION_LIMIT"


class PasswordPolicyError(DomainError):
    """密码不满足安全策略"""
    default_code = "WEAK_PASSWORD"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))
