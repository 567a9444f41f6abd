"""
JWT 令牌

载荷：
    sub: 用户 ID
    role: 角色
    tenant_id: 租户 ID（superadmin 为 None）
    exp / iat: 过期与签发时间

普通登录有效期 jwt_expire_minutes（默认 1 小时），
勾选"记住我"时为 jwt_remember_me_days（默认 7 天）。
"""

from datetime import timedelta

from jose import JWTError, jwt

from jcms.config import get_settings
from jcms.infra.timeutils import utcnow


class TokenError(Exception):
    """令牌无效或已过期"""


def token_lifetime(remember_me: bool = False) -> timedelta:
    settings = get_settings()
    if remember_me:
        return timedelta(days=settings.jwt_remember_me_days)
    return timedelta(minutes=settings.jwt_expire_minutes)


def create_access_token(
    user_id: str,
    role: str,
    tenant_id: str | None,
    remember_me: bool = False,
) -> tuple[str, int]:
    """
    签发访问令牌

    Returns:
        (token, 有效秒数)
    """
    settings = get_settings()
    now = utcnow()
    lifetime = token_lifetime(remember_me)
    payload = {
        "sub": user_id,
        "role": role,
        "tenant_id": tenant_id,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, int(lifetime.total_seconds())


def decode_access_token(token: str) -> dict:
    """
    Raises:
        TokenError: 签名错误、格式错误或已过期
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise TokenError(str(exc)) from exc
    if not payload.get("sub"):
        raise TokenError("Token missing subject")
    return payload
