"""
密码哈希与密码策略

- 哈希算法：bcrypt（直接使用 bcrypt 库）
- 策略：至少 8 位，包含大写字母、小写字母、数字和特殊字符
"""

import re
from dataclasses import dataclass, field

import bcrypt

from jcms.config import get_settings
from jcms.exceptions import PasswordPolicyError

MIN_PASSWORD_LENGTH = 8

# bcrypt 只使用前 72 字节
_BCRYPT_MAX_BYTES = 72

_POLICY_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
]


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str | None) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(password), hashed.encode("utf-8"))
    except ValueError:
        # 哈希格式非法
        return False


@dataclass
class PasswordCheck:
    valid: bool
    errors: list[str] = field(default_factory=list)
    score: int = 0

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "score": self.score}


def check_password_policy(password: str) -> PasswordCheck:
    """
    检查密码强度

    score 为满足的规则数（0-5），全部满足时 valid=True。
    """
    password = password or ""
    errors: list[str] = []
    score = 0

    if len(password) >= MIN_PASSWORD_LENGTH:
        score += 1
    else:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    for pattern, message in _POLICY_RULES:
        if pattern.search(password):
            score += 1
        else:
            errors.append(message)

    return PasswordCheck(valid=not errors, errors=errors, score=score)


def ensure_password_policy(password: str) -> None:
    """
    Raises:
        PasswordPolicyError: 不满足密码策略
    """
    result = check_password_policy(password)
    if not result.valid:
        raise PasswordPolicyError(result.errors)
