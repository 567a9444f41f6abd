"""
登录限流

按客户端 IP 统计窗口内的登录尝试次数。配置 REDIS_URL 时计数保存在 Redis，
多个实例共享；否则保存在进程内存。
"""

import time
from collections import deque
from functools import lru_cache

import redis

from jcms.config import get_settings
from jcms.infra.logging import get_logger

logger = get_logger(__name__)


class MemoryRateLimiter:
    """进程内滑动窗口"""

    def __init__(self, window_seconds: int, max_attempts: int) -> None:
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self._attempts: dict[str, deque[float]] = {}

    def allow(self, key: str) -> bool:
        """记录一次尝试；窗口内已达上限时返回 False 且不计数"""
        now = time.monotonic()
        self.prune(now)
        attempts = self._attempts.setdefault(key, deque())
        if len(attempts) >= self.max_attempts:
            return False
        attempts.append(now)
        return True

    def prune(self, now: float | None = None) -> None:
        """丢弃窗口外的记录，空队列连同 key 一起删除"""
        now = time.monotonic() if now is None else now
        for key in list(self._attempts):
            attempts = self._attempts[key]
            while attempts and attempts[0] <= now - self.window_seconds:
                attempts.popleft()
            if not attempts:
                del self._attempts[key]

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._attempts.clear()
        else:
            self._attempts.pop(key, None)


class RedisRateLimiter:
    """
    Redis 滑动窗口

    每个 IP 一个 sorted set，成员为尝试时间戳。Redis 不可用时放行登录请求。
    """

    key_prefix = "jcms:login-attempts:"

    def __init__(self, client: redis.Redis, window_seconds: int, max_attempts: int) -> None:
        self.client = client
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts

    def allow(self, key: str) -> bool:
        now = time.time()
        redis_key = self.key_prefix + key
        try:
            pipe = self.client.pipeline()
            pipe.zremrangebyscore(redis_key, 0, now - self.window_seconds)
            pipe.zcard(redis_key)
            _, count = pipe.execute()
            if count >= self.max_attempts:
                return False
            pipe = self.client.pipeline()
            pipe.zadd(redis_key, {f"{now:.6f}": now})
            pipe.expire(redis_key, self.window_seconds + 1)
            pipe.execute()
            return True
        except redis.RedisError as exc:
            logger.warning(f"Redis 登录限流不可用，本次放行: {exc}")
            return True

    def reset(self, key: str | None = None) -> None:
        if key is not None:
            self.client.delete(self.key_prefix + key)
            return
        for redis_key in self.client.scan_iter(match=self.key_prefix + "*"):
            self.client.delete(redis_key)


@lru_cache(maxsize=1)
def get_login_rate_limiter() -> MemoryRateLimiter | RedisRateLimiter:
    settings = get_settings()
    window = settings.login_rate_limit_window_seconds
    max_attempts = settings.login_rate_limit_per_minute

    if settings.redis_url:
        logger.info("登录限流使用 Redis")
        return RedisRateLimiter(redis.Redis.from_url(settings.redis_url), window, max_attempts)
    return MemoryRateLimiter(window, max_attempts)
