"""
安全工具测试

- 密码策略与 bcrypt 哈希
- JWT 签发与校验
- 登录限流
"""

import pytest
from jose import jwt

from jcms.auth.passwords import check_password_policy, ensure_password_policy, hash_password, verify_password
from jcms.auth.permissions import has_permission, resolve_scope
from jcms.auth.rate_limit import MemoryRateLimiter
from jcms.auth.tokens import TokenError, create_access_token, decode_access_token
from jcms.exceptions import PasswordPolicyError


class TestPasswordPolicy:

    def test_strong_password_passes(self):
        result = check_password_policy("Str0ng!pass")
        assert result.valid
        assert result.errors == []
        assert result.score == 5

    def test_weak_password_lists_every_missing_rule(self):
        result = check_password_policy("abc")
        assert not result.valid
        assert result.score == 1
        assert len(result.errors) == 4
        assert any("8 characters" in e for e in result.errors)

    def test_ensure_raises_with_code(self):
        with pytest.raises(PasswordPolicyError) as exc_info:
            ensure_password_policy("password")
        assert exc_info.value.code == "WEAK_PASSWORD"
        assert exc_info.value.status_code == 400


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = hash_password("Str0ng!pass")
        assert hashed != "Str0ng!pass"
        assert verify_password("Str0ng!pass", hashed)
        assert not verify_password("wrong", hashed)

    def test_verify_rejects_malformed_hash(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
        assert not verify_password("anything", None)


class TestTokens:

    def test_round_trip_claims(self):
        token, expires_in = create_access_token("user-1", "admin", "tenant-1")
        payload = decode_access_token(token)
        assert payload["sub"] == "user-1"
        assert payload["role"] == "admin"
        assert payload["tenant_id"] == "tenant-1"
        assert expires_in == 3600

    def test_remember_me_extends_lifetime(self):
        _, expires_in = create_access_token("user-1", "editor", "tenant-1", remember_me=True)
        assert expires_in == 7 * 24 * 3600

    def test_foreign_signature_rejected(self):
        forged = jwt.encode({"sub": "user-1", "role": "superadmin"}, "another-secret", algorithm="HS256")
        with pytest.raises(TokenError):
            decode_access_token(forged)
        with pytest.raises(TokenError):
            decode_access_token("not-a-token")


class TestPermissions:

    def test_all_scope_implies_own(self):
        assert has_permission({"images.read.all"}, "images.read.own")
        assert not has_permission({"images.read.own"}, "images.read.all")

    def test_resolve_scope(self):
        assert resolve_scope({"images.read.all", "images.read.own"}, "images.read") == "all"
        assert resolve_scope({"images.read.own"}, "images.read") == "own"
        assert resolve_scope(set(), "images.read") is None


class TestMemoryRateLimiter:

    def test_blocks_after_limit_per_key(self):
        limiter = MemoryRateLimiter(window_seconds=60, max_attempts=2)
        assert limiter.allow("10.0.0.1")
        assert limiter.allow("10.0.0.1")
        assert not limiter.allow("10.0.0.1")
        assert limiter.allow("10.0.0.2")

        limiter.reset("10.0.0.1")
        assert limiter.allow("10.0.0.1")

    def test_window_expiry(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("jcms.auth.rate_limit.time.monotonic", lambda: clock[0])
        limiter = MemoryRateLimiter(window_seconds=60, max_attempts=1)
        assert limiter.allow("ip")
        assert not limiter.allow("ip")
        clock[0] += 61
        assert limiter.allow("ip")

    def test_expired_keys_are_dropped(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("jcms.auth.rate_limit.time.monotonic", lambda: clock[0])
        limiter = MemoryRateLimiter(window_seconds=60, max_attempts=1)
        assert limiter.allow("10.0.0.1")
        assert not limiter.allow("10.0.0.1")

        clock[0] += 61
        assert limiter.allow("10.0.0.2")
        assert "10.0.0.1" not in limiter._attempts
        assert list(limiter._attempts) == ["10.0.0.2"]
