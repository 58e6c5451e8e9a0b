"""本地口令与会话令牌工具。

口令存储格式为 `salt:digest`，digest 为 `password + salt` 的 SHA-256 十六进制摘要，
与存量管理员数据保持兼容；盐值改由 `secrets` 生成。
会话令牌只下发原始值，落库仅保存其单向摘要。
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from market_api.core.config import get_settings

# 会话令牌随机字节数（十六进制后为 64 个字符）。
SESSION_TOKEN_BYTES = 32
# 口令盐随机字节数。
PASSWORD_SALT_BYTES = 16


def utc_now() -> datetime:
    """认证核心统一时钟。"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """补齐时区信息（部分驱动读回的时间不带时区）。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _password_digest(password: str, salt: str) -> str:
    return hashlib.sha256(f"{password}{salt}".encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    """生成 `salt:digest` 格式的口令哈希。"""
    salt = secrets.token_hex(PASSWORD_SALT_BYTES)
    return f"{salt}:{_password_digest(password, salt)}"


def verify_password(password: str, password_hash: str | None) -> bool:
    """校验口令是否匹配；存储值格式异常或口令无法编码时返回 False，不抛异常。"""
    if not isinstance(password, str) or not isinstance(password_hash, str):
        return False
    salt, separator, expected_digest = password_hash.partition(":")
    if not separator or not salt or not expected_digest:
        return False
    try:
        actual_digest = _password_digest(password, salt)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(actual_digest, expected_digest)


def generate_session_token() -> str:
    """生成不透明会话令牌，这是唯一下发给客户端的值。"""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def hash_session_token(token: str) -> str:
    """计算会话令牌摘要，结果确定，可直接作为查询键。"""
    secret = get_settings().auth_token_hash_secret
    if secret:
        return hmac.new(secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def session_duration() -> timedelta:
    """返回配置的会话滑动窗口时长。"""
    return timedelta(seconds=get_settings().auth_session_ttl_seconds)


def compute_session_expiry(duration: timedelta | None = None) -> datetime:
    """计算从当前时刻起的会话过期时间。"""
    return utc_now() + (duration if duration is not None else session_duration())
