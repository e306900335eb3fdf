"""Cache key prefixes and standard TTLs.

Keys never include passwords or OTP codes. Emails appear only in
rate-limit and user-by-email keys, which expire.
"""

from __future__ import annotations


class CacheKeys:
    """Standard key prefixes and builders."""

    USER = "user:"
    SESSION = "session:"
    RATE_LIMIT = "rate-limit:"
    HEALTH = "health:"
    METRICS = "metrics:"
    STATS = "stats:"

    @staticmethod
    def session(token: str) -> str:
        return f"{CacheKeys.SESSION}{token}"

    @staticmethod
    def user(user_id: str) -> str:
        return f"{CacheKeys.USER}{user_id}"

    @staticmethod
    def user_by_id(user_id: str) -> str:
        return f"{CacheKeys.USER}id:{user_id}"

    @staticmethod
    def user_by_email(email: str) -> str:
        return f"{CacheKeys.USER}email:{email.strip().lower()}"

    @staticmethod
    def rate_limit(key: str) -> str:
        return f"{CacheKeys.RATE_LIMIT}{key}"

    @staticmethod
    def stats(user_id: str) -> str:
        return f"{CacheKeys.STATS}{user_id}"


class TTL:
    """Standard TTL values in seconds."""

    SHORT = 60
    MEDIUM = 300
    LONG = 3600
    STALE = 7200  # how long stale data is kept for revalidation


__all__ = ["CacheKeys", "TTL"]
