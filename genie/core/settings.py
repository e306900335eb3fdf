from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]

FAIL_MODES = {"open", "closed"}


@dataclass(frozen=True)
class Settings:
    environment: str  # development, production, staging, test
    redis_url: str
    cache_default_ttl: int
    cache_stale_seconds: int
    cache_refresh_max_inflight: int
    auth_cache_ttl: int
    session_ttl_seconds: int
    rate_limit_enabled: bool
    rate_limit_redis_url: str
    rate_limit_fail_mode: str
    trust_proxy_headers: bool
    metrics_enabled: bool
    log_level: str
    log_json: bool
    log_file: str


def load_env(path: Optional[Path] = None) -> None:
    """Load ``KEY=value`` pairs from ``.env`` and ``.env.local`` into os.environ.

    Shell variables always win. ``.env.local`` may override ``.env``.
    """

    shell_keys = set(os.environ.keys())
    env_path = path or PROJECT_ROOT / ".env"
    if env_path.exists():
        _load_env_file(env_path, protected=set(os.environ.keys()))
    if path is None:
        local_path = env_path.parent / ".env.local"
        if local_path.exists():
            _load_env_file(local_path, protected=shell_keys)


def _load_env_file(env_path: Path, *, protected: set[str]) -> None:
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key or key in protected:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        os.environ[key] = value


def _get_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


load_env()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "development").strip().lower()
    if environment not in {"development", "production", "staging", "test"}:
        environment = "development"

    redis_url = os.getenv("REDIS_URL", "").strip()
    rate_limit_redis_url = os.getenv("RATE_LIMIT_REDIS_URL", redis_url).strip()

    fail_mode = os.getenv("RATE_LIMIT_FAIL_MODE", "closed").strip().lower()
    if fail_mode not in FAIL_MODES:
        fail_mode = "closed"

    cache_default_ttl = _get_int("CACHE_DEFAULT_TTL", 300, minimum=1)
    cache_stale_seconds = _get_int("CACHE_STALE_SECONDS", 7200, minimum=0)
    cache_refresh_max_inflight = _get_int("CACHE_REFRESH_MAX_INFLIGHT", 10, minimum=1)
    auth_cache_ttl = _get_int("AUTH_CACHE_TTL", 300, minimum=1)
    # Sessions last 30 days; the cached copy never outlives that.
    session_ttl_seconds = _get_int("SESSION_TTL_SECONDS", 30 * 24 * 3600, minimum=60)

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    log_json = _get_bool("LOG_JSON", default=False)
    log_file = os.getenv("LOG_FILE", "").strip()

    metrics_raw = os.getenv("METRICS_ENABLED")
    if metrics_raw is None:
        metrics_enabled = environment != "production"
    else:
        metrics_enabled = metrics_raw.strip().lower() in {"1", "true", "yes", "on"}

    return Settings(
        environment=environment,
        redis_url=redis_url,
        cache_default_ttl=cache_default_ttl,
        cache_stale_seconds=cache_stale_seconds,
        cache_refresh_max_inflight=cache_refresh_max_inflight,
        auth_cache_ttl=auth_cache_ttl,
        session_ttl_seconds=session_ttl_seconds,
        rate_limit_enabled=_get_bool("RATE_LIMIT_ENABLED", default=environment != "test"),
        rate_limit_redis_url=rate_limit_redis_url,
        rate_limit_fail_mode=fail_mode,
        trust_proxy_headers=_get_bool("TRUST_PROXY_HEADERS", default=False),
        metrics_enabled=metrics_enabled,
        log_level=log_level,
        log_json=log_json,
        log_file=log_file,
    )


__all__ = ["Settings", "get_settings", "load_env"]
