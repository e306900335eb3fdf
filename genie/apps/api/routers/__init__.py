"""Exports for API routers."""

from . import auth, statistics, system  # noqa: F401

__all__ = ["auth", "statistics", "system"]
