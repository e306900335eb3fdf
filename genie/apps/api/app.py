"""FastAPI application wiring for the Interview Genie API."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from genie.apps.api.routers import auth, statistics, system
from genie.apps.api.security import limiter
from genie.apps.api.state import attach_cache_state, build_cache_integration
from genie.core.error_handler import setup_global_exception_handler
from genie.core.logging import configure_logging
from genie.core.settings import get_settings
from genie.core.store import Clock, KeyValueStore
from genie.services.directory import UserDirectory
from genie.services.mailer import Mailer

configure_logging()
request_logger = logging.getLogger("genie.api.requests")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the cache layer on startup; drain refreshes and close the store on shutdown."""
    setup_global_exception_handler()
    logger.info("Starting Interview Genie API...")

    settings = get_settings()
    overrides = getattr(app.state, "cache_overrides", {})
    integration = build_cache_integration(settings, **overrides)
    attach_cache_state(app, integration)

    try:
        ping_ok = await integration.store.ping()
        app.state.cache_status = "ok" if ping_ok else "degraded"
    except Exception as exc:
        # The cache degrades to direct reads; startup must not fail on it.
        logger.error("Cache store unreachable at startup: %s", exc)
        app.state.cache_status = "degraded"

    try:
        yield
    finally:
        logger.info("Shutting down application...")
        await integration.shutdown()
        logger.info("Application shut down complete")


def create_app(
    *,
    directory: Optional[UserDirectory] = None,
    mailer: Optional[Mailer] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = get_settings()
    docs_enabled = settings.environment != "production"

    app = FastAPI(
        title="Interview Genie API",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.cache_overrides = {
        "directory": directory,
        "mailer": mailer,
        "store": store,
        "clock": clock,
    }

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(system.router)
    app.include_router(auth.router)
    app.include_router(statistics.router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = (time.perf_counter() - start) * 1000
            request_logger.exception(
                "HTTP %s %s failed",
                request.method,
                request.url.path,
                extra={"path": request.url.path, "method": request.method, "duration_ms": duration},
            )
            raise
        duration = (time.perf_counter() - start) * 1000
        request_logger.info(
            "HTTP %s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response

    return app


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
