"""Health and Prometheus endpoints."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from genie.core.settings import get_settings
from genie.services.health import check_features, check_store_connection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/api/health")
async def health_check(request: Request) -> JSONResponse:
    start = time.perf_counter()
    cache = request.app.state.cache

    connection, features = await asyncio.gather(
        check_store_connection(cache),
        check_features(cache, request.app.state.rate_limiter),
    )
    healthy = connection.ok and features.ok
    if not healthy:
        logger.warning("Health check degraded", extra={"store_error": connection.error or features.error})

    store_status = connection.to_dict()
    store_status.update(
        {
            "status": "healthy" if healthy else "unhealthy",
            "backend": cache.backend,
            "features": features.results,
        }
    )
    return JSONResponse(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "latency": int((time.perf_counter() - start) * 1000),
            "services": {"redis": store_status},
        },
        status_code=200 if healthy else 503,
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=404)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
