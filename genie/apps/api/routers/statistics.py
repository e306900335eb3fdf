from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from genie.apps.api.security import require_session
from genie.core.rate_limit import FailMode
from genie.domain.users import SessionRecord
from genie.services.statistics import get_dashboard_stats

router = APIRouter(prefix="/api", tags=["dashboard"])

STATS_MAX_REQUESTS = 60
STATS_WINDOW_SECONDS = 60


@router.get("/statistics")
async def statistics(request: Request, session: SessionRecord = Depends(require_session)):
    user_id = session.user.id
    # Dashboard reads are not security sensitive: let them through if the store is down.
    decision = await request.app.state.rate_limiter.hit(
        f"stats:{user_id}",
        STATS_MAX_REQUESTS,
        STATS_WINDOW_SECONDS,
        fail_mode=FailMode.OPEN,
    )
    if not decision.allowed:
        return JSONResponse(
            {"error": "Too many requests. Please try again later."},
            status_code=429,
            headers={"Retry-After": str(decision.retry_after)},
        )
    return await get_dashboard_stats(request.app.state.cache, request.app.state.directory, user_id)
