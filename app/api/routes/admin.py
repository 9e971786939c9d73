from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import verify_api_key
from app.core.rate_limit import get_rate_limiters
from app.schemas.admin import RateLimitStatsResponse

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/rate-limits",
    response_model=RateLimitStatsResponse,
    dependencies=[Depends(verify_api_key)],
)
def rate_limit_stats() -> RateLimitStatsResponse:
    """Report counters for every named limiter.

    Only aggregate numbers are returned; tracked client keys never leave the
    process.
    """

    return RateLimitStatsResponse(limiters=get_rate_limiters().stats())
