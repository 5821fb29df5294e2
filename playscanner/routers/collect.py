"""
Collection trigger.

POST /collect runs one collection pass (bearer secret required);
GET /collect reports readiness and the current cache contents.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

from playscanner.dependencies import Authorized, ServicesDep
from playscanner.models import CollectionSummary, ErrorResponse
from playscanner.rate_limit import COLLECT, limiter

router = APIRouter(prefix="/api/playscanner", tags=["collect"])


@router.post(
    "/collect",
    response_model=CollectionSummary,
    operation_id="runCollection",
    summary="Run one collection pass over the configured cities and dates",
    dependencies=[Authorized],
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(COLLECT)
async def run_collection(request: Request, services: ServicesDep) -> CollectionSummary:
    """
    Sequential and throttled; one failing (city, date) pair is logged
    and skipped.  A pass already in progress answers 409.
    """
    return await services.collector.collect_all()


@router.get(
    "/collect",
    operation_id="getCollectionStatus",
    summary="Collection readiness and current cache contents",
)
async def collection_status(services: ServicesDep) -> dict[str, Any]:
    stats = await services.store.get_cache_stats()
    settings = services.settings
    return {
        "status": "running" if services.collector.is_running else "ready",
        "message": "Background collection service ready",
        "instructions": {
            "collect": "POST with Authorization: Bearer <secret> to start collection",
            "secret": "Set PLAYSCANNER_COLLECT_SECRET environment variable",
        },
        "configuration": {
            "provider": settings.collect_provider,
            "cities": list(settings.cities),
            "daysAhead": settings.days_ahead,
            "schedulerEnabled": services.scheduler.enabled,
        },
        "currentCache": stats.model_dump(mode="json", by_alias=True),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
