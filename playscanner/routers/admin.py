"""
Operational dashboard and admin actions (bearer secret required).
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from playscanner.dependencies import Authorized, ServicesDep
from playscanner.errors import InvalidRequestError
from playscanner.models import ErrorResponse
from playscanner.services.container import Services
from playscanner.services.dashboard import build_dashboard

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/playscanner",
    tags=["admin"],
    dependencies=[Authorized],
    responses={401: {"model": ErrorResponse}},
)


class AdminActionRequest(BaseModel):
    action: str
    params: dict[str, Any] = Field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _cleanup(services: Services) -> dict[str, Any]:
    removed = await services.store.cleanup()
    pruned = await services.store.prune_history(services.settings.log_retention_days)
    return {"cleanedEntries": removed, "prunedHistory": pruned}


@router.get(
    "/admin",
    operation_id="getAdminDashboard",
    summary="Cache, collection and search figures for operators",
)
async def get_dashboard(
    services: ServicesDep,
    timeframe: int = Query(24, ge=1, le=168, description="Window in hours"),
    action: str | None = Query(None, description="Optional: cleanup"),
) -> dict[str, Any]:
    if action not in (None, "cleanup"):
        raise InvalidRequestError(f"Unknown action: {action}", code="UNKNOWN_ACTION")

    data = await build_dashboard(services.store, services.engine, timeframe_hours=timeframe)
    data["overview"]["venuesTracked"] = len(await services.store.list_venues())
    data["healthHistory"] = [
        s.model_dump(mode="json", by_alias=True)
        for s in await services.store.get_recent_health_snapshots(10)
    ]

    if action == "cleanup":
        result = await _cleanup(services)
        data["action"] = {
            "type": "cleanup",
            "result": f"Cleaned {result['cleanedEntries']} expired entries",
            **result,
        }
    return data


@router.post(
    "/admin",
    operation_id="runAdminAction",
    summary="Run an admin action: cleanup_cache, health_check, get_stats, force_collection",
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def run_action(body: AdminActionRequest, services: ServicesDep) -> dict[str, Any]:
    result: dict[str, Any] = {"action": body.action, "timestamp": _now()}
    logger.info("Admin action requested: %s", body.action)

    match body.action:
        case "cleanup_cache":
            cleaned = await _cleanup(services)
            result.update(cleaned)
            result["message"] = f"Cleaned {cleaned['cleanedEntries']} expired cache entries"

        case "health_check":
            report = await services.health.record_snapshot()
            result["health"] = report.model_dump(mode="json", by_alias=True, exclude_none=True)
            result["message"] = (
                "System healthy" if report.status == "healthy" else "System issues detected"
            )

        case "get_stats":
            stats = await services.store.get_cache_stats()
            result["stats"] = stats.model_dump(mode="json", by_alias=True)
            result["searchMetrics"] = services.engine.metrics.to_dict()
            result["message"] = "Cache statistics retrieved"

        case "force_collection":
            summary = await services.collector.collect_all()
            result["collection"] = summary.model_dump(mode="json", by_alias=True)
            result["message"] = (
                f"Collection {summary.status}: {summary.succeeded}/{summary.total_attempted} "
                f"pairs, {summary.total_collected} slots"
            )

        case _:
            raise InvalidRequestError(f"Unknown action: {body.action}", code="UNKNOWN_ACTION")

    return result
