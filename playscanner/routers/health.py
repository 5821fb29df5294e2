"""
Health check endpoint.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from playscanner.dependencies import ServicesDep
from playscanner.errors import InvalidRequestError
from playscanner.models import HealthReport
from playscanner.services.health import COMPONENTS

router = APIRouter(prefix="/api/playscanner", tags=["health"])


@router.get(
    "/health",
    response_model=HealthReport,
    operation_id="getHealth",
    summary="Aggregated health of cache, providers and collection",
    responses={503: {"model": HealthReport}},
)
async def get_health(
    services: ServicesDep,
    detailed: bool = Query(False, description="Include per-component details"),
    component: str | None = Query(None, description="cache | providers | collection"),
) -> JSONResponse:
    if component is not None and component not in COMPONENTS:
        raise InvalidRequestError(f"Unknown component: {component}")

    report = await services.health.report(detailed=detailed, component=component)
    return JSONResponse(
        report.model_dump(mode="json", by_alias=True, exclude_none=True),
        status_code=200 if report.status == "healthy" else 503,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
