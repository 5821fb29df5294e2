"""
Provider diagnostics.

GET /test lists the registered providers; POST /test runs one live
fetch through a single provider, isolated from the search path.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from playscanner.dependencies import Authorized, ServicesDep
from playscanner.models import ErrorResponse, ProviderTestResult
from playscanner.rate_limit import COLLECT, limiter

router = APIRouter(prefix="/api/playscanner", tags=["test"])


class ProviderTestRequest(BaseModel):
    provider: str
    sport: str = "padel"
    location: str = "London"
    date: str | None = None
    startTime: str | None = None
    endTime: str | None = None


@router.get(
    "/test",
    operation_id="listTestProviders",
    summary="Providers available for diagnostics",
)
async def list_providers(services: ServicesDep) -> dict[str, Any]:
    return {
        "providers": [p.model_dump(by_alias=True) for p in services.engine.get_available_providers()],
        "message": "POST with a provider name to run a diagnostic fetch",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post(
    "/test",
    response_model=ProviderTestResult,
    operation_id="testProvider",
    summary="Run one diagnostic fetch through a single provider",
    dependencies=[Authorized],
    responses={401: {"model": ErrorResponse}},
)
@limiter.limit(COLLECT)
async def test_provider(
    request: Request, body: ProviderTestRequest, services: ServicesDep
) -> ProviderTestResult:
    engine = services.engine
    params = engine.validate({
        "sport": body.sport,
        "location": body.location,
        "date": body.date or engine.today().isoformat(),
        "startTime": body.startTime,
        "endTime": body.endTime,
    })
    return await engine.test_provider(body.provider, params)
