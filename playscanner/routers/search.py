"""
Search endpoints.

POST /search answers an availability query; GET /search is a
diagnostic snapshot (provider liveness, cache stats, providers).
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

from playscanner.config import VERSION
from playscanner.dependencies import ServicesDep
from playscanner.errors import SearchValidationError
from playscanner.models import SearchRequest
from playscanner.rate_limit import SEARCH, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/playscanner", tags=["search"])


async def _read_body(request: Request) -> SearchRequest:
    try:
        body = await request.json()
    except ValueError:
        raise SearchValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise SearchValidationError("Request body must be a JSON object")
    try:
        return SearchRequest.model_validate(body)
    except ValueError:
        raise SearchValidationError("cached must be true or false") from None


@router.post(
    "/search",
    operation_id="searchAvailability",
    summary="Search court availability (cached or live)",
)
@limiter.limit(SEARCH)
async def search(request: Request, services: ServicesDep) -> dict[str, Any]:
    """
    Validate the query, then answer it from the cache or the providers.

    An unsupported sport yields an empty 200 with an explanatory message,
    not an error.
    """
    body = await _read_body(request)
    engine = services.engine
    params = engine.validate(body)
    result = await engine.search(params, cached=body.cached)

    payload = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    if services.settings.debug:
        payload["debug"] = {
            "searchMode": "cached" if engine.resolve_mode(body.cached) else "live",
            "searchParams": params.model_dump(mode="json", by_alias=True, exclude_none=True),
            "providers": [p.model_dump(by_alias=True) for p in engine.get_available_providers()],
            "metrics": engine.metrics.to_dict(),
        }
    return payload


@router.get(
    "/search",
    operation_id="getSearchStatus",
    summary="Provider health, cache stats and available providers",
)
async def search_status(services: ServicesDep) -> dict[str, Any]:
    engine = services.engine
    stats = await services.store.get_cache_stats()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "providers": await engine.get_provider_health(),
        "cache": stats.model_dump(mode="json", by_alias=True),
        "availableProviders": [p.model_dump(by_alias=True) for p in engine.get_available_providers()],
        "mode": "cached" if engine.use_cached_mode else "live",
        "version": VERSION,
    }
