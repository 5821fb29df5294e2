"""
Low-level HTTP client for the playtomic.com API.

Handles request construction and error classification.  JSON bodies are
returned undecoded into models so the parsing layer can skip individual
bad records.  Stateless – a single instance is shared across the app
lifetime.  No retries: retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from playscanner.errors import ProviderError, ProviderTimeoutError
from playscanner.services.providers.playtomic.config import (
    AVAILABILITY_URL,
    BASE_URL,
    DEFAULT_HEADERS,
    HTML_HEADERS,
    PROVIDER_NAME,
    SEARCH_PAGE_SIZE,
    SEARCH_RADIUS_METERS,
    SPORT_ID,
    TENANTS_URL,
)

logger = logging.getLogger(__name__)


class PlaytomicClient:
    """Async HTTP client for the Playtomic tenants and availability APIs."""

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            headers=DEFAULT_HEADERS,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET and classify every failure as a ProviderError."""
        try:
            resp = await self._client.get(url, params=params, headers=headers)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                f"Playtomic request timed out: {url}", provider=PROVIDER_NAME
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise ProviderError(
                f"Playtomic returned HTTP {status} for {url}",
                provider=PROVIDER_NAME,
                upstream_status=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Playtomic request failed: {exc}", provider=PROVIDER_NAME
            ) from exc
        return resp

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        resp = await self._get(url, **kwargs)
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(
                f"Playtomic returned invalid JSON for {url}",
                provider=PROVIDER_NAME,
                code="INVALID_PAYLOAD",
            ) from exc

    # ── /api/v1/tenants ───────────────────────────────────────────────

    async def list_tenants(
        self,
        lat: float,
        lng: float,
        *,
        radius: int = SEARCH_RADIUS_METERS,
        size: int = SEARCH_PAGE_SIZE,
    ) -> list[Any]:
        """Raw tenant records around a coordinate."""
        params = {
            "coordinate": f"{lat},{lng}",
            "sport_id": SPORT_ID,
            "radius": str(radius),
            "size": str(size),
        }
        logger.debug("Fetching Playtomic tenants: %s", params)
        data = await self._get_json(TENANTS_URL, params=params)
        if not isinstance(data, list):
            logger.warning("Unexpected tenants payload type: %s", type(data).__name__)
            return []
        return data

    # ── /api/v1/availability ──────────────────────────────────────────

    async def get_availability(self, tenant_id: str, day: date) -> list[Any]:
        """Raw per-resource availability for one tenant on one day."""
        params = {
            "sport_id": SPORT_ID,
            "start_min": f"{day.isoformat()}T00:00:00",
            "start_max": f"{day.isoformat()}T23:59:59",
            "tenant_id": tenant_id,
        }
        data = await self._get_json(
            AVAILABILITY_URL,
            params=params,
            headers={"Referer": f"{BASE_URL}/tenant/{tenant_id}"},
        )
        if not isinstance(data, list):
            logger.warning("Unexpected availability payload for tenant %s", tenant_id)
            return []
        return data

    # ── HTML pages ────────────────────────────────────────────────────

    async def fetch_page(self, path: str, params: dict[str, Any] | None = None) -> str:
        resp = await self._get(path, params=params, headers=HTML_HEADERS)
        return resp.text

    async def ping(self) -> bool:
        resp = await self._get("/", headers=HTML_HEADERS)
        return resp.is_success
