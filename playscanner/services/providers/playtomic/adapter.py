"""
Playtomic adapter – implements the ProviderAdapter protocol.

Translates playtomic.com responses into our domain models
(playscanner.models).  This is the only layer that knows about both the
external API shape and our internal schema.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from playscanner.errors import ProviderError
from playscanner.filters import apply_filters, sort_slots
from playscanner.models import CourtSlot, SearchParams
from playscanner.services.providers.playtomic.api_models import TenantPayload
from playscanner.services.providers.playtomic.client import PlaytomicClient
from playscanner.services.providers.playtomic.config import (
    CITIES,
    DEFAULT_CITY,
    PROVIDER_NAME,
    REGIONS,
    SEARCH_PAGE_PATH,
    SPORTS,
    VENUE_BATCH_PAUSE_SECONDS,
    VENUE_BATCH_SIZE,
    City,
)
from playscanner.services.providers.playtomic.parsing import (
    parse_availability,
    parse_json_ld_tenants,
    parse_tenants,
    tenant_to_venue,
)
from playscanner.timeouts import bounded_call

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_city(location: str) -> City:
    """Known city by name; unknown locations fall back to London."""
    return CITIES.get(location.strip().lower(), CITIES[DEFAULT_CITY])


class PlaytomicAdapter:
    """
    Implements the ProviderAdapter protocol for Playtomic padel venues.

    Usage::

        client = PlaytomicClient()
        adapter = PlaytomicAdapter(client)
        slots = await adapter.fetch_availability(params)
    """

    name = PROVIDER_NAME
    sports = SPORTS
    regions = REGIONS

    def __init__(
        self,
        client: PlaytomicClient,
        *,
        health_timeout: float = 10.0,
        batch_size: int = VENUE_BATCH_SIZE,
        batch_pause: float = VENUE_BATCH_PAUSE_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._health_timeout = health_timeout
        self._batch_size = max(1, batch_size)
        self._batch_pause = batch_pause
        self._clock = clock
        self._sleep = sleep

    async def close(self) -> None:
        await self._client.close()

    # ── Venue discovery ───────────────────────────────────────────────

    async def discover_tenants(self, location: str) -> list[TenantPayload]:
        """
        Tenants API first; the public search page's JSON-LD when the API
        errors or returns nothing.  Raises only if both sources fail.
        """
        city = resolve_city(location)
        api_error: ProviderError | None = None
        try:
            raw = await self._client.list_tenants(city.lat, city.lng)
            tenants = parse_tenants(raw, location)
            if tenants:
                return tenants
            logger.info("Tenants API returned no venues for %s, trying web fallback", location)
        except ProviderError as exc:
            logger.warning("Tenants API failed for %s: %s", location, exc.message)
            api_error = exc

        try:
            html = await self._client.fetch_page(
                SEARCH_PAGE_PATH, params={"q": location, "sport": "padel"}
            )
        except ProviderError as exc:
            if api_error is not None:
                raise api_error from exc
            logger.warning("Web fallback failed for %s: %s", location, exc.message)
            return []
        return parse_json_ld_tenants(html, location)

    # ── Availability ──────────────────────────────────────────────────

    async def fetch_availability(self, params: SearchParams) -> list[CourtSlot]:
        if params.sport not in self.sports:
            return []

        city = resolve_city(params.location)
        tz = ZoneInfo(city.timezone)
        tenants = await self.discover_tenants(params.location)
        now = self._clock()

        slots: list[CourtSlot] = []
        failures = 0
        for start in range(0, len(tenants), self._batch_size):
            if start:
                await self._sleep(self._batch_pause)
            batch = tenants[start:start + self._batch_size]
            outcomes = await asyncio.gather(
                *(self._venue_slots(t, params, tz, now) for t in batch),
                return_exceptions=True,
            )
            for tenant, outcome in zip(batch, outcomes):
                if isinstance(outcome, ProviderError):
                    failures += 1
                    logger.warning(
                        "Skipping venue %s (%s): %s",
                        tenant.tenant_id, tenant.tenant_name, outcome.message,
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    slots.extend(outcome)

        if tenants and failures == len(tenants):
            raise ProviderError(
                f"All {failures} Playtomic venues failed for {params.location} on {params.date}",
                provider=self.name,
            )

        logger.info(
            "Playtomic: %d slots from %d/%d venues for %s %s",
            len(slots), len(tenants) - failures, len(tenants), params.location, params.date,
        )
        return sort_slots(apply_filters(slots, params, tz))

    async def _venue_slots(
        self, tenant: TenantPayload, params: SearchParams, tz: ZoneInfo, now: datetime
    ) -> list[CourtSlot]:
        raw = await self._client.get_availability(tenant.tenant_id, params.date)
        return parse_availability(
            raw, tenant=tenant, venue=tenant_to_venue(tenant), day=params.date, tz=tz, now=now
        )

    # ── Liveness ──────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        try:
            return await bounded_call(
                self._client.ping(),
                self._health_timeout,
                label="playtomic health check",
                provider=self.name,
            )
        except Exception as exc:
            logger.warning("Playtomic health check failed: %s", exc)
            return False
