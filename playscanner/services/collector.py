"""
Collection orchestrator.

Drives a provider across the configured city × date matrix and commits
each result to the persistent cache store.  Pairs are processed one at a
time in a fixed order with a delay between provider calls, so a pass is
slow but polite to the upstream.

Usage::

    collector = Collector(store, adapter, cities=["London"], days_ahead=7)
    summary = await collector.collect_all()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime, timedelta, timezone, tzinfo
from uuid import uuid4

from playscanner.errors import CollectionInProgressError, PlayScannerError
from playscanner.models import (
    CollectionItem,
    CollectionRun,
    CollectionSummary,
    SearchParams,
)
from playscanner.services.providers.base import ProviderAdapter
from playscanner.store import PersistentCacheStore
from playscanner.timeouts import bounded_call

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class Collector:
    """Sequential, throttled, single-pass collector for one provider."""

    def __init__(
        self,
        store: PersistentCacheStore,
        adapter: ProviderAdapter,
        *,
        cities: Sequence[str] = ("London",),
        days_ahead: int = 7,
        request_delay: float = 2.0,
        timeout: float = 45.0,
        ttl: float | None = None,
        tz: tzinfo = timezone.utc,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._cities = list(cities)
        self._days_ahead = days_ahead
        self._request_delay = request_delay
        self._timeout = timeout
        self._ttl = ttl
        self._tz = tz
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def dates(self, today: date | None = None) -> list[date]:
        """Today plus the following ``days_ahead - 1`` days, in local time."""
        start = today or datetime.now(self._tz).date()
        return [start + timedelta(days=offset) for offset in range(self._days_ahead)]

    def matrix(self, today: date | None = None) -> list[tuple[str, date]]:
        """City-major (city, date) pairs in processing order."""
        days = self.dates(today)
        return [(city, day) for city in self._cities for day in days]

    async def collect_all(self, today: date | None = None) -> CollectionSummary:
        """
        Run one pass over the matrix.

        Raises CollectionInProgressError if a pass is already running in
        this process.
        """
        if self._lock.locked():
            raise CollectionInProgressError("A collection pass is already running")

        async with self._lock:
            return await self._run(today)

    async def _run(self, today: date | None) -> CollectionSummary:
        collection_id = f"collection_{uuid4().hex[:12]}"
        pairs = self.matrix(today)
        started = time.perf_counter()
        logger.info(
            "Collection %s started: %d cities × %d days via %s",
            collection_id, len(self._cities), self._days_ahead, self._adapter.name,
        )

        results: list[CollectionItem] = []
        venue_ids: set[str] = set()

        for index, (city, day) in enumerate(pairs):
            if index > 0 and self._request_delay > 0:
                await self._sleep(self._request_delay)
            item, seen = await self._collect_pair(collection_id, city, day)
            results.append(item)
            venue_ids.update(seen)

        succeeded = sum(1 for r in results if r.status == "success")
        failed = len(results) - succeeded
        if failed == 0:
            status = "success"
        elif succeeded == 0:
            status = "error"
        else:
            status = "partial"

        summary = CollectionSummary(
            collection_id=collection_id,
            status=status,
            results=results,
            total_attempted=len(results),
            succeeded=succeeded,
            errors=failed,
            total_collected=sum(r.slots_collected for r in results if r.status == "success"),
            total_venues=len(venue_ids),
            collection_time=_elapsed_ms(started),
            timestamp=self._store.now(),
        )
        logger.info(
            "Collection %s finished: %d/%d pairs ok, %d slots, %d venues in %dms",
            collection_id, succeeded, len(results), summary.total_collected,
            summary.total_venues, summary.collection_time,
        )
        return summary

    async def _collect_pair(
        self, collection_id: str, city: str, day: date
    ) -> tuple[CollectionItem, set[str]]:
        started = time.perf_counter()
        params = SearchParams(sport=self._adapter.sports[0], location=city, date=day)

        try:
            slots = await bounded_call(
                self._adapter.fetch_availability(params),
                self._timeout,
                label=f"collection {city} {day}",
                provider=self._adapter.name,
            )
            await self._store.upsert(city, day, slots, provider=self._adapter.name, ttl=self._ttl)
            venues = list({s.venue.id: s.venue for s in slots}.values())
            try:
                await self._store.upsert_venues(venues, city)
            except PlayScannerError:
                logger.exception("Venue directory update failed for %s %s", city, day)
        except PlayScannerError as exc:
            logger.warning("Collection failed for %s %s: %s", city, day, exc.message)
            return await self._fail(collection_id, city, day, started, exc.message), set()
        except Exception as exc:
            logger.exception("Unexpected collection failure for %s %s", city, day)
            return await self._fail(collection_id, city, day, started, f"Unexpected error: {exc}"), set()

        item = CollectionItem(
            city=city,
            date=day,
            status="success",
            slots_collected=len(slots),
            venues_processed=len(venues),
            execution_time_ms=_elapsed_ms(started),
        )
        logger.info("Collected %d slots from %d venues for %s %s", len(slots), len(venues), city, day)
        await self._log_run(collection_id, item)
        return item, {v.id for v in venues}

    async def _fail(
        self, collection_id: str, city: str, day: date, started: float, message: str
    ) -> CollectionItem:
        item = CollectionItem(
            city=city,
            date=day,
            status="error",
            execution_time_ms=_elapsed_ms(started),
            error=message,
        )
        await self._log_run(collection_id, item)
        return item

    async def _log_run(self, collection_id: str, item: CollectionItem) -> None:
        run = CollectionRun(
            collection_id=collection_id,
            city=item.city,
            date=item.date,
            status=item.status,
            slots_collected=item.slots_collected,
            venues_processed=item.venues_processed,
            execution_time_ms=item.execution_time_ms,
            provider=self._adapter.name,
            error_message=item.error,
        )
        try:
            await self._store.log_collection(run)
        except PlayScannerError:
            logger.exception("Could not write collection log for %s %s", item.city, item.date)
