"""
Service container.

Constructs the store, provider registry, search engine, collector,
health aggregator and scheduler once per process and hands them to the
HTTP layer through ``app.state``.  Nothing here is a module-level
singleton; tests build their own container around fakes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from playscanner.config import Settings
from playscanner.services.collector import Collector
from playscanner.services.health import HealthAggregator
from playscanner.services.providers.registry import ProviderRegistry
from playscanner.services.scheduler import CollectionScheduler
from playscanner.services.search import SearchEngine
from playscanner.store import PersistentCacheStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: PersistentCacheStore
    registry: ProviderRegistry
    engine: SearchEngine
    collector: Collector
    health: HealthAggregator
    scheduler: CollectionScheduler

    async def start(self) -> None:
        await self.store.open()
        await self.scheduler.start()
        logger.info(
            "PLAYScanner services started (mode=%s, providers=%s)",
            "cached" if self.settings.use_cached_mode else "live",
            ",".join(self.registry.names()) or "none",
        )

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.registry.close()
        await self.store.close()
        logger.info("PLAYScanner services stopped")


def build_services(
    settings: Settings,
    *,
    registry: ProviderRegistry | None = None,
    store: PersistentCacheStore | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Services:
    """Wire every component from *settings*.  Real Playtomic unless a registry is given."""
    tz = ZoneInfo(settings.timezone)

    if registry is None:
        registry = ProviderRegistry()
        registry.register_playtomic(health_timeout=settings.health_timeout_seconds)

    if store is None:
        store = PersistentCacheStore(settings.db_path, default_ttl=settings.cache_ttl_seconds)

    adapter = registry.get(settings.collect_provider)
    if adapter is None:
        raise ValueError(f"Collection provider {settings.collect_provider!r} is not registered")

    engine = SearchEngine(
        store,
        registry,
        use_cached_mode=settings.use_cached_mode,
        search_timeout=settings.search_timeout_seconds,
        health_timeout=settings.health_timeout_seconds,
        health_cache_seconds=settings.health_cache_seconds,
        live_cache_seconds=settings.live_cache_seconds,
        tz=tz,
    )
    collector = Collector(
        store,
        adapter,
        cities=settings.cities,
        days_ahead=settings.days_ahead,
        request_delay=settings.request_delay_seconds,
        timeout=settings.collect_timeout_seconds,
        ttl=settings.cache_ttl_seconds,
        tz=tz,
        sleep=sleep,
    )
    return Services(
        settings=settings,
        store=store,
        registry=registry,
        engine=engine,
        collector=collector,
        health=HealthAggregator(store, engine, settings),
        scheduler=CollectionScheduler(
            collector,
            store,
            interval=settings.collect_interval_seconds,
            retention_days=settings.log_retention_days,
        ),
    )
