"""
Health aggregator.

Derives operational health from the cache store, the collection log and
provider liveness.  Read-only: it never touches cached slot data.

Each component check catches its own failures and reports ``unhealthy``
with the error message, so one broken dependency never aborts the whole
report.  The aggregate is the worst component status.
"""

from __future__ import annotations

import logging
import platform
import time
from datetime import timedelta
from typing import Literal

from playscanner.config import VERSION, Settings
from playscanner.models import ComponentHealth, HealthReport, HealthStatus
from playscanner.services.search import SearchEngine
from playscanner.store import PersistentCacheStore

logger = logging.getLogger(__name__)

Component = Literal["cache", "providers", "collection"]
COMPONENTS: tuple[str, ...] = ("cache", "providers", "collection")

_SEVERITY: dict[str, int] = {"healthy": 0, "degraded": 1, "unhealthy": 2}

# Collection success-rate thresholds (percent)
HEALTHY_RATE = 80.0
DEGRADED_RATE = 50.0


def worst(*statuses: HealthStatus) -> HealthStatus:
    """Worst wins: healthy < degraded < unhealthy."""
    if not statuses:
        return "healthy"
    return max(statuses, key=lambda s: _SEVERITY[s])


class HealthAggregator:
    """Builds health reports for ``/health`` and the admin surface."""

    def __init__(
        self,
        store: PersistentCacheStore,
        engine: SearchEngine,
        settings: Settings,
    ) -> None:
        self._store = store
        self._engine = engine
        self._settings = settings
        self._started = time.monotonic()

    # ── Components ────────────────────────────────────────────────────

    async def check_cache(self, detailed: bool = False) -> ComponentHealth:
        try:
            if not await self._store.health_check():
                return ComponentHealth(
                    status="unhealthy",
                    error="Cache store unreachable or schema missing",
                    metrics={"connection": False},
                )
            stats = await self._store.get_cache_stats()
        except Exception as exc:
            logger.exception("Cache health check failed")
            return ComponentHealth(status="unhealthy", error=str(exc))

        health = ComponentHealth(
            status="healthy",
            metrics={
                "connection": True,
                "activeEntries": stats.active_entries,
                "totalSlots": stats.total_slots,
                "citiesCovered": stats.cities_covered,
            },
        )
        if stats.active_entries == 0:
            health.status = "degraded"
            health.warning = "No active cache entries found"
        if detailed:
            health.details = stats.model_dump(mode="json", by_alias=True)
        return health

    async def check_providers(self, detailed: bool = False) -> ComponentHealth:
        try:
            available = self._engine.get_available_providers()
            if not available:
                return ComponentHealth(status="unhealthy", error="No providers available")
            reachable = await self._engine.get_provider_health()
        except Exception as exc:
            logger.exception("Provider health check failed")
            return ComponentHealth(status="unhealthy", error=str(exc))

        down = sorted(name for name, ok in reachable.items() if not ok)
        health = ComponentHealth(
            status="healthy",
            metrics={
                "availableProviders": len(available),
                "providers": [p.name for p in available],
            },
        )
        if down and len(down) == len(reachable):
            health.status = "unhealthy"
            health.error = "All providers unreachable"
        elif down:
            health.status = "degraded"
            health.warning = f"{len(down)} providers unhealthy: {', '.join(down)}"
        if detailed:
            health.details = {"reachable": reachable}
        return health

    async def check_collection(self, detailed: bool = False) -> ComponentHealth:
        window = self._settings.success_rate_window_hours
        try:
            total = await self._store.count_collections_since(window)
            rate = await self._store.get_collection_success_rate(window)
            last_success = await self._store.get_last_successful_collection()
            recent = await self._store.get_recent_collections(5) if detailed else []
        except Exception as exc:
            logger.exception("Collection health check failed")
            return ComponentHealth(status="unhealthy", error=str(exc))

        health = ComponentHealth(
            status="healthy",
            metrics={
                "successRate": f"{rate:.1f}%",
                "collectionsInWindow": total,
                "windowHours": window,
                "lastSuccessfulCollection": last_success.isoformat() if last_success else None,
            },
        )

        if total == 0:
            health.status = "degraded"
            health.warning = "No collection history found"
        elif rate < DEGRADED_RATE:
            health.status = "unhealthy"
            health.error = f"Low success rate: {rate:.1f}%"
        elif rate < HEALTHY_RATE:
            health.status = "degraded"
            health.warning = f"Moderate success rate: {rate:.1f}%"

        # Freshness can only make things worse
        threshold = timedelta(hours=self._settings.freshness_hours)
        if last_success is None or self._store.now() - last_success > threshold:
            health.status = worst(health.status, "degraded")
            health.warning = health.warning or (
                f"No successful collection in the last {self._settings.freshness_hours:g}h"
            )

        if detailed:
            health.details = {
                "recentCollections": [r.model_dump(mode="json", by_alias=True) for r in recent],
            }
        return health

    # ── Aggregate ─────────────────────────────────────────────────────

    def environment(self) -> dict:
        return {
            "environment": self._settings.environment,
            "pythonVersion": platform.python_version(),
            "platform": platform.system().lower(),
            "configuration": {
                "cacheMode": self._settings.use_cached_mode,
                "debugMode": self._settings.debug,
                "missingConfiguration": self._settings.missing_configuration() or None,
            },
        }

    async def report(
        self, *, detailed: bool = False, component: Component | None = None
    ) -> HealthReport:
        started = time.perf_counter()
        wanted = (component,) if component else COMPONENTS
        checks = {
            "cache": self.check_cache,
            "providers": self.check_providers,
            "collection": self.check_collection,
        }
        results = {name: await checks[name](detailed) for name in wanted}

        report = HealthReport(
            status=worst(*(r.status for r in results.values())),
            timestamp=self._store.now(),
            uptime=round(time.monotonic() - self._started, 1),
            version=VERSION,
            mode="cached" if self._settings.use_cached_mode else "live",
            environment=self.environment() if detailed else None,
            **results,
        )
        report.response_time = int((time.perf_counter() - started) * 1000)

        if report.status != "healthy":
            logger.warning(
                "Health check detected issues: status=%s %s",
                report.status,
                {name: r.status for name, r in results.items()},
            )
        return report

    async def record_snapshot(self) -> HealthReport:
        """Run a full report and append one snapshot per component."""
        report = await self.report(detailed=True)
        for name in COMPONENTS:
            health: ComponentHealth = getattr(report, name)
            try:
                await self._store.record_health_snapshot(
                    name, health.status, health.model_dump(mode="json", by_alias=True)
                )
            except Exception:
                logger.exception("Could not record %s health snapshot", name)
        return report
