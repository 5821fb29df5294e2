"""
Admin dashboard figures.

Pure helpers over collection-log records, plus :func:`build_dashboard`
which assembles the ``GET /admin`` payload.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from playscanner.models import CollectionRun
from playscanner.services.search import SearchEngine
from playscanner.stats import safe_mean
from playscanner.store import PersistentCacheStore

TREND_BUCKETS = 6
TREND_BUCKET_HOURS = 4


def data_freshness(last_collection: datetime | None, now: datetime) -> str:
    if last_collection is None:
        return "unknown"
    minutes = (now - last_collection).total_seconds() / 60
    if minutes < 30:
        return "fresh"
    if minutes < 120:
        return "recent"
    if minutes < 360:
        return "stale"
    return "very stale"


def _within(runs: Sequence[CollectionRun], start: datetime, end: datetime) -> list[CollectionRun]:
    return [r for r in runs if r.created_at is not None and start <= r.created_at < end]


def collection_summary(
    runs: Sequence[CollectionRun], now: datetime, *, hours: float = 24
) -> dict[str, Any]:
    window = _within(runs, now - timedelta(hours=hours), now + timedelta(microseconds=1))
    successful = [r for r in window if r.status == "success"]
    return {
        "total": len(window),
        "successful": len(successful),
        "failed": len(window) - len(successful),
        "totalSlots": sum(r.slots_collected for r in successful),
        "avgExecutionTime": round(safe_mean(r.execution_time_ms for r in successful)),
    }


def collection_trends(
    runs: Sequence[CollectionRun],
    now: datetime,
    *,
    buckets: int = TREND_BUCKETS,
    bucket_hours: int = TREND_BUCKET_HOURS,
) -> list[dict[str, Any]]:
    """Fixed-width buckets going back from *now*, oldest first."""
    periods = []
    for i in range(buckets):
        end = now - timedelta(hours=i * bucket_hours)
        start = end - timedelta(hours=bucket_hours)
        # the newest bucket includes "now" itself
        in_period = _within(runs, start, end + timedelta(microseconds=1) if i == 0 else end)
        periods.append({
            "period": f"{i * bucket_hours}-{(i + 1) * bucket_hours}h ago",
            "collections": len(in_period),
            "successful": sum(1 for r in in_period if r.status == "success"),
            "avgSlots": round(safe_mean(r.slots_collected for r in in_period)),
        })
    periods.reverse()
    return periods


async def build_dashboard(
    store: PersistentCacheStore,
    engine: SearchEngine,
    *,
    timeframe_hours: int = 24,
) -> dict[str, Any]:
    now = store.now()
    stats = await store.get_cache_stats()
    healthy = await store.health_check()
    success_rate = await store.get_collection_success_rate(timeframe_hours)
    recent = await store.get_recent_collections(20)
    history = await store.get_collections_since(max(timeframe_hours, TREND_BUCKETS * TREND_BUCKET_HOURS))
    metrics = engine.metrics

    return {
        "timestamp": now.isoformat(),
        "timeframe": f"{timeframe_hours}h",
        "overview": {
            "cacheHealth": "healthy" if healthy else "unhealthy",
            "activeEntries": stats.active_entries,
            "totalSlots": stats.total_slots,
            "citiesCovered": stats.cities_covered,
            "successRate": f"{success_rate:.1f}%",
            "lastCollection": recent[0].created_at.isoformat() if recent and recent[0].created_at else None,
        },
        "cache": {
            "stats": stats.model_dump(mode="json", by_alias=True),
            "performance": {
                "hitRate": f"{metrics.hit_rate:.1f}%",
                "searches": metrics.to_dict(),
                "dataFreshness": data_freshness(stats.last_collection, now),
            },
        },
        "collections": {
            "recent": [r.model_dump(mode="json", by_alias=True) for r in recent[:10]],
            "summary": collection_summary(history, now, hours=timeframe_hours),
            "trends": collection_trends(history, now),
        },
    }
