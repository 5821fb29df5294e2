"""Tests for admin dashboard figures."""

from datetime import datetime, timedelta, timezone

from playscanner.services.dashboard import (
    build_dashboard,
    collection_summary,
    collection_trends,
    data_freshness,
)
from playscanner.services.providers.registry import ProviderRegistry
from playscanner.services.search import SearchEngine
from tests.mocks.models import DAY, default_slots, make_run

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestFreshness:
    def test_labels(self):
        assert data_freshness(None, NOW) == "unknown"
        assert data_freshness(NOW - timedelta(minutes=10), NOW) == "fresh"
        assert data_freshness(NOW - timedelta(minutes=90), NOW) == "recent"
        assert data_freshness(NOW - timedelta(hours=3), NOW) == "stale"
        assert data_freshness(NOW - timedelta(hours=7), NOW) == "very stale"


class TestSummary:
    def test_empty_window_has_zero_average(self):
        summary = collection_summary([], NOW)
        assert summary == {
            "total": 0,
            "successful": 0,
            "failed": 0,
            "totalSlots": 0,
            "avgExecutionTime": 0,
        }

    def test_counts_only_runs_in_window(self):
        runs = [
            make_run("success", created_at=NOW - timedelta(hours=1), slots=10, execution_time_ms=100),
            make_run("success", created_at=NOW - timedelta(hours=2), slots=20, execution_time_ms=300),
            make_run("error", created_at=NOW - timedelta(hours=3)),
            make_run("success", created_at=NOW - timedelta(hours=30)),
        ]
        summary = collection_summary(runs, NOW, hours=24)
        assert summary["total"] == 3
        assert summary["successful"] == 2
        assert summary["failed"] == 1
        assert summary["totalSlots"] == 30
        assert summary["avgExecutionTime"] == 200


class TestTrends:
    def test_six_buckets_oldest_first(self):
        runs = [
            make_run("success", created_at=NOW, slots=10),
            make_run("error", created_at=NOW - timedelta(hours=1)),
            make_run("success", created_at=NOW - timedelta(hours=21), slots=4),
        ]
        trends = collection_trends(runs, NOW)

        assert [t["period"] for t in trends] == [
            "20-24h ago", "16-20h ago", "12-16h ago", "8-12h ago", "4-8h ago", "0-4h ago",
        ]
        assert trends[-1]["collections"] == 2
        assert trends[-1]["successful"] == 1
        assert trends[-1]["avgSlots"] == 5
        assert trends[0]["collections"] == 1
        assert trends[2]["avgSlots"] == 0


class TestBuildDashboard:
    async def test_shape(self, store):
        await store.upsert("London", DAY, default_slots(DAY), provider="stub")
        await store.log_collection(make_run("success"))
        engine = SearchEngine(store, ProviderRegistry())
        engine.metrics.cached_hits = 3
        engine.metrics.cached_misses = 1

        data = await build_dashboard(store, engine, timeframe_hours=12)

        assert data["timeframe"] == "12h"
        assert data["overview"]["cacheHealth"] == "healthy"
        assert data["overview"]["activeEntries"] == 1
        assert data["overview"]["successRate"] == "100.0%"
        assert data["cache"]["performance"]["hitRate"] == "75.0%"
        assert data["cache"]["performance"]["dataFreshness"] == "fresh"
        assert len(data["collections"]["recent"]) == 1
        assert data["collections"]["summary"]["successful"] == 1
        assert len(data["collections"]["trends"]) == 6
