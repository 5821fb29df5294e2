"""Tests for the collection orchestrator."""

import asyncio
from datetime import timedelta

import pytest

from playscanner.errors import CollectionInProgressError
from playscanner.services.collector import Collector
from tests.mocks.models import DAY, default_slots
from tests.mocks.services import StubProvider

DAY_2 = DAY + timedelta(days=1)


def _collector(store, provider, *, events=None, **kwargs) -> Collector:
    async def record_sleep(seconds: float) -> None:
        if events is not None:
            events.append(f"sleep {seconds:g}")

    kwargs.setdefault("cities", ["London"])
    kwargs.setdefault("days_ahead", 2)
    kwargs.setdefault("request_delay", 2)
    return Collector(store, provider, sleep=record_sleep, **kwargs)


class TestMatrix:
    def test_city_major_order(self, provider):
        collector = _collector(None, provider, cities=["London", "Madrid"])
        assert collector.matrix(DAY) == [
            ("London", DAY),
            ("London", DAY_2),
            ("Madrid", DAY),
            ("Madrid", DAY_2),
        ]

    def test_dates_cover_days_ahead(self, provider):
        collector = _collector(None, provider, days_ahead=7)
        days = collector.dates(DAY)
        assert len(days) == 7
        assert days[0] == DAY
        assert days[-1] == DAY + timedelta(days=6)


class TestCollectAll:
    async def test_successful_pass(self, store, provider):
        summary = await _collector(store, provider).collect_all(DAY)

        assert summary.status == "success"
        assert summary.total_attempted == 2
        assert summary.succeeded == 2
        assert summary.errors == 0
        assert summary.total_collected == 4
        assert summary.total_venues == 2

        entry = await store.get("London", DAY_2)
        assert entry is not None
        assert entry.metadata.total_slots == 2
        assert len(await store.get_recent_collections(10)) == 2
        assert len(await store.list_venues("London")) == 2

    async def test_partial_failure_continues(self, store):
        provider = StubProvider(fail_on={DAY})
        summary = await _collector(store, provider).collect_all(DAY)

        assert summary.status == "partial"
        assert summary.succeeded == 1
        assert summary.errors == 1
        failed = summary.results[0]
        assert failed.status == "error"
        assert "stub failure" in failed.error
        assert summary.results[1].status == "success"

        assert await store.get("London", DAY) is None
        assert await store.get("London", DAY_2) is not None
        statuses = sorted(r.status for r in await store.get_recent_collections(10))
        assert statuses == ["error", "success"]

    async def test_failure_keeps_previous_entry(self, store):
        provider = StubProvider(fail_on={DAY})
        await store.upsert("London", DAY, default_slots(DAY), provider="stub")
        await _collector(store, provider).collect_all(DAY)

        entry = await store.get("London", DAY)
        assert entry is not None
        assert len(entry.slots) == 2

    async def test_all_failures(self, store):
        provider = StubProvider(error=RuntimeError("boom"))
        summary = await _collector(store, provider).collect_all(DAY)

        assert summary.status == "error"
        assert summary.succeeded == 0
        assert all(r.error == "Unexpected error: boom" for r in summary.results)

    async def test_timeout_is_recorded_as_error(self, store):
        provider = StubProvider(delay=1)
        summary = await _collector(store, provider, days_ahead=1, timeout=0.05).collect_all(DAY)

        assert summary.status == "error"
        assert "Timeout" in summary.results[0].error

    async def test_delay_only_between_pairs(self, store):
        events: list[str] = []
        provider = StubProvider(events=events)
        await _collector(store, provider, events=events, days_ahead=3).collect_all(DAY)

        assert events == [
            f"fetch London {DAY}",
            "sleep 2",
            f"fetch London {DAY_2}",
            "sleep 2",
            f"fetch London {DAY + timedelta(days=2)}",
        ]

    async def test_overlapping_pass_is_rejected(self, store, provider):
        provider.gate = asyncio.Event()
        collector = _collector(store, provider, days_ahead=1)

        first = asyncio.create_task(collector.collect_all(DAY))
        await asyncio.sleep(0)
        assert collector.is_running is True

        with pytest.raises(CollectionInProgressError):
            await collector.collect_all(DAY)

        provider.gate.set()
        summary = await first
        assert summary.status == "success"
        assert collector.is_running is False
