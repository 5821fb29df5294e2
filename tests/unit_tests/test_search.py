"""Tests for request validation and the search engine."""

from datetime import date, time

import pytest

from playscanner.errors import SearchUnavailableError, SearchValidationError
from playscanner.models import SearchParams
from playscanner.services.providers.registry import ProviderRegistry
from playscanner.services.search import FOOTBALL_MESSAGE, SearchEngine, validate_search_request
from tests.mocks.models import DAY, MOCK_VENUE, default_slots, make_slot
from tests.mocks.services import StubProvider

TODAY = date(2030, 1, 1)


def _engine(store, *providers, **kwargs) -> SearchEngine:
    registry = ProviderRegistry()
    for p in providers:
        registry.register(p)
    return SearchEngine(store, registry, **kwargs)


def _params(**kwargs) -> SearchParams:
    return SearchParams(sport="padel", location="London", date=DAY, **kwargs)


# ── Validation ─────────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize(
        ("body", "code"),
        [
            ({"location": "London", "date": "2030-01-02"}, "VALIDATION_ERROR"),
            ({"sport": "padel", "date": "2030-01-02"}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London"}, "VALIDATION_ERROR"),
            ({"sport": "tennis", "location": "London", "date": "2030-01-02"}, "INVALID_SPORT"),
            ({"sport": "padel", "location": "London", "date": "02/01/2030"}, "INVALID_DATE"),
            ({"sport": "padel", "location": "London", "date": "2030-02-30"}, "INVALID_DATE"),
            ({"sport": "padel", "location": "London", "date": "2029-12-31"}, "PAST_DATE"),
            ({"sport": "padel", "location": 42, "date": "2030-01-02"}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London", "date": "2030-01-02", "startTime": "25:00"}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London", "date": "2030-01-02", "maxPrice": -1}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London", "date": "2030-01-02", "maxPrice": True}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London", "date": "2030-01-02", "maxPrice": "cheap"}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London", "date": "2030-01-02", "indoor": "yes"}, "VALIDATION_ERROR"),
            ({"sport": "padel", "location": "London", "date": "2030-01-02", "cached": "maybe"}, "VALIDATION_ERROR"),
            (
                {"sport": "padel", "location": "London", "date": "2030-01-02",
                 "filters": {"padel": {"level": "pro"}}},
                "VALIDATION_ERROR",
            ),
        ],
    )
    def test_rejected(self, body, code):
        with pytest.raises(SearchValidationError) as exc_info:
            validate_search_request(body, today=TODAY)
        assert exc_info.value.code == code
        assert exc_info.value.status_code == 400

    def test_today_is_not_past(self):
        params = validate_search_request(
            {"sport": "padel", "location": "London", "date": "2030-01-01"}, today=TODAY
        )
        assert params.date == TODAY

    def test_optional_fields_are_parsed(self):
        params = validate_search_request(
            {
                "sport": "padel",
                "location": "  London ",
                "date": "2030-01-02",
                "startTime": "18:00",
                "end_time": "21:00",
                "maxPrice": "4000",
                "indoor": False,
                "filters": {"padel": {"courtType": "outdoor"}},
            },
            today=TODAY,
        )
        assert params.location == "London"
        assert params.start_time == "18:00"
        assert params.end_time == "21:00"
        assert params.max_price == 4000
        assert params.indoor is False
        assert params.filters.padel.court_type == "outdoor"


# ── Cached path ────────────────────────────────────────────────────────────


class TestCachedSearch:
    async def test_cached_search_never_calls_providers(self, store, provider):
        await store.upsert("London", DAY, default_slots(DAY), provider="stub")
        engine = _engine(store, provider)

        result = await engine.search(_params())
        assert result.source == "persistent_cache"
        assert result.total_results == 2
        assert result.cache_age == "fresh"
        assert result.providers == ["stub"]
        assert provider.calls == []
        assert engine.metrics.cached_hits == 1

    async def test_max_price_in_minor_units(self, store, provider):
        await store.upsert("London", DAY, default_slots(DAY), provider="stub")
        engine = _engine(store, provider)

        result = await engine.search(_params(max_price=4000))
        assert [s.price for s in result.results] == [3500]

    async def test_cache_miss_is_empty_not_an_error(self, store, provider):
        engine = _engine(store, provider)

        result = await engine.search(_params())
        assert result.results == []
        assert result.cache_age == "empty"
        assert engine.metrics.cached_misses == 1
        assert engine.metrics.hit_rate == 0.0

    async def test_duplicates_are_collapsed(self, store, provider):
        slots = [make_slot(price=4500), make_slot(price=4520), make_slot(start=time(19, 0))]
        await store.upsert("London", DAY, slots, provider="stub")

        result = await _engine(store, provider).search(_params())
        assert [s.price for s in result.results] == [4500, 4500]

    async def test_football_is_graceful(self, store, provider):
        engine = _engine(store, provider)
        result = await engine.search(SearchParams(sport="football", location="London", date=DAY))

        assert result.results == []
        assert result.message == FOOTBALL_MESSAGE
        assert result.providers == []
        assert provider.calls == []


# ── Live path ──────────────────────────────────────────────────────────────


class TestLiveSearch:
    async def test_request_override_uses_providers(self, store, provider):
        engine = _engine(store, provider, use_cached_mode=True)

        result = await engine.search(_params(max_price=4000), cached=False)
        assert result.source == "live"
        assert [s.price for s in result.results] == [3500]
        assert len(provider.calls) == 1
        assert engine.metrics.live_searches == 1

    async def test_live_mode_default(self, store, provider):
        engine = _engine(store, provider, use_cached_mode=False)
        result = await engine.search(_params())
        assert result.source == "live"

    async def test_all_providers_failing_raises(self, store):
        engine = _engine(store, StubProvider(fail_on={DAY}), use_cached_mode=False)

        with pytest.raises(SearchUnavailableError) as exc_info:
            await engine.search(_params())
        assert exc_info.value.status_code == 502
        assert engine.metrics.live_failures == 1

    async def test_one_provider_failing_is_reported(self, store):
        good = StubProvider("good")
        bad = StubProvider("bad", error=RuntimeError("boom"))
        engine = _engine(store, good, bad, use_cached_mode=False)

        result = await engine.search(_params())
        assert result.total_results == 2
        assert result.errors == ["bad: boom"]
        assert result.providers == ["good"]

    async def test_repeated_live_search_is_memoized(self, store, provider):
        ticks = [0.0]
        engine = _engine(
            store, provider, use_cached_mode=False, live_cache_seconds=60, monotonic=lambda: ticks[0]
        )

        first = await engine.search(_params())
        ticks[0] = 30.0
        second = await engine.search(_params())
        assert len(provider.calls) == 1
        assert [s.id for s in second.results] == [s.id for s in first.results]
        assert engine.metrics.live_memo_hits == 1

        await engine.search(_params(max_price=4000))
        assert len(provider.calls) == 2

        ticks[0] = 61.0
        await engine.search(_params())
        assert len(provider.calls) == 3

    async def test_partial_live_results_are_not_memoized(self, store):
        good = StubProvider("good")
        bad = StubProvider("bad", error=RuntimeError("boom"))
        engine = _engine(store, good, bad, use_cached_mode=False)

        await engine.search(_params())
        await engine.search(_params())
        assert len(good.calls) == 2
        assert engine.metrics.live_memo_hits == 0

    async def test_slow_provider_times_out(self, store):
        engine = _engine(store, StubProvider(delay=1), use_cached_mode=False, search_timeout=0.05)
        with pytest.raises(SearchUnavailableError):
            await engine.search(_params())


# ── Providers ──────────────────────────────────────────────────────────────


class TestProviders:
    def test_available_providers(self, provider):
        [descriptor] = _engine(None, provider).get_available_providers()
        assert descriptor.name == "stub"
        assert descriptor.sports == ["padel"]

    async def test_provider_health_is_memoized(self, store, provider):
        ticks = [0.0]
        engine = _engine(store, provider, health_cache_seconds=300, monotonic=lambda: ticks[0])

        assert await engine.get_provider_health() == {"stub": True}
        ticks[0] = 100.0
        await engine.get_provider_health()
        assert provider.health_calls == 1

        ticks[0] = 301.0
        await engine.get_provider_health()
        assert provider.health_calls == 2

        await engine.get_provider_health(force=True)
        assert provider.health_calls == 3

    async def test_unhealthy_provider(self, store):
        provider = StubProvider(healthy=False)
        assert await _engine(store, provider).get_provider_health() == {"stub": False}

    async def test_provider_test_unknown(self, store, provider):
        result = await _engine(store, provider).test_provider("nope", _params())
        assert result.success is False
        assert "Unknown provider" in result.error

    async def test_provider_test_success(self, store, provider):
        result = await _engine(store, provider).test_provider("stub", _params())
        assert result.success is True
        assert {s.venue.id for s in result.results} == {MOCK_VENUE.id, "venue-2"}

    async def test_provider_test_failure_never_raises(self, store):
        provider = StubProvider(error=RuntimeError("boom"))
        result = await _engine(store, provider).test_provider("stub", _params())
        assert result.success is False
        assert result.error == "boom"
