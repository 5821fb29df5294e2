"""
Search engine.

Answers a structured availability query from either the persistent
cache (fast, production default) or the providers directly (live mode),
then filters, de-duplicates and shapes the result.

Request validation lives here too so that a malformed query is rejected
before any store or provider call is made.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Any

from pydantic import ValidationError

from playscanner.errors import (
    PlayScannerError,
    SearchUnavailableError,
    SearchValidationError,
)
from playscanner.filters import apply_filters, dedupe_slots
from playscanner.models import (
    SUPPORTED_SPORTS,
    CourtSlot,
    ProviderDescriptor,
    ProviderTestResult,
    SearchParams,
    SearchRequest,
    SearchResult,
    SportSpecificFilters,
)
from playscanner.services.providers.registry import ProviderRegistry
from playscanner.stats import safe_percentage
from playscanner.store import PersistentCacheStore
from playscanner.timeouts import bounded_call

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")

FOOTBALL_MESSAGE = (
    "Football booking is coming soon! We're working on integrating with "
    "PowerLeague, FC Urban, and other providers."
)


# ── Validation ────────────────────────────────────────────────────────────


def _parse_max_price(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise SearchValidationError("maxPrice must be a whole number of minor units")
    if isinstance(value, int):
        price = value
    elif isinstance(value, float) and value.is_integer():
        price = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        price = int(value.strip())
    else:
        raise SearchValidationError("maxPrice must be a whole number of minor units")
    if price < 0:
        raise SearchValidationError("maxPrice cannot be negative")
    return price


def _parse_time(value: Any, field: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise SearchValidationError(f"Invalid {field}. Use HH:MM")
    return value


def validate_search_request(
    raw: SearchRequest | Mapping[str, Any],
    *,
    today: date,
) -> SearchParams:
    """
    Turn a loosely-typed request body into SearchParams.

    Raises SearchValidationError carrying one of ``VALIDATION_ERROR``,
    ``INVALID_SPORT``, ``INVALID_DATE`` or ``PAST_DATE``.
    """
    if isinstance(raw, SearchRequest):
        req = raw
    else:
        try:
            req = SearchRequest.model_validate(dict(raw))
        except ValidationError:
            raise SearchValidationError("cached must be true or false") from None

    if not req.sport or not req.location or not req.date:
        raise SearchValidationError("Missing required fields: sport, location, date")

    if req.sport not in SUPPORTED_SPORTS:
        raise SearchValidationError(
            "Invalid sport. Must be 'padel' or 'football'", code="INVALID_SPORT"
        )

    if not isinstance(req.location, str) or not req.location.strip():
        raise SearchValidationError("location must be a non-empty string")

    if not isinstance(req.date, str) or not _DATE_RE.match(req.date):
        raise SearchValidationError("Invalid date format. Use YYYY-MM-DD", code="INVALID_DATE")
    try:
        search_date = date.fromisoformat(req.date)
    except ValueError:
        raise SearchValidationError(
            "Invalid date format. Use YYYY-MM-DD", code="INVALID_DATE"
        ) from None
    if search_date < today:
        raise SearchValidationError("Date cannot be in the past", code="PAST_DATE")

    start_time = _parse_time(req.start_time, "startTime")
    end_time = _parse_time(req.end_time, "endTime")
    max_price = _parse_max_price(req.max_price)

    if req.indoor is not None and not isinstance(req.indoor, bool):
        raise SearchValidationError("indoor must be true or false")

    try:
        filters = (
            SportSpecificFilters.model_validate(req.filters) if req.filters is not None else None
        )
        return SearchParams(
            sport=req.sport,
            location=req.location.strip(),
            date=search_date,
            start_time=start_time,
            end_time=end_time,
            max_price=max_price,
            indoor=req.indoor,
            filters=filters,
        )
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"]) or "request"
        raise SearchValidationError(f"Invalid {where}: {first['msg']}") from None


# ── Engine ────────────────────────────────────────────────────────────────


@dataclass
class SearchMetrics:
    """In-memory counters feeding the admin dashboard."""
    cached_hits: int = 0
    cached_misses: int = 0
    live_searches: int = 0
    live_failures: int = 0
    live_memo_hits: int = 0

    @property
    def hit_rate(self) -> float:
        return safe_percentage(self.cached_hits, self.cached_hits + self.cached_misses)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cachedHits": self.cached_hits,
            "cachedMisses": self.cached_misses,
            "liveSearches": self.live_searches,
            "liveFailures": self.live_failures,
            "liveMemoHits": self.live_memo_hits,
            "hitRate": round(self.hit_rate, 1),
        }


class SearchEngine:
    """
    Chooses between the cached and live data paths.

    ``use_cached_mode`` is the configured default; a request may
    override it per call.
    """

    def __init__(
        self,
        store: PersistentCacheStore,
        registry: ProviderRegistry,
        *,
        use_cached_mode: bool = True,
        search_timeout: float = 25.0,
        health_timeout: float = 10.0,
        health_cache_seconds: float = 300.0,
        live_cache_seconds: float = 60.0,
        tz: tzinfo = timezone.utc,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._registry = registry
        self.use_cached_mode = use_cached_mode
        self._search_timeout = search_timeout
        self._health_timeout = health_timeout
        self._health_cache_seconds = health_cache_seconds
        self._live_cache_seconds = live_cache_seconds
        self._tz = tz
        self._monotonic = monotonic
        self._health_memo: tuple[float, dict[str, bool]] | None = None
        # search key → (stored at, result); only complete live results
        self._live_memo: dict[str, tuple[float, SearchResult]] = {}
        self.metrics = SearchMetrics()

    def today(self) -> date:
        return datetime.now(self._tz).date()

    def validate(self, raw: SearchRequest | Mapping[str, Any]) -> SearchParams:
        return validate_search_request(raw, today=self.today())

    def resolve_mode(self, cached: bool | None = None) -> bool:
        return self.use_cached_mode if cached is None else cached

    # ── Search ────────────────────────────────────────────────────────

    async def search(self, params: SearchParams, *, cached: bool | None = None) -> SearchResult:
        started = time.perf_counter()
        use_cache = self.resolve_mode(cached)
        source = "persistent_cache" if use_cache else "live"

        providers = self._registry.for_sport(params.sport)
        if not providers:
            logger.info("No provider supports %s yet", params.sport)
            message = (
                FOOTBALL_MESSAGE if params.sport == "football"
                else f"{params.sport.capitalize()} booking is not supported yet."
            )
            return SearchResult(
                results=[],
                total_results=0,
                search_time=self._elapsed(started),
                providers=[],
                filters=params,
                source=source,
                message=message,
            )

        if use_cache:
            return await self._search_cached(params, providers, started)
        return await self._search_live(params, providers, started)

    async def _search_cached(self, params: SearchParams, providers, started: float) -> SearchResult:
        slots = await self._store.search(params, tz=self._tz)
        cache_age = await self._store.cache_age(params.location, params.date)
        if cache_age == "empty":
            self.metrics.cached_misses += 1
        else:
            self.metrics.cached_hits += 1

        results = dedupe_slots(slots)
        logger.debug(
            "Cached search %s %s: %d results (%s)",
            params.location, params.date, len(results), cache_age,
        )
        return SearchResult(
            results=results,
            total_results=len(results),
            search_time=self._elapsed(started),
            providers=[p.name for p in providers],
            filters=params,
            source="persistent_cache",
            cache_age=cache_age,
        )

    def _live_key(self, params: SearchParams) -> str:
        return params.model_dump_json()

    def _recall_live(self, key: str) -> SearchResult | None:
        now = self._monotonic()
        for stale in [k for k, (at, _) in self._live_memo.items() if now - at >= self._live_cache_seconds]:
            del self._live_memo[stale]
        hit = self._live_memo.get(key)
        return hit[1] if hit else None

    async def _search_live(self, params: SearchParams, providers, started: float) -> SearchResult:
        self.metrics.live_searches += 1
        key = self._live_key(params)
        remembered = self._recall_live(key)
        if remembered is not None:
            self.metrics.live_memo_hits += 1
            logger.debug("Live search %s %s answered from memo", params.location, params.date)
            return remembered.model_copy(update={"search_time": self._elapsed(started)})

        slots: list[CourtSlot] = []
        errors: list[str] = []
        succeeded: list[str] = []

        for adapter in providers:
            try:
                slots.extend(
                    await bounded_call(
                        adapter.fetch_availability(params),
                        self._search_timeout,
                        label=f"{adapter.name} live search",
                        provider=adapter.name,
                    )
                )
                succeeded.append(adapter.name)
            except PlayScannerError as exc:
                logger.warning("Live search via %s failed: %s", adapter.name, exc.message)
                errors.append(f"{adapter.name}: {exc.message}")
            except Exception as exc:
                logger.exception("Live search via %s crashed", adapter.name)
                errors.append(f"{adapter.name}: {exc}")

        if len(errors) == len(providers):
            self.metrics.live_failures += 1
            raise SearchUnavailableError("All providers failed: " + "; ".join(errors))

        results = dedupe_slots(apply_filters(slots, params, self._tz))
        result = SearchResult(
            results=results,
            total_results=len(results),
            search_time=self._elapsed(started),
            providers=succeeded,
            filters=params,
            source="live",
            errors=errors or None,
        )
        if not errors and self._live_cache_seconds > 0:
            self._live_memo[key] = (self._monotonic(), result)
        return result

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

    # ── Providers ─────────────────────────────────────────────────────

    def get_available_providers(self) -> list[ProviderDescriptor]:
        return self._registry.describe()

    async def _probe(self, adapter) -> bool:
        try:
            return bool(
                await bounded_call(
                    adapter.health_check(),
                    self._health_timeout,
                    label=f"{adapter.name} health check",
                    provider=adapter.name,
                )
            )
        except Exception as exc:
            logger.warning("Provider %s reported unhealthy: %s", adapter.name, exc)
            return False

    async def get_provider_health(self, *, force: bool = False) -> dict[str, bool]:
        """Provider name → reachable, memoized for ``health_cache_seconds``."""
        now = self._monotonic()
        if not force and self._health_memo is not None:
            checked_at, memo = self._health_memo
            if now - checked_at < self._health_cache_seconds:
                return dict(memo)

        adapters = self._registry.all()
        outcomes = await asyncio.gather(*(self._probe(a) for a in adapters))
        health = {a.name: ok for a, ok in zip(adapters, outcomes)}
        self._health_memo = (now, health)
        return dict(health)

    async def test_provider(self, name: str, params: SearchParams) -> ProviderTestResult:
        """Diagnostic pass-through to one adapter.  Never raises."""
        adapter = self._registry.get(name)
        if adapter is None:
            return ProviderTestResult(success=False, error=f"Unknown provider: {name}")

        started = time.perf_counter()
        try:
            results = await bounded_call(
                adapter.fetch_availability(params),
                self._search_timeout,
                label=f"{name} provider test",
                provider=name,
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, PlayScannerError) else str(exc)
            logger.warning("Provider test for %s failed: %s", name, message)
            return ProviderTestResult(
                success=False, error=message, response_time=self._elapsed(started)
            )
        return ProviderTestResult(
            success=True, results=results, response_time=self._elapsed(started)
        )
