"""
Mock provider adapter for unit tests.

Does not make any HTTP calls – returns canned slots from
tests.mocks.models and records every call it receives.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date

from playscanner.errors import ProviderError
from playscanner.models import CourtSlot, SearchParams
from tests.mocks.models import default_slots


class StubProvider:
    """
    In-memory implementation of the ProviderAdapter protocol.

    ``fail_on`` dates raise ProviderError; ``error`` (if set) is raised
    for every call; ``gate`` blocks fetches until it is set.
    """

    def __init__(
        self,
        name: str = "stub",
        *,
        sports: tuple[str, ...] = ("padel",),
        slots_for: Callable[[date], list[CourtSlot]] = default_slots,
        fail_on: set[date] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        healthy: bool = True,
        events: list[str] | None = None,
    ) -> None:
        self.name = name
        self.sports = sports
        self.regions = ("uk",)
        self._slots_for = slots_for
        self.fail_on = fail_on or set()
        self.error = error
        self.delay = delay
        self.healthy = healthy
        self.gate: asyncio.Event | None = None
        self.events = events if events is not None else []
        self.calls: list[SearchParams] = []
        self.health_calls = 0
        self.closed = False

    # ── Availability ───────────────────────────────────────────────────

    async def fetch_availability(self, params: SearchParams) -> list[CourtSlot]:
        self.calls.append(params)
        self.events.append(f"fetch {params.location} {params.date}")
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if params.date in self.fail_on:
            raise ProviderError(f"stub failure for {params.date}", provider=self.name)
        return [s for s in self._slots_for(params.date) if s.sport == params.sport]

    # ── Liveness ───────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        self.health_calls += 1
        return self.healthy

    async def close(self) -> None:
        self.closed = True
