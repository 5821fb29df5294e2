"""
Abstract interface for booking provider integrations.

Every new provider implements this protocol so the rest of the
application (collector, search engine, health checks) is decoupled from
the underlying booking platform.
"""

from __future__ import annotations

from typing import Protocol

from playscanner.models import CourtSlot, SearchParams


class ProviderAdapter(Protocol):
    """Protocol that every provider integration must satisfy."""

    name: str
    sports: tuple[str, ...]
    regions: tuple[str, ...]

    # ── Availability ──────────────────────────────────────────────────
    async def fetch_availability(self, params: SearchParams) -> list[CourtSlot]:
        """
        Return canonical slots for the query's sport, location and date.

        A single venue failing is skipped; network failures on the
        provider as a whole raise ``ProviderError``.  No internal retry.
        """
        ...

    # ── Liveness ──────────────────────────────────────────────────────
    async def health_check(self) -> bool:
        """True if the provider answered within its deadline.  Never raises."""
        ...

    async def close(self) -> None:
        """Release HTTP clients."""
        ...
