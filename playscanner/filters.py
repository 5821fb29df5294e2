"""
Query-level filtering, ordering and de-duplication of court slots.

Used by the persistent cache store (cached searches), the provider
adapters (live fetches) and the search engine, so both search paths
apply exactly the same rules.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timezone, tzinfo

from playscanner.models import CourtSlot, PadelMeta, SearchParams


def local_bound(day: date, hhmm: str, tz: tzinfo) -> datetime:
    """``"18:30"`` on *day* in *tz*, as an aware datetime."""
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime.combine(day, time(hour, minute), tzinfo=tz)


def apply_filters(
    slots: Iterable[CourtSlot],
    params: SearchParams,
    tz: tzinfo = timezone.utc,
) -> list[CourtSlot]:
    """Return the slots that satisfy every filter in *params*."""
    result = [s for s in slots if s.sport == params.sport]

    # Time window (user times are wall-clock times in the venue's timezone)
    if params.start_time:
        lower = local_bound(params.date, params.start_time, tz)
        result = [s for s in result if s.start_time >= lower]
    if params.end_time:
        upper = local_bound(params.date, params.end_time, tz)
        result = [s for s in result if s.end_time <= upper]

    if params.max_price is not None:
        result = [s for s in result if s.price <= params.max_price]
    if params.indoor is not None:
        result = [s for s in result if s.features.indoor == params.indoor]

    padel = params.filters.padel if params.filters else None
    if padel is not None and params.sport == "padel":
        if padel.court_type:
            result = [
                s for s in result
                if isinstance(s.sport_meta, PadelMeta) and s.sport_meta.court_type == padel.court_type
            ]
        if padel.level:
            # "open" sessions accept every level
            result = [
                s for s in result
                if not isinstance(s.sport_meta, PadelMeta)
                or s.sport_meta.level in (padel.level, "open")
            ]

    return result


def sort_slots(slots: Iterable[CourtSlot]) -> list[CourtSlot]:
    """Earliest first, cheapest first within the same start time."""
    return sorted(slots, key=lambda s: (s.start_time, s.price))


def dedupe_slots(slots: Iterable[CourtSlot]) -> list[CourtSlot]:
    """
    Collapse slots at the same venue and start time in the same whole-unit
    price band, keeping the cheapest, then sort.
    """
    unique: dict[tuple[str, datetime, int], CourtSlot] = {}
    for slot in slots:
        key = (slot.venue.id, slot.start_time, slot.price // 100)
        current = unique.get(key)
        if current is None or current.price > slot.price:
            unique[key] = slot
    return sort_slots(unique.values())
