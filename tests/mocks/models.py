"""
Pre-built model instances for use in tests.

Use the factory helpers to create custom variants:

    from tests.mocks.models import DAY, make_slot, make_venue
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from playscanner.models import (
    CollectionRun,
    CourtSlot,
    PadelMeta,
    SlotFeatures,
    Venue,
    VenueLocation,
)

# A fixed date for tests that never pass through request validation
DAY = date(2030, 6, 1)


def future_day(offset: int = 1) -> date:
    """A date that request validation will accept as not in the past."""
    return datetime.now(timezone.utc).date() + timedelta(days=offset)


# ── Clock ──────────────────────────────────────────────────────────────────


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ── Venues ─────────────────────────────────────────────────────────────────


def make_venue(venue_id: str = "venue-1", name: str = "Test Padel Club") -> Venue:
    return Venue(
        id=venue_id,
        name=name,
        provider="stub",
        location=VenueLocation(address="1 Court Road", city="London", postcode="E1 6AN"),
    )


MOCK_VENUE = make_venue()
MOCK_VENUE_2 = make_venue("venue-2", "Second Padel Club")


# ── Slots ──────────────────────────────────────────────────────────────────


def make_slot(
    *,
    day: date = DAY,
    start: time = time(18, 0),
    duration: int = 60,
    price: int = 4500,
    venue: Venue | None = None,
    sport: str = "padel",
    indoor: bool = True,
    court_type: str = "indoor",
    level: str = "open",
    tz: tzinfo = timezone.utc,
) -> CourtSlot:
    venue = venue or MOCK_VENUE
    starts = datetime.combine(day, start, tzinfo=tz)
    return CourtSlot(
        id=f"stub_{venue.id}_{day.isoformat()}_{start:%H%M}_{price}",
        sport=sport,
        provider="stub",
        venue=venue,
        start_time=starts,
        end_time=starts + timedelta(minutes=duration),
        duration=duration,
        price=price,
        currency="GBP",
        booking_url=f"https://example.com/book/{venue.id}",
        features=SlotFeatures(indoor=indoor),
        sport_meta=PadelMeta(court_type=court_type, level=level) if sport == "padel" else None,
        last_updated=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


def default_slots(day: date) -> list[CourtSlot]:
    """Two venues, one slot each: 45.00 at 18:00 and 35.00 at 19:00."""
    return [
        make_slot(day=day, start=time(18, 0), price=4500, venue=MOCK_VENUE),
        make_slot(day=day, start=time(19, 0), price=3500, venue=MOCK_VENUE_2),
    ]


# ── Collection log ─────────────────────────────────────────────────────────


def make_run(
    status: str = "success",
    *,
    created_at: datetime | None = None,
    slots: int = 10,
    execution_time_ms: int = 100,
    city: str = "london",
    day: date = DAY,
) -> CollectionRun:
    return CollectionRun(
        collection_id="collection_test",
        city=city,
        date=day,
        status=status,
        slots_collected=slots if status == "success" else 0,
        venues_processed=2 if status == "success" else 0,
        execution_time_ms=execution_time_ms,
        provider="stub",
        error_message=None if status == "success" else "stub failure",
        created_at=created_at,
    )
