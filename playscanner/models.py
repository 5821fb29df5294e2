"""Pydantic models for the PLAYScanner availability service.

Internally every field is snake_case; over the wire the models speak
camelCase (``startTime``, ``totalResults`` …).  Both spellings are
accepted on input.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Sport = Literal["padel", "football"]
SUPPORTED_SPORTS: tuple[str, ...] = ("padel", "football")

HealthStatus = Literal["healthy", "degraded", "unhealthy"]
RunStatus = Literal["success", "error"]


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Venues ────────────────────────────────────────────────────────────────


class Coordinates(_Model):
    """Geographic coordinates."""
    lat: float = 0.0
    lng: float = 0.0


class VenueLocation(_Model):
    address: str = ""
    city: str = ""
    postcode: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)


class VenueContact(_Model):
    phone: str | None = None
    email: str | None = None
    website: str | None = None


class Venue(_Model):
    """A bookable venue as reported by a provider."""
    id: str
    name: str
    provider: str
    location: VenueLocation = Field(default_factory=VenueLocation)
    amenities: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    rating: float | None = None
    contact: VenueContact = Field(default_factory=VenueContact)


# ── Slots ─────────────────────────────────────────────────────────────────


class SlotAvailability(_Model):
    spots_available: int = Field(1, ge=0)
    total_spots: int = Field(1, ge=0)

    @model_validator(mode="after")
    def _spots_within_total(self) -> SlotAvailability:
        if self.spots_available > self.total_spots:
            raise ValueError("spots_available cannot exceed total_spots")
        return self


class SlotFeatures(_Model):
    indoor: bool = True
    lights: bool = True
    surface: Literal["turf", "concrete", "grass", "astro", "other"] | None = None


class PadelMeta(_Model):
    court_type: Literal["indoor", "outdoor", "panoramic"] = "indoor"
    level: Literal["beginner", "intermediate", "advanced", "open"] = "open"
    doubles: bool = True


class FootballMeta(_Model):
    format: Literal["5v5", "6v6", "7v7", "8v8", "11v11"]
    organized: bool = False
    level: Literal["casual", "competitive", "mixed"] = "mixed"
    requires_team: bool = False


class CourtSlot(_Model):
    """
    A single bookable time window at a venue.

    ``price`` is in minor currency units (pence / cents).  Start and end
    are normalized to UTC; ``duration`` must match their difference.
    """

    id: str
    sport: Sport
    provider: str
    venue: Venue
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., gt=0, description="Length in minutes")
    price: int = Field(..., ge=0, description="Price in minor units")
    currency: str = "GBP"
    booking_url: str
    availability: SlotAvailability = Field(default_factory=SlotAvailability)
    features: SlotFeatures = Field(default_factory=SlotFeatures)
    sport_meta: PadelMeta | FootballMeta | None = None
    last_updated: datetime

    @field_validator("start_time", "end_time", "last_updated")
    @classmethod
    def _normalize_tz(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_window(self) -> CourtSlot:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        span = (self.end_time - self.start_time).total_seconds()
        if span != self.duration * 60:
            raise ValueError(
                f"duration {self.duration}min does not match time window ({span / 60:g}min)"
            )
        return self


# ── Persistence records ───────────────────────────────────────────────────


class CacheMetadata(_Model):
    total_slots: int
    unique_venues: int
    collected_at: datetime
    provider: str


class CacheEntry(_Model):
    """One ``(city, date)`` batch of slots with an absolute expiry."""
    cache_key: str
    city: str
    date: date
    slots: list[CourtSlot]
    metadata: CacheMetadata
    created_at: datetime
    expires_at: datetime


class CollectionRun(_Model):
    """Append-only log record of one collection attempt for one (city, date)."""
    collection_id: str
    city: str
    date: date
    status: RunStatus
    slots_collected: int = 0
    venues_processed: int = 0
    execution_time_ms: int = 0
    provider: str
    error_message: str | None = None
    created_at: datetime | None = None


class VenueRecord(_Model):
    venue_id: str
    provider: str
    city: str
    venue_data: Venue
    is_active: bool = True
    last_seen: datetime


class HealthSnapshot(_Model):
    component: str
    status: HealthStatus
    details: dict[str, Any] = Field(default_factory=dict)
    checked_at: datetime


class DateRange(_Model):
    oldest: date | None = None
    newest: date | None = None


class CacheStats(_Model):
    total_entries: int = 0
    active_entries: int = 0
    expired_entries: int = 0
    total_slots: int = 0
    cities_covered: int = 0
    date_range: DateRange = Field(default_factory=DateRange)
    last_collection: datetime | None = None


# ── Search ────────────────────────────────────────────────────────────────


class PadelFilters(_Model):
    level: Literal["beginner", "intermediate", "advanced", "open"] | None = None
    court_type: Literal["indoor", "outdoor", "panoramic"] | None = None


class FootballFilters(_Model):
    format: Literal["5v5", "6v6", "7v7", "8v8", "11v11"] | None = None
    organized: bool | None = None
    level: Literal["casual", "competitive", "mixed"] | None = None


class SportSpecificFilters(_Model):
    padel: PadelFilters | None = None
    football: FootballFilters | None = None


class SearchParams(_Model):
    """A validated search query.  Build it through ``validate_search_request``."""
    sport: Sport
    location: str
    date: date
    start_time: str | None = Field(None, pattern=r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
    end_time: str | None = Field(None, pattern=r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
    max_price: int | None = Field(None, ge=0)
    indoor: bool | None = None
    filters: SportSpecificFilters | None = None


class SearchRequest(_Model):
    """Raw POST /search body.  Everything is optional so that missing or
    malformed fields surface as our own validation codes, not FastAPI 422s."""

    sport: Any = None
    location: Any = None
    date: Any = None
    start_time: Any = None
    end_time: Any = None
    max_price: Any = None
    indoor: Any = None
    filters: Any = None
    cached: bool | None = None


class SearchResult(_Model):
    results: list[CourtSlot]
    total_results: int
    search_time: int = Field(..., description="Milliseconds")
    providers: list[str]
    filters: SearchParams
    source: Literal["persistent_cache", "live"]
    cache_age: str | None = None
    message: str | None = None
    errors: list[str] | None = None


class ProviderDescriptor(_Model):
    name: str
    sports: list[str]
    regions: list[str]


class ProviderTestResult(_Model):
    success: bool
    results: list[CourtSlot] = Field(default_factory=list)
    error: str | None = None
    response_time: int = 0


class ErrorResponse(_Model):
    error: str
    code: str
    message: str | None = None


# ── Health ────────────────────────────────────────────────────────────────


class ComponentHealth(_Model):
    """Status of one subsystem plus whatever figures explain it."""
    status: HealthStatus
    error: str | None = None
    warning: str | None = None
    metrics: dict[str, Any] = Field(default_factory=dict)
    details: dict[str, Any] | None = None


class HealthReport(_Model):
    status: HealthStatus
    timestamp: datetime
    uptime: float = Field(..., description="Seconds since start")
    version: str
    mode: Literal["cached", "live"]
    response_time: int = Field(0, description="Milliseconds")
    cache: ComponentHealth | None = None
    providers: ComponentHealth | None = None
    collection: ComponentHealth | None = None
    environment: dict[str, Any] | None = None


# ── Collection ────────────────────────────────────────────────────────────


class CollectionItem(_Model):
    """Outcome of one (city, date) pair within a collection pass."""
    city: str
    date: date
    status: RunStatus
    slots_collected: int = 0
    venues_processed: int = 0
    execution_time_ms: int = 0
    error: str | None = None


class CollectionSummary(_Model):
    collection_id: str
    status: Literal["success", "partial", "error"]
    results: list[CollectionItem]
    total_attempted: int
    succeeded: int
    errors: int = Field(..., description="Number of failed pairs")
    total_collected: int
    total_venues: int
    collection_time: int = Field(..., description="Milliseconds")
    timestamp: datetime
