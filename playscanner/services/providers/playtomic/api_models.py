"""
Pydantic models that mirror the playtomic.com API response shapes.

These are *internal* – the rest of the app never imports them directly.
The parsing module translates them into playscanner.models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ── /api/v1/tenants ───────────────────────────────────────────────────────

class TenantCoordinate(BaseModel):
    lat: float = 0.0
    lon: float = 0.0


class TenantAddress(BaseModel):
    street: str | None = None
    city: str | None = None
    postal_code: str | None = None
    coordinate: TenantCoordinate | None = None


class TenantResource(BaseModel):
    """One bookable court within a tenant."""
    resource_id: str
    name: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class TenantPayload(BaseModel):
    tenant_id: str
    tenant_uid: str | None = None
    tenant_name: str = "Unknown Venue"
    slug: str | None = None
    playtomic_status: str | None = None
    address: TenantAddress | None = None
    images: list[str] = Field(default_factory=list)
    resources: list[TenantResource] = Field(default_factory=list)


# ── /api/v1/availability ──────────────────────────────────────────────────

class SlotPayload(BaseModel):
    """A single free slot on one resource."""
    start_time: str          # "HH:MM:SS", venue-local wall-clock time
    duration: int            # minutes
    price: str               # "48 GBP", "30.5 EUR"


class ResourceAvailabilityPayload(BaseModel):
    """
    Availability for one resource on one date.

    ``slots`` stays loosely typed here so a single malformed slot can be
    skipped without discarding its siblings.
    """
    resource_id: str
    start_date: str          # "YYYY-MM-DD"
    slots: list[dict[str, Any]] = Field(default_factory=list)
