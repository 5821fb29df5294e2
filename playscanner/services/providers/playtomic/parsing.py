"""
Validation boundary between raw Playtomic payloads and canonical models.

Untrusted JSON is parsed into the api_models once, then normalized into
:class:`Venue` / :class:`CourtSlot`.  A record that fails validation is
logged and skipped; its siblings are kept.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from pydantic import ValidationError

from playscanner.models import (
    Coordinates,
    CourtSlot,
    PadelMeta,
    SlotFeatures,
    Venue,
    VenueContact,
    VenueLocation,
)
from playscanner.services.providers.playtomic.api_models import (
    ResourceAvailabilityPayload,
    SlotPayload,
    TenantAddress,
    TenantCoordinate,
    TenantPayload,
    TenantResource,
)
from playscanner.services.providers.playtomic.config import (
    ACTIVE_STATUS,
    CITY_ALIASES,
    CLUB_URL,
    PROVIDER_NAME,
    TEST_NAME_PATTERNS,
    TEST_NAME_SUBSTRINGS,
)

logger = logging.getLogger(__name__)

_PRICE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([A-Za-z]{3})?")


# ── Tenants → venues ──────────────────────────────────────────────────────


def is_real_tenant(tenant: TenantPayload) -> bool:
    """Active and not one of Playtomic's sandbox clubs."""
    if tenant.playtomic_status != ACTIVE_STATUS:
        return False
    name = tenant.tenant_name.strip().lower()
    if any(s in name for s in TEST_NAME_SUBSTRINGS):
        return False
    return not any(p.match(name) for p in TEST_NAME_PATTERNS)


def in_city(tenant: TenantPayload, city: str) -> bool:
    """
    For cities with known localized spellings, keep only tenants whose
    address names the city.  Other cities rely on the search radius.
    """
    aliases = CITY_ALIASES.get(city.strip().lower())
    if not aliases:
        return True
    tenant_city = (tenant.address.city if tenant.address else None) or ""
    return tenant_city.strip().lower() in aliases


def parse_tenants(raw: list[Any], city: str) -> list[TenantPayload]:
    tenants: list[TenantPayload] = []
    for record in raw:
        try:
            tenant = TenantPayload.model_validate(record)
        except ValidationError as exc:
            logger.warning("Skipping malformed Playtomic tenant: %s", exc.errors()[:1])
            continue
        if is_real_tenant(tenant) and in_city(tenant, city):
            tenants.append(tenant)
    logger.debug("Parsed %d usable tenants out of %d for %s", len(tenants), len(raw), city)
    return tenants


def booking_url(tenant: TenantPayload) -> str:
    slug = tenant.slug or (tenant.tenant_uid or tenant.tenant_id).strip().rstrip("- ")
    return CLUB_URL.format(slug=slug)


def tenant_to_venue(tenant: TenantPayload) -> Venue:
    address = tenant.address or TenantAddress()
    coordinate = address.coordinate or TenantCoordinate()
    return Venue(
        id=tenant.tenant_id,
        name=tenant.tenant_name,
        provider=PROVIDER_NAME,
        location=VenueLocation(
            address=address.street or "",
            city=address.city or "",
            postcode=address.postal_code or "",
            coordinates=Coordinates(lat=coordinate.lat, lng=coordinate.lon),
        ),
        images=tenant.images,
        contact=VenueContact(website=booking_url(tenant)),
    )


# ── Availability → slots ──────────────────────────────────────────────────


def parse_price(text: str) -> tuple[int, str | None]:
    """``"48 GBP"`` → ``(4800, "GBP")``.  Raises ValueError if there is no amount."""
    match = _PRICE_RE.search(text)
    if match is None:
        raise ValueError(f"no amount in price {text!r}")
    minor = (Decimal(match.group(1)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    currency = match.group(2).upper() if match.group(2) else None
    return int(minor), currency


def _slot_from_payload(
    payload: SlotPayload,
    *,
    day: date,
    resource: TenantResource | None,
    resource_id: str,
    tenant: TenantPayload,
    venue: Venue,
    tz: tzinfo,
    now: datetime,
) -> CourtSlot:
    # Local wall-clock start; the end is elapsed time, so add the duration in UTC
    start = datetime.combine(day, time.fromisoformat(payload.start_time), tzinfo=tz)
    start = start.astimezone(timezone.utc)
    end = start + timedelta(minutes=payload.duration)
    price, currency = parse_price(payload.price)

    props = resource.properties if resource else {}
    resource_type = props.get("resource_type")
    court_type = resource_type if resource_type in ("indoor", "outdoor") else "indoor"

    return CourtSlot(
        id=f"{PROVIDER_NAME}_{venue.id}_{resource_id}_{int(start.timestamp() * 1000)}",
        sport="padel",
        provider=PROVIDER_NAME,
        venue=venue,
        start_time=start,
        end_time=end,
        duration=payload.duration,
        price=price,
        currency=currency or "GBP",
        booking_url=booking_url(tenant),
        features=SlotFeatures(
            indoor=court_type != "outdoor",
            lights=True,
            surface="turf" if props.get("resource_feature") == "wall" else "concrete",
        ),
        sport_meta=PadelMeta(
            court_type=court_type,
            level="open",
            doubles=props.get("resource_size", "double") != "single",
        ),
        last_updated=now,
    )


def parse_availability(
    raw: list[Any],
    *,
    tenant: TenantPayload,
    venue: Venue,
    day: date,
    tz: tzinfo,
    now: datetime,
) -> list[CourtSlot]:
    """Turn one tenant's availability response into canonical slots."""
    resources = {r.resource_id: r for r in tenant.resources}
    slots: list[CourtSlot] = []

    for record in raw:
        try:
            availability = ResourceAvailabilityPayload.model_validate(record)
        except ValidationError as exc:
            logger.warning("Skipping malformed resource for %s: %s", venue.id, exc.errors()[:1])
            continue

        try:
            resource_day = date.fromisoformat(availability.start_date)
        except ValueError:
            resource_day = day

        for raw_slot in availability.slots:
            try:
                payload = SlotPayload.model_validate(raw_slot)
                slots.append(
                    _slot_from_payload(
                        payload,
                        day=resource_day,
                        resource=resources.get(availability.resource_id),
                        resource_id=availability.resource_id,
                        tenant=tenant,
                        venue=venue,
                        tz=tz,
                        now=now,
                    )
                )
            except ValueError as exc:
                # pydantic's ValidationError is a ValueError
                logger.debug("Skipping slot %r at %s: %s", raw_slot, venue.id, exc)

    return slots


# ── Web fallback: JSON-LD SportsClub blocks ───────────────────────────────


def _json_ld_items(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [d for d in data if isinstance(d, dict)]
    if isinstance(data, dict):
        if isinstance(data.get("@graph"), list):
            return [d for d in data["@graph"] if isinstance(d, dict)]
        return [data]
    return []


def _slug_from_url(url: str | None) -> str | None:
    if not url:
        return None
    parts = [p for p in urlparse(url).path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "clubs":
        return parts[1]
    return None


def parse_json_ld_tenants(html: str, city: str) -> list[TenantPayload]:
    """Build tenant records from ``SportsClub`` JSON-LD on a public page."""
    soup = BeautifulSoup(html, "html.parser")
    tenants: list[TenantPayload] = []

    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(tag.string or "")
        except ValueError:
            continue
        for item in _json_ld_items(data):
            if item.get("@type") != "SportsClub" or not item.get("name"):
                continue
            slug = _slug_from_url(item.get("url"))
            tenant_id = str(item.get("identifier") or slug or f"structured_{len(tenants)}")
            address = item.get("address") if isinstance(item.get("address"), dict) else {}
            image = item.get("image")
            tenants.append(
                TenantPayload(
                    tenant_id=tenant_id,
                    tenant_name=str(item["name"]),
                    slug=slug,
                    playtomic_status=ACTIVE_STATUS,
                    address=TenantAddress(
                        street=address.get("streetAddress"),
                        city=address.get("addressLocality") or city,
                        postal_code=address.get("postalCode"),
                    ),
                    images=[image] if isinstance(image, str) else [],
                )
            )

    return tenants
