"""
Playtomic integration configuration.

All the constants that describe how to talk to the playtomic.com API
and how to map their data model onto ours.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# ── Provider identity ─────────────────────────────────────────────────────

PROVIDER_NAME = "playtomic"
SPORTS: tuple[str, ...] = ("padel",)
REGIONS: tuple[str, ...] = ("uk", "es", "fr", "it")

# ── API endpoints ─────────────────────────────────────────────────────────

BASE_URL = "https://playtomic.com"

TENANTS_URL = f"{BASE_URL}/api/v1/tenants"
AVAILABILITY_URL = f"{BASE_URL}/api/v1/availability"
SEARCH_PAGE_PATH = "/search"
CLUB_URL = f"{BASE_URL}/clubs/{{slug}}"

SPORT_ID = "PADEL"
SEARCH_RADIUS_METERS = 20_000
SEARCH_PAGE_SIZE = 50

# Venue availability is fetched a few tenants at a time, with a pause between batches
VENUE_BATCH_SIZE = 5
VENUE_BATCH_PAUSE_SECONDS = 0.5

# ── Cities ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class City:
    """Search centre for venue discovery and the timezone slot times are in."""
    lat: float
    lng: float
    timezone: str


CITIES: dict[str, City] = {
    "london":     City(51.5074, -0.1278, "Europe/London"),
    "manchester": City(53.4808, -2.2426, "Europe/London"),
    "birmingham": City(52.4862, -1.8904, "Europe/London"),
    "madrid":     City(40.4168, -3.7038, "Europe/Madrid"),
    "barcelona":  City(41.3851, 2.1734, "Europe/Madrid"),
    "paris":      City(48.8566, 2.3522, "Europe/Paris"),
    "rome":       City(41.9028, 12.4964, "Europe/Rome"),
    "milan":      City(45.4642, 9.1900, "Europe/Rome"),
}

DEFAULT_CITY = "london"

# Localized spellings the tenants API returns in address.city
CITY_ALIASES: dict[str, tuple[str, ...]] = {
    "london": ("london", "londres", "londra", "лондон"),
}

# ── Tenant filtering ──────────────────────────────────────────────────────
# Only ACTIVE tenants are real, bookable venues.  The API also returns
# sandbox clubs with obvious placeholder names.

ACTIVE_STATUS = "ACTIVE"

TEST_NAME_SUBSTRINGS: tuple[str, ...] = (
    "test",
    "to be deleted",
    "deleted",
    "playground club",
    "golden rocket",
)

TEST_NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^abc\s*$"),
    re.compile(r"^club \d+$"),
    re.compile(r"^suga$"),
)

# ── HTTP defaults ─────────────────────────────────────────────────────────

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "PLAYScanner/2.0",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-GB,en;q=0.9",
    "X-Requested-With": "XMLHttpRequest",
    "Origin": BASE_URL,
    "Referer": f"{BASE_URL}/",
}

HTML_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml",
}
