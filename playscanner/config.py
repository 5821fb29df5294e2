"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).

Values are collected into a frozen :class:`Settings` instance so the
application (and tests) can build their own configuration explicitly
instead of reading globals at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

VERSION = "2.0.0"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    # ── Environment ───────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False
    log_level: str = "info"

    # ── Storage ───────────────────────────────────────────────────────
    db_path: str = str(DATA_DIR / "playscanner.db")
    cache_ttl_seconds: float = 3600.0
    log_retention_days: int = 30

    # ── Auth ──────────────────────────────────────────────────────────
    # Shared bearer secret for /collect, /admin and /test.  Empty means
    # every privileged request is rejected.
    collect_secret: str = ""

    # ── Search ────────────────────────────────────────────────────────
    use_cached_mode: bool = True
    search_timeout_seconds: float = 25.0
    health_timeout_seconds: float = 10.0
    health_cache_seconds: float = 300.0
    # How long an identical live search is answered without calling providers again
    live_cache_seconds: float = 60.0
    timezone: str = "Europe/London"

    # ── Collection ────────────────────────────────────────────────────
    collect_provider: str = "playtomic"
    cities: tuple[str, ...] = field(default_factory=lambda: ("London",))
    days_ahead: int = 7
    request_delay_seconds: float = 2.0
    collect_timeout_seconds: float = 45.0
    # 0 disables the in-process scheduler (collection is then triggered
    # externally through POST /collect or scripts/collect.py).
    collect_interval_seconds: float = 0.0

    # ── Health ────────────────────────────────────────────────────────
    freshness_hours: float = 2.0
    success_rate_window_hours: int = 24

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the current process environment."""
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            debug=_env_bool("PLAYSCANNER_DEBUG"),
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
            db_path=os.getenv("PLAYSCANNER_DB_PATH", str(DATA_DIR / "playscanner.db")),
            cache_ttl_seconds=float(os.getenv("PLAYSCANNER_CACHE_TTL", "3600")),
            log_retention_days=int(os.getenv("PLAYSCANNER_LOG_RETENTION_DAYS", "30")),
            collect_secret=os.getenv("PLAYSCANNER_COLLECT_SECRET", ""),
            use_cached_mode=_env_bool("PLAYSCANNER_USE_CACHED", default=True),
            search_timeout_seconds=float(os.getenv("PLAYSCANNER_SEARCH_TIMEOUT", "25")),
            health_timeout_seconds=float(os.getenv("PLAYSCANNER_HEALTH_TIMEOUT", "10")),
            health_cache_seconds=float(os.getenv("PLAYSCANNER_HEALTH_CACHE", "300")),
            live_cache_seconds=float(os.getenv("PLAYSCANNER_LIVE_CACHE_TTL", "60")),
            timezone=os.getenv("PLAYSCANNER_TIMEZONE", "Europe/London"),
            collect_provider=os.getenv("PLAYSCANNER_COLLECT_PROVIDER", "playtomic"),
            cities=_env_list("PLAYSCANNER_CITIES", "London"),
            days_ahead=int(os.getenv("PLAYSCANNER_DAYS_AHEAD", "7")),
            request_delay_seconds=float(os.getenv("PLAYSCANNER_REQUEST_DELAY", "2")),
            collect_timeout_seconds=float(os.getenv("PLAYSCANNER_COLLECT_TIMEOUT", "45")),
            collect_interval_seconds=float(os.getenv("PLAYSCANNER_COLLECT_INTERVAL", "0")),
            freshness_hours=float(os.getenv("PLAYSCANNER_FRESHNESS_HOURS", "2")),
            success_rate_window_hours=int(os.getenv("PLAYSCANNER_SUCCESS_WINDOW_HOURS", "24")),
        )

    def missing_configuration(self) -> list[str]:
        """Names of env vars that should be set in production but aren't."""
        missing: list[str] = []
        if not self.collect_secret:
            missing.append("PLAYSCANNER_COLLECT_SECRET")
        return missing
