"""
SQLite persistence layer using aiosqlite.

Holds the slot cache (one row per city/date), the append-only collection
log, the venue registry and health snapshots.  Tables are created
automatically on :meth:`PersistentCacheStore.open`.

Timestamps are stored as fixed-width UTC ISO strings so that plain
string comparison in SQL orders them correctly.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic import TypeAdapter

from playscanner.errors import StoreError
from playscanner.filters import apply_filters, sort_slots
from playscanner.models import (
    CacheEntry,
    CacheMetadata,
    CacheStats,
    CollectionRun,
    CourtSlot,
    DateRange,
    HealthSnapshot,
    SearchParams,
    Venue,
    VenueRecord,
)
from playscanner.stats import safe_percentage

logger = logging.getLogger(__name__)

_SLOTS = TypeAdapter(list[CourtSlot])

TABLES = (
    "playscanner_cache",
    "playscanner_collection_log",
    "playscanner_venues",
    "playscanner_health",
)

# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS playscanner_cache (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    cache_key       TEXT NOT NULL UNIQUE,   -- "<city>:<YYYY-MM-DD>"
    city            TEXT NOT NULL,
    date            TEXT NOT NULL,
    slots           TEXT NOT NULL,          -- JSON array of CourtSlot
    metadata        TEXT NOT NULL,          -- JSON CacheMetadata
    total_slots     INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    expires_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_cache_city_date ON playscanner_cache(city, date);
CREATE INDEX IF NOT EXISTS idx_cache_expires ON playscanner_cache(expires_at);

CREATE TABLE IF NOT EXISTS playscanner_collection_log (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    collection_id       TEXT NOT NULL,
    city                TEXT NOT NULL,
    date                TEXT NOT NULL,
    status              TEXT NOT NULL,      -- success | error
    slots_collected     INTEGER NOT NULL DEFAULT 0,
    venues_processed    INTEGER NOT NULL DEFAULT 0,
    execution_time_ms   INTEGER NOT NULL DEFAULT 0,
    provider            TEXT NOT NULL,
    error_message       TEXT,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_log_created ON playscanner_collection_log(created_at);
CREATE INDEX IF NOT EXISTS idx_log_status ON playscanner_collection_log(status);

CREATE TABLE IF NOT EXISTS playscanner_venues (
    venue_id        TEXT NOT NULL,
    provider        TEXT NOT NULL,
    city            TEXT NOT NULL,
    venue_data      TEXT NOT NULL,          -- JSON Venue
    is_active       INTEGER NOT NULL DEFAULT 1,
    last_seen       TEXT NOT NULL,
    PRIMARY KEY (venue_id, provider)
);

CREATE INDEX IF NOT EXISTS idx_venues_city ON playscanner_venues(city);

CREATE TABLE IF NOT EXISTS playscanner_health (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    component       TEXT NOT NULL,
    status          TEXT NOT NULL,
    details         TEXT NOT NULL,          -- JSON object
    checked_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_health_checked ON playscanner_health(checked_at);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_dt(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromisoformat(raw)


def _date_str(day: date | str) -> str:
    return day if isinstance(day, str) else day.isoformat()


def make_cache_key(city: str, day: date | str) -> str:
    return f"{city.strip().lower()}:{_date_str(day)}"


def format_cache_age(created_at: datetime | None, now: datetime) -> str:
    """Human label for how old a cache entry is."""
    if created_at is None:
        return "empty"
    minutes = int((now - created_at).total_seconds() // 60)
    if minutes < 1:
        return "fresh"
    if minutes < 60:
        return f"{minutes}m old"
    return f"{minutes // 60}h old"


def _row_to_entry(row: aiosqlite.Row) -> CacheEntry:
    return CacheEntry(
        cache_key=row["cache_key"],
        city=row["city"],
        date=row["date"],
        slots=_SLOTS.validate_json(row["slots"]),
        metadata=CacheMetadata.model_validate_json(row["metadata"]),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


def _row_to_run(row: aiosqlite.Row) -> CollectionRun:
    return CollectionRun(
        collection_id=row["collection_id"],
        city=row["city"],
        date=row["date"],
        status=row["status"],
        slots_collected=row["slots_collected"],
        venues_processed=row["venues_processed"],
        execution_time_ms=row["execution_time_ms"],
        provider=row["provider"],
        error_message=row["error_message"],
        created_at=row["created_at"],
    )


def _row_to_venue(row: aiosqlite.Row) -> VenueRecord:
    return VenueRecord(
        venue_id=row["venue_id"],
        provider=row["provider"],
        city=row["city"],
        venue_data=Venue.model_validate_json(row["venue_data"]),
        is_active=bool(row["is_active"]),
        last_seen=row["last_seen"],
    )


def _row_to_snapshot(row: aiosqlite.Row) -> HealthSnapshot:
    return HealthSnapshot(
        component=row["component"],
        status=row["status"],
        details=json.loads(row["details"]),
        checked_at=row["checked_at"],
    )


class PersistentCacheStore:
    """
    Durable TTL cache of collected slots plus operational history.

    ``clock`` is injectable so tests can move time without sleeping.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        default_ttl: float = 3600.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db_path = Path(db_path)
        self.default_ttl = default_ttl
        self._clock = clock
        self._db: aiosqlite.Connection | None = None
        # Serializes _transaction bodies on the shared connection
        self._write_lock = asyncio.Lock()

    # ── Connection ────────────────────────────────────────────────────────

    async def open(self) -> None:
        """Open the database and create tables if they don't exist."""
        if self._db is not None:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(str(self.db_path))
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.executescript(_SCHEMA)
            await self._db.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open cache store at {self.db_path}: {exc}") from exc
        logger.info("Cache store initialized at %s", self.db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Cache store connection closed")

    def now(self) -> datetime:
        return self._clock()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("Cache store is not open")
        return self._db

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Commit on success; roll back and raise StoreError on failure.

        Writers are serialized, so each transaction owns the connection
        from its first statement to its commit or rollback.
        """
        async with self._write_lock:
            db = self._conn()
            try:
                yield db
                await db.commit()
            except sqlite3.Error as exc:
                await db.rollback()
                raise StoreError(f"Cache store write failed: {exc}") from exc

    async def _fetchall(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> list[aiosqlite.Row]:
        db = self._conn()
        try:
            async with db.execute(sql, params) as cur:
                return list(await cur.fetchall())
        except sqlite3.Error as exc:
            raise StoreError(f"Cache store read failed: {exc}") from exc

    async def _fetchone(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> aiosqlite.Row | None:
        rows = await self._fetchall(sql, params)
        return rows[0] if rows else None

    # ══════════════════════════════════════════════════════════════════════
    #                    SLOT CACHE
    # ══════════════════════════════════════════════════════════════════════

    async def get(self, city: str, day: date | str) -> CacheEntry | None:
        """Return the cache entry for *city*/*day*, or None if absent or expired."""
        row = await self._fetchone(
            "SELECT * FROM playscanner_cache WHERE cache_key = ? AND expires_at > ?",
            (make_cache_key(city, day), _iso(self.now())),
        )
        return _row_to_entry(row) if row else None

    async def upsert(
        self,
        city: str,
        day: date | str,
        slots: list[CourtSlot],
        *,
        provider: str,
        ttl: float | None = None,
    ) -> CacheEntry:
        """Insert or fully replace the entry for *city*/*day*."""
        now = self.now()
        ttl = self.default_ttl if ttl is None else ttl
        expires = now + timedelta(seconds=ttl)
        key = make_cache_key(city, day)
        metadata = CacheMetadata(
            total_slots=len(slots),
            unique_venues=len({s.venue.id for s in slots}),
            collected_at=now,
            provider=provider,
        )

        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO playscanner_cache
                    (cache_key, city, date, slots, metadata, total_slots, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    city = excluded.city,
                    date = excluded.date,
                    slots = excluded.slots,
                    metadata = excluded.metadata,
                    total_slots = excluded.total_slots,
                    created_at = excluded.created_at,
                    expires_at = excluded.expires_at
                """,
                (
                    key,
                    city.strip().lower(),
                    _date_str(day),
                    _SLOTS.dump_json(slots, by_alias=True).decode(),
                    metadata.model_dump_json(by_alias=True),
                    len(slots),
                    _iso(now),
                    _iso(expires),
                ),
            )

        logger.debug("Cached %d slots for %s (expires %s)", len(slots), key, _iso(expires))
        return CacheEntry(
            cache_key=key,
            city=city.strip().lower(),
            date=_date_str(day),
            slots=slots,
            metadata=metadata,
            created_at=now,
            expires_at=expires,
        )

    async def search(self, params: SearchParams, *, tz: tzinfo = timezone.utc) -> list[CourtSlot]:
        """Filtered, sorted slots from the live cache entry for the query's city/date."""
        entry = await self.get(params.location, params.date)
        if entry is None:
            return []
        return sort_slots(apply_filters(entry.slots, params, tz))

    async def cache_age(self, city: str, day: date | str) -> str:
        """``fresh`` / ``Nm old`` / ``Nh old`` for a live entry, ``empty`` otherwise."""
        now = self.now()
        row = await self._fetchone(
            "SELECT created_at FROM playscanner_cache WHERE cache_key = ? AND expires_at > ?",
            (make_cache_key(city, day), _iso(now)),
        )
        return format_cache_age(_parse_dt(row["created_at"]) if row else None, now)

    async def get_cache_stats(self) -> CacheStats:
        now = _iso(self.now())
        row = await self._fetchone(
            """
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN expires_at > :now THEN 1 ELSE 0 END) AS active,
                SUM(CASE WHEN expires_at > :now THEN total_slots ELSE 0 END) AS slots,
                COUNT(DISTINCT CASE WHEN expires_at > :now THEN city END) AS cities,
                MIN(CASE WHEN expires_at > :now THEN date END) AS oldest,
                MAX(CASE WHEN expires_at > :now THEN date END) AS newest
            FROM playscanner_cache
            """,
            {"now": now},
        )
        last = await self.get_last_successful_collection()
        total = row["total"] or 0
        active = row["active"] or 0
        return CacheStats(
            total_entries=total,
            active_entries=active,
            expired_entries=total - active,
            total_slots=row["slots"] or 0,
            cities_covered=row["cities"] or 0,
            date_range=DateRange(oldest=row["oldest"], newest=row["newest"]),
            last_collection=last,
        )

    async def cleanup(self) -> int:
        """Delete expired cache entries.  Returns how many were removed."""
        async with self._transaction() as db:
            cur = await db.execute(
                "DELETE FROM playscanner_cache WHERE expires_at <= ?",
                (_iso(self.now()),),
            )
            removed = cur.rowcount
        if removed:
            logger.info("Removed %d expired cache entries", removed)
        return removed

    async def prune_history(self, retention_days: int) -> dict[str, int]:
        """Drop collection logs and health snapshots older than *retention_days*."""
        cutoff = _iso(self.now() - timedelta(days=retention_days))
        async with self._transaction() as db:
            logs = await db.execute(
                "DELETE FROM playscanner_collection_log WHERE created_at < ?", (cutoff,)
            )
            health = await db.execute(
                "DELETE FROM playscanner_health WHERE checked_at < ?", (cutoff,)
            )
            counts = {"collection_logs": logs.rowcount, "health_snapshots": health.rowcount}
        if any(counts.values()):
            logger.info("Pruned history older than %d days: %s", retention_days, counts)
        return counts

    # ══════════════════════════════════════════════════════════════════════
    #                    COLLECTION LOG
    # ══════════════════════════════════════════════════════════════════════

    async def log_collection(self, run: CollectionRun) -> CollectionRun:
        created = run.created_at or self.now()
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO playscanner_collection_log
                    (collection_id, city, date, status, slots_collected, venues_processed,
                     execution_time_ms, provider, error_message, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run.collection_id,
                    run.city.strip().lower(),
                    _date_str(run.date),
                    run.status,
                    run.slots_collected,
                    run.venues_processed,
                    run.execution_time_ms,
                    run.provider,
                    run.error_message,
                    _iso(created),
                ),
            )
        return run.model_copy(update={"created_at": created})

    async def get_recent_collections(self, limit: int = 20) -> list[CollectionRun]:
        """Newest first."""
        rows = await self._fetchall(
            "SELECT * FROM playscanner_collection_log ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_run(r) for r in rows]

    async def get_collections_since(self, hours: float) -> list[CollectionRun]:
        since = _iso(self.now() - timedelta(hours=hours))
        rows = await self._fetchall(
            """
            SELECT * FROM playscanner_collection_log
            WHERE created_at >= ? ORDER BY created_at DESC, id DESC
            """,
            (since,),
        )
        return [_row_to_run(r) for r in rows]

    async def get_collection_success_rate(self, window_hours: float = 24) -> float:
        """Percentage (0-100) of successful runs in the window; 0.0 when there are none."""
        since = _iso(self.now() - timedelta(hours=window_hours))
        row = await self._fetchone(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) AS ok
            FROM playscanner_collection_log WHERE created_at >= ?
            """,
            (since,),
        )
        return safe_percentage(row["ok"] or 0, row["total"] or 0)

    async def count_collections_since(self, window_hours: float) -> int:
        since = _iso(self.now() - timedelta(hours=window_hours))
        row = await self._fetchone(
            "SELECT COUNT(*) AS total FROM playscanner_collection_log WHERE created_at >= ?",
            (since,),
        )
        return row["total"] or 0

    async def get_last_successful_collection(self) -> datetime | None:
        row = await self._fetchone(
            "SELECT MAX(created_at) AS last FROM playscanner_collection_log WHERE status = 'success'"
        )
        return _parse_dt(row["last"]) if row else None

    # ══════════════════════════════════════════════════════════════════════
    #                    VENUES
    # ══════════════════════════════════════════════════════════════════════

    async def upsert_venues(self, venues: list[Venue], city: str) -> int:
        """Register venues seen during collection; returns how many were written."""
        if not venues:
            return 0
        now = _iso(self.now())
        async with self._transaction() as db:
            await db.executemany(
                """
                INSERT INTO playscanner_venues
                    (venue_id, provider, city, venue_data, is_active, last_seen)
                VALUES (?, ?, ?, ?, 1, ?)
                ON CONFLICT(venue_id, provider) DO UPDATE SET
                    city = excluded.city,
                    venue_data = excluded.venue_data,
                    is_active = 1,
                    last_seen = excluded.last_seen
                """,
                [
                    (v.id, v.provider, city.strip().lower(), v.model_dump_json(by_alias=True), now)
                    for v in venues
                ],
            )
        return len(venues)

    async def list_venues(
        self, city: str | None = None, *, active_only: bool = True
    ) -> list[VenueRecord]:
        sql = "SELECT * FROM playscanner_venues WHERE 1 = 1"
        params: list = []
        if city is not None:
            sql += " AND city = ?"
            params.append(city.strip().lower())
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY city, venue_id"
        return [_row_to_venue(r) for r in await self._fetchall(sql, params)]

    # ══════════════════════════════════════════════════════════════════════
    #                    HEALTH SNAPSHOTS
    # ══════════════════════════════════════════════════════════════════════

    async def record_health_snapshot(
        self, component: str, status: str, details: dict[str, Any] | None = None
    ) -> HealthSnapshot:
        snapshot = HealthSnapshot(
            component=component,
            status=status,
            details=details or {},
            checked_at=self.now(),
        )
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO playscanner_health (component, status, details, checked_at)
                VALUES (?, ?, ?, ?)
                """,
                (component, status, json.dumps(snapshot.details, default=str), _iso(snapshot.checked_at)),
            )
        return snapshot

    async def get_recent_health_snapshots(self, limit: int = 20) -> list[HealthSnapshot]:
        rows = await self._fetchall(
            "SELECT * FROM playscanner_health ORDER BY checked_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_snapshot(r) for r in rows]

    # ── Self check ────────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        """True when the connection is open and every table exists."""
        if self._db is None:
            return False
        try:
            rows = await self._fetchall(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name IN (?, ?, ?, ?)",
                TABLES,
            )
        except StoreError:
            logger.exception("Cache store health check failed")
            return False
        return {r["name"] for r in rows} == set(TABLES)
