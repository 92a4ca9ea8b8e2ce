"""
database.py — async SQLite persistence via aiosqlite.

Tables:
  frame_cache       : one row per processed frame (append-only; the cache)
  analytics_events  : impression / click log feeding the engagement boosts

Both tables are insert-only from the pipeline's point of view: nothing here
updates or deletes a row, so concurrent requests never need a lock.

The DB file is created automatically on first run.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite

from models import CacheEntry, FrameResult, InteractionEvent

logger = logging.getLogger(__name__)

# Store the DB in a dedicated data/ directory so Docker volume mounts work
# correctly (mount ./data:/app/data) and the file survives container restarts.
_DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
_DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = str(_DATA_DIR / "frame_shop.db")
_lock = asyncio.Lock()          # serialise schema migrations

# Columns analytics can be grouped by (interpolated into SQL, keep closed)
_AGGREGATE_COLUMNS = ("category", "query_text")


# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS frame_cache (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    fingerprint   TEXT    NOT NULL,
    session_id    TEXT    NOT NULL,
    video_id      TEXT,
    timestamp_sec REAL,
    result_json   TEXT    NOT NULL,
    stored_at     TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_frame_cache_fp ON frame_cache (fingerprint, stored_at);
CREATE INDEX IF NOT EXISTS idx_frame_cache_video ON frame_cache (video_id, timestamp_sec);

CREATE TABLE IF NOT EXISTS analytics_events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    kind        TEXT    NOT NULL,            -- impression | click
    category    TEXT,
    query_text  TEXT,
    product_id  TEXT    NOT NULL DEFAULT 'unknown',
    product_url TEXT    NOT NULL DEFAULT '',
    session_id  TEXT,
    user_id     TEXT    NOT NULL DEFAULT 'anonymous',
    request_id  TEXT,
    ts          TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_ts       ON analytics_events (ts);
CREATE INDEX IF NOT EXISTS idx_events_category ON analytics_events (category, ts);
CREATE INDEX IF NOT EXISTS idx_events_query    ON analytics_events (query_text, ts);
CREATE INDEX IF NOT EXISTS idx_events_request  ON analytics_events (request_id);
"""

def _iso(dt: datetime) -> str:
    """UTC ISO-8601 with fixed precision so string comparison == time comparison."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Database:
    """
    Handle to the SQLite store. One instance is created at startup and
    passed to every component that persists something.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = path

    @property
    def path(self) -> str:
        # Resolved per call so DB_PATH can be redirected (tests, DATA_DIR)
        return self._path or DB_PATH

    async def init(self) -> None:
        """Create tables if they don't exist. Safe to call multiple times."""
        async with _lock:
            async with aiosqlite.connect(self.path) as db:
                await db.executescript(_SCHEMA)
                await db.commit()
        logger.info("Database initialised at %s", self.path)

    # ── Frame cache ───────────────────────────────────────────────────────────

    async def insert_cache_entry(self, entry: CacheEntry) -> int:
        """Append a cache row. Returns its id."""
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                """INSERT INTO frame_cache
                   (fingerprint, session_id, video_id, timestamp_sec, result_json, stored_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    entry.fingerprint,
                    entry.session_id,
                    entry.video_id,
                    entry.timestamp_sec,
                    json.dumps(entry.result.to_dict()),
                    _iso(entry.stored_at),
                ),
            )
            await db.commit()
            return cursor.lastrowid

    async def find_latest_cache_entry(
        self,
        fingerprint: str,
        since: datetime,
    ) -> Optional[CacheEntry]:
        """Most recently stored entry for fingerprint with stored_at >= since."""
        async with aiosqlite.connect(self.path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """SELECT * FROM frame_cache
                   WHERE fingerprint = ? AND stored_at >= ?
                   ORDER BY stored_at DESC, id DESC
                   LIMIT 1""",
                (fingerprint, _iso(since)),
            ) as cursor:
                r = await cursor.fetchone()
        if r is None:
            return None
        return CacheEntry(
            fingerprint=r["fingerprint"],
            result=FrameResult.from_dict(json.loads(r["result_json"])),
            stored_at=datetime.fromisoformat(r["stored_at"]),
            session_id=r["session_id"],
            video_id=r["video_id"],
            timestamp_sec=r["timestamp_sec"],
        )

    async def count_cache_entries(self, fingerprint: Optional[str] = None) -> int:
        async with aiosqlite.connect(self.path) as db:
            if fingerprint is None:
                sql, params = "SELECT COUNT(*) FROM frame_cache", ()
            else:
                sql, params = "SELECT COUNT(*) FROM frame_cache WHERE fingerprint = ?", (fingerprint,)
            async with db.execute(sql, params) as cur:
                return (await cur.fetchone())[0]

    # ── Analytics events ──────────────────────────────────────────────────────

    async def insert_events(self, events: Iterable[InteractionEvent]) -> int:
        """Append interaction events in one transaction. Returns rows written."""
        rows = [
            (
                e.kind, e.category, e.query_text, e.product_id, e.product_url,
                e.session_id, e.user_id, e.request_id, _iso(e.timestamp),
            )
            for e in events
        ]
        if not rows:
            return 0
        async with aiosqlite.connect(self.path) as db:
            await db.executemany(
                """INSERT INTO analytics_events
                   (kind, category, query_text, product_id, product_url,
                    session_id, user_id, request_id, ts)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                rows,
            )
            await db.commit()
        return len(rows)

    async def aggregate_interactions(
        self,
        column: str,
        since: datetime,
    ) -> dict[str, tuple[int, int]]:
        """
        Count events per distinct value of `column` since the cutoff.
        Returns {value: (impressions, clicks)}. Rows with NULL are skipped.
        """
        if column not in _AGGREGATE_COLUMNS:
            raise ValueError(f"Cannot aggregate analytics by {column!r}")
        async with aiosqlite.connect(self.path) as db:
            async with db.execute(
                f"""SELECT {column},
                           SUM(CASE WHEN kind = 'impression' THEN 1 ELSE 0 END),
                           SUM(CASE WHEN kind = 'click' THEN 1 ELSE 0 END)
                    FROM analytics_events
                    WHERE ts >= ? AND {column} IS NOT NULL
                    GROUP BY {column}""",
                (_iso(since),),
            ) as cur:
                rows = await cur.fetchall()
        return {r[0]: (r[1] or 0, r[2] or 0) for r in rows}

    async def get_events(self, request_id: Optional[str] = None) -> list[dict]:
        """Raw event rows, oldest first (optionally for one request)."""
        async with aiosqlite.connect(self.path) as db:
            db.row_factory = aiosqlite.Row
            if request_id is None:
                sql, params = "SELECT * FROM analytics_events ORDER BY id", ()
            else:
                sql, params = (
                    "SELECT * FROM analytics_events WHERE request_id = ? ORDER BY id",
                    (request_id,),
                )
            async with db.execute(sql, params) as cur:
                rows = await cur.fetchall()
        return [dict(r) for r in rows]
