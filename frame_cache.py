"""
frame_cache.py — content-addressed cache of processed frames.

A frame is "the same" only when its bytes are identical: the key is the
SHA-256 of the raw image. Entries are never updated or deleted; staleness is
a lookback window applied at read time, so re-processing the same bytes just
adds another row and the newest one wins.
"""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import config
from database import Database
from models import CacheEntry, FrameResult

logger = logging.getLogger(__name__)


def fingerprint(image_bytes: bytes) -> str:
    """Deterministic hex digest of the raw image bytes."""
    return hashlib.sha256(image_bytes).hexdigest()


class FrameCache:

    def __init__(self, db: Database) -> None:
        self._db = db

    async def lookup(
        self,
        frame_hash: str,
        max_age: Optional[timedelta] = None,
    ) -> Optional[CacheEntry]:
        """
        Return the newest entry for frame_hash stored within max_age
        (default CACHE_MAX_AGE_HOURS), or None.
        A storage failure is logged and reported as a miss.
        """
        if max_age is None:
            max_age = timedelta(hours=config.CACHE_MAX_AGE_HOURS)
        cutoff = datetime.now(timezone.utc) - max_age
        try:
            entry = await self._db.find_latest_cache_entry(frame_hash, cutoff)
        except Exception as exc:
            logger.warning("Cache lookup failed for %s: %s", frame_hash[:12], exc)
            return None
        if entry:
            logger.info("[Cache] hit for frameHash=%s", frame_hash)
        return entry

    async def store(
        self,
        frame_hash: str,
        result: FrameResult,
        session_id: str,
        video_id: Optional[str] = None,
        timestamp_sec: Optional[float] = None,
    ) -> CacheEntry:
        """
        Append a new entry (never overwrites). Raises on storage failure;
        the pipeline runs this in a background task that logs the error.
        """
        entry = CacheEntry(
            fingerprint=frame_hash,
            result=result,
            stored_at=datetime.now(timezone.utc),
            session_id=session_id,
            video_id=video_id,
            timestamp_sec=timestamp_sec,
        )
        await self._db.insert_cache_entry(entry)
        logger.debug("[Cache] stored frameHash=%s session=%s", frame_hash[:12], session_id)
        return entry
