"""
pipeline.py — the frame → products orchestrator.

    fingerprint ─┬─ cache hit  ─────────────────────────────────────┐
                 └─ cache miss → extract → search+rank → store(bg) ─┴→ boost → response

  • The cache holds the un-boosted result; boosts are recomputed and applied
    on every request, hit or miss.
  • Cache writes, impression logging and Amplitude events run as background
    tasks. They are never awaited on the response path and their failures
    are only logged.
  • ExtractionError (or anything unexpected during extract/search) surfaces
    as PipelineError. A failed search for one item only empties its group.

All collaborators are passed in at construction; main.py builds them once.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Optional

import boost
from analytics import AnalyticsSink
from database import Database
from frame_cache import FrameCache, fingerprint
from item_extractor import ItemExtractor
from models import BoostTable, FrameResponse, FrameResult, ProductClick, SessionMetadata
from search_fanout import SearchFanout

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Generic 'processing failed' signal surfaced to the caller."""


class FramePipeline:

    def __init__(
        self,
        db: Database,
        cache: FrameCache,
        extractor: ItemExtractor,
        fanout: SearchFanout,
        sink: Optional[AnalyticsSink] = None,
    ) -> None:
        self._db = db
        self._cache = cache
        self._extractor = extractor
        self._fanout = fanout
        self._sink = sink or AnalyticsSink()
        self._tasks: set[asyncio.Task] = set()

    # ── Public API ────────────────────────────────────────────────────────────

    async def process_frame(
        self,
        image_bytes: bytes,
        session: Optional[SessionMetadata] = None,
    ) -> FrameResponse:
        session = session or SessionMetadata()
        request_id = str(uuid.uuid4())
        frame_hash = fingerprint(image_bytes)

        self._track("frame_captured", session.user_id, {"image_size_bytes": len(image_bytes)})

        cached = await self._cache.lookup(frame_hash)
        if cached is not None:
            self._track("cache_hit", session.user_id, {"frameHash": frame_hash})
            boosted = boost.apply_boosts(cached.result, await self._load_boosts())
            self._record_impressions(boosted, session, cached.session_id, request_id)
            return FrameResponse(
                result=boosted,
                session_id=cached.session_id,
                request_id=request_id,
                cached=True,
            )

        self._track("cache_miss", session.user_id, {"frameHash": frame_hash})
        session_id = str(uuid.uuid4())

        try:
            items = await self._extractor.extract(image_bytes)
            groups = await self._fanout.search_all(items)
            result = FrameResult(fingerprint=frame_hash, items=tuple(items), groups=tuple(groups))
        except Exception as exc:
            logger.error("Frame %s failed: %s", frame_hash[:12], exc, exc_info=True)
            self._track("error_occurred", session.user_id, {
                "error_message": str(exc) or "Failed to analyze image",
                "error_stage": "shop-frame",
            })
            raise PipelineError("Failed to analyze image") from exc

        self._spawn(
            self._cache.store(
                frame_hash, result, session_id,
                video_id=session.video_id, timestamp_sec=session.timestamp_sec,
            ),
            "cache store",
        )

        boosted = boost.apply_boosts(result, await self._load_boosts())
        self._record_impressions(boosted, session, session_id, request_id)
        self._track("items_detected", session.user_id, {"items_detected_count": len(result.items)})
        self._track("catalog_results_shown", session.user_id, {"results_count": len(result.groups)})

        return FrameResponse(result=boosted, session_id=session_id, request_id=request_id)

    def record_product_click(self, click: ProductClick) -> None:
        """Feed a product click back into the engagement log (background)."""
        self._spawn(boost.record_click(self._db, click), "click record")
        self._track("product_clicked", click.user_id, {
            "category": click.category,
            "query": click.query_text,
            "productId": click.product_id,
            "productUrl": click.product_url,
            "requestId": click.request_id,
        })

    def track(
        self,
        event_name: str,
        user_id: Optional[str],
        props: Optional[dict[str, Any]] = None,
        user_props: Optional[dict[str, Any]] = None,
    ) -> None:
        """Forward an arbitrary caller event to the analytics sink (background)."""
        self._track(event_name, user_id, props, user_props)

    async def drain(self) -> None:
        """Wait for every outstanding background task (shutdown / tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _load_boosts(self) -> BoostTable:
        try:
            table = await boost.compute_boosts(self._db)
        except Exception as exc:
            logger.error("[Boosts] Failed to load boosts: %s", exc)
            return BoostTable()
        boost.log_boosts(table)
        return table

    def _record_impressions(
        self,
        result: FrameResult,
        session: SessionMetadata,
        session_id: str,
        request_id: str,
    ) -> None:
        if result.product_count == 0:
            return
        self._spawn(
            boost.record_impressions(self._db, result, session.user_id, session_id, request_id),
            "impression record",
        )

    def _track(
        self,
        event_name: str,
        user_id: Optional[str],
        props: Optional[dict[str, Any]] = None,
        user_props: Optional[dict[str, Any]] = None,
    ) -> None:
        if not self._sink.enabled:
            return
        self._spawn(self._sink.track(event_name, user_id, props, user_props), f"track {event_name}")

    def _spawn(self, coro: Awaitable, label: str) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error("Background %s failed: %s", label, exc)

        task.add_done_callback(_done)
