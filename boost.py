"""
boost.py — engagement boosts from the impression / click log.

compute_boosts() turns the trailing window of analytics_events into a
BoostTable:

    boost = 1 + clicks / impressions   if impressions >= BOOST_MIN_IMPRESSIONS
    boost = 1                          otherwise

Categories and query texts are aggregated independently.

apply_boosts() re-orders a FrameResult with a table:
  • inside each group, product i of N scores ((N - i) / N) * query_boost,
    then a stable descending sort
  • groups (with their items) are stable-sorted by category boost

A table is computed per request and never cached; only the un-boosted
result lives in the frame cache.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import config
from database import Database
from models import BoostTable, FrameResult, InteractionEvent, ProductClick, ResultGroup

logger = logging.getLogger(__name__)


def compute_boost(clicks: int, impressions: int, min_impressions: Optional[int] = None) -> float:
    if min_impressions is None:
        min_impressions = config.BOOST_MIN_IMPRESSIONS
    if not impressions or impressions < min_impressions:
        return 1.0
    return 1.0 + clicks / impressions


async def compute_boosts(db: Database, lookback_days: Optional[float] = None) -> BoostTable:
    """Aggregate the trailing window into a BoostTable."""
    if lookback_days is None:
        lookback_days = config.BOOST_LOOKBACK_DAYS
    since = datetime.now(timezone.utc) - timedelta(days=lookback_days)

    category_rows = await db.aggregate_interactions("category", since)
    query_rows = await db.aggregate_interactions("query_text", since)

    return BoostTable(
        by_category={k: compute_boost(c, i) for k, (i, c) in category_rows.items()},
        by_query={k: compute_boost(c, i) for k, (i, c) in query_rows.items()},
    )


def _boost_group(group: ResultGroup, query_boost: float) -> ResultGroup:
    n = len(group.products)
    if n < 2 or query_boost == 1.0:
        return group
    scored = [((n - i) / n * query_boost, p) for i, p in enumerate(group.products)]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return ResultGroup(query=group.query, products=tuple(p for _, p in scored))


def apply_boosts(result: FrameResult, table: BoostTable) -> FrameResult:
    """Return a re-ordered copy of result. Same table in → same order out."""
    groups = [
        _boost_group(g, table.query_boost(g.query.query_text))
        for g in result.groups
    ]
    groups.sort(
        key=lambda g: table.category_boost(g.query.item.group_category),
        reverse=True,
    )
    return FrameResult(
        fingerprint=result.fingerprint,
        items=tuple(g.query.item for g in groups),
        groups=tuple(groups),
    )


def log_boosts(table: BoostTable) -> None:
    """Log the strongest boosts (top 5 of each kind)."""
    if table.is_empty:
        logger.info("[Boosts] No boost data available yet.")
        return
    top_categories = sorted(table.by_category.items(), key=lambda kv: kv[1], reverse=True)[:5]
    top_queries = sorted(table.by_query.items(), key=lambda kv: kv[1], reverse=True)[:5]
    logger.info("[Boosts] Category boosts: %s", top_categories)
    logger.info("[Boosts] Query boosts: %s", top_queries)


# ── Recording ─────────────────────────────────────────────────────────────────

async def record_impressions(
    db: Database,
    result: FrameResult,
    user_id: str,
    session_id: Optional[str],
    request_id: Optional[str] = None,
) -> int:
    """One impression per product actually returned. Returns events written."""
    now = datetime.now(timezone.utc)
    request_id = request_id or str(uuid.uuid4())
    events = [
        InteractionEvent(
            kind="impression",
            category=group.query.item.group_category,
            query_text=group.query.query_text,
            product_id=product.ref,
            product_url=product.canonical_url or "",
            session_id=session_id,
            user_id=user_id or "anonymous",
            request_id=request_id,
            timestamp=now,
        )
        for group in result.groups
        for product in group.products
    ]
    return await db.insert_events(events)


async def record_click(db: Database, click: ProductClick) -> None:
    await db.insert_events([
        InteractionEvent(
            kind="click",
            category=click.category,
            query_text=click.query_text,
            product_id=click.product_ref,
            product_url=click.product_url or "",
            session_id=click.session_id,
            user_id=click.user_id or "anonymous",
            request_id=click.request_id,
            timestamp=datetime.now(timezone.utc),
        )
    ])
