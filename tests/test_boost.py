"""
Tests for boost.py.

Covers:
  - compute_boost(): 1 + ctr above the impression floor, 1 below it
  - compute_boosts(): aggregation per category and per query, lookback window
  - apply_boosts(): in-group reorder, group reorder by category, invariant
    kept, deterministic and idempotent for a fixed table
  - record_impressions() / record_click()
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from boost import (
    apply_boosts, compute_boost, compute_boosts, log_boosts, record_click, record_impressions,
)
from conftest import make_item, make_product
from models import BoostTable, FrameResult, InteractionEvent, ProductClick, ResultGroup, SearchQuery


def event(kind, category=None, query=None, age=timedelta(0), product="p1"):
    return InteractionEvent(
        kind=kind,
        category=category,
        query_text=query,
        product_id=product,
        session_id="s",
        user_id="u",
        timestamp=datetime.now(timezone.utc) - age,
    )


def make_result(*specs) -> FrameResult:
    """specs: (label, category, [product ids])"""
    groups = []
    for label, category, pids in specs:
        item = make_item(label, category=category)
        groups.append(ResultGroup(
            query=SearchQuery.for_item(item),
            products=tuple(make_product(pid) for pid in pids),
        ))
    return FrameResult(
        fingerprint="fp",
        items=tuple(g.query.item for g in groups),
        groups=tuple(groups),
    )


# ── compute_boost ─────────────────────────────────────────────────────────────

class TestComputeBoost:
    def test_ctr_added_to_one(self):
        assert compute_boost(clicks=4, impressions=10, min_impressions=5) == pytest.approx(1.4)

    def test_below_floor_is_one(self):
        assert compute_boost(clicks=1, impressions=3, min_impressions=5) == 1.0

    def test_exactly_at_floor_counts(self):
        assert compute_boost(clicks=1, impressions=5, min_impressions=5) == pytest.approx(1.2)

    def test_no_impressions_is_one(self):
        assert compute_boost(clicks=3, impressions=0, min_impressions=0) == 1.0

    def test_no_clicks_is_one(self):
        assert compute_boost(clicks=0, impressions=50, min_impressions=5) == 1.0

    def test_floor_from_config(self, monkeypatch):
        import config
        monkeypatch.setattr(config, "BOOST_MIN_IMPRESSIONS", 20)
        assert compute_boost(clicks=4, impressions=10) == 1.0


# ── compute_boosts ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestComputeBoosts:
    async def test_apparel_and_electronics_scenario(self, db):
        events = (
            [event("impression", "apparel") for _ in range(10)]
            + [event("click", "apparel") for _ in range(4)]
            + [event("impression", "electronics") for _ in range(3)]
            + [event("click", "electronics")]
        )
        await db.insert_events(events)

        table = await compute_boosts(db)
        assert table.category_boost("apparel") == pytest.approx(1.4)
        assert table.category_boost("electronics") == 1.0

    async def test_query_boosts_aggregated_separately(self, db):
        await db.insert_events(
            [event("impression", "apparel", "blue sneakers") for _ in range(5)]
            + [event("click", "apparel", "blue sneakers")]
            + [event("impression", "apparel", "red scarf") for _ in range(5)]
        )
        table = await compute_boosts(db)
        assert table.query_boost("blue sneakers") == pytest.approx(1.2)
        assert table.query_boost("red scarf") == 1.0
        assert table.category_boost("apparel") == pytest.approx(1.1)

    async def test_events_outside_window_ignored(self, db):
        old = timedelta(days=31)
        await db.insert_events(
            [event("impression", "home", age=old) for _ in range(10)]
            + [event("click", "home", age=old) for _ in range(10)]
        )
        table = await compute_boosts(db)
        assert table.category_boost("home") == 1.0

    async def test_custom_lookback(self, db):
        age = timedelta(days=3)
        await db.insert_events(
            [event("impression", "home", age=age) for _ in range(5)]
            + [event("click", "home", age=age) for _ in range(5)]
        )
        assert (await compute_boosts(db, lookback_days=7)).category_boost("home") == 2.0
        assert (await compute_boosts(db, lookback_days=1)).category_boost("home") == 1.0

    async def test_empty_log_gives_empty_table(self, db):
        assert (await compute_boosts(db)).is_empty


# ── apply_boosts ──────────────────────────────────────────────────────────────

class TestApplyBoosts:
    def test_empty_table_keeps_order(self):
        result = make_result(("a", "home", ["1", "2"]), ("b", "apparel", ["3"]))
        assert apply_boosts(result, BoostTable()) == result

    def test_groups_sorted_by_category_boost(self):
        result = make_result(
            ("lamp", "home", ["1"]),
            ("sneakers", "apparel", ["2"]),
            ("phone", "electronics", ["3"]),
        )
        table = BoostTable(by_category={"apparel": 1.4, "electronics": 1.1})
        boosted = apply_boosts(result, table)
        assert [i.label for i in boosted.items] == ["sneakers", "phone", "lamp"]

    def test_items_follow_groups(self):
        result = make_result(("lamp", "home", ["1"]), ("sneakers", "apparel", ["2"]))
        boosted = apply_boosts(result, BoostTable(by_category={"apparel": 1.5}))
        for item, group in zip(boosted.items, boosted.groups):
            assert group.query.item == item

    def test_equal_boost_groups_keep_order(self):
        result = make_result(
            ("a", "home", ["1"]), ("b", "home", ["2"]), ("c", "apparel", ["3"]),
        )
        boosted = apply_boosts(result, BoostTable(by_category={"apparel": 1.2}))
        assert [i.label for i in boosted.items] == ["c", "a", "b"]

    def test_category_falls_back_to_label(self):
        result = make_result(("mug", None, ["1"]), ("lamp", None, ["2"]))
        boosted = apply_boosts(result, BoostTable(by_category={"lamp": 1.3}))
        assert [i.label for i in boosted.items] == ["lamp", "mug"]

    def test_uniform_query_boost_keeps_product_order(self):
        result = make_result(("mug", "home", ["1", "2", "3"]))
        boosted = apply_boosts(result, BoostTable(by_query={"mug": 1.8}))
        assert [p.id for p in boosted.groups[0].products] == ["1", "2", "3"]

    def test_deterministic(self):
        result = make_result(
            ("lamp", "home", ["1", "2"]), ("sneakers", "apparel", ["3", "4"]),
        )
        table = BoostTable(by_category={"apparel": 1.4}, by_query={"lamp": 1.2})
        assert apply_boosts(result, table) == apply_boosts(result, table)

    def test_idempotent(self):
        result = make_result(
            ("lamp", "home", ["1", "2"]),
            ("mug", "home", ["3"]),
            ("sneakers", "apparel", ["4", "5"]),
        )
        table = BoostTable(by_category={"apparel": 1.4}, by_query={"lamp": 1.2})
        once = apply_boosts(result, table)
        assert [i.label for i in once.items] == ["sneakers", "lamp", "mug"]
        assert apply_boosts(once, table) == once

    def test_does_not_mutate_input(self):
        result = make_result(("lamp", "home", ["1"]), ("sneakers", "apparel", ["2"]))
        apply_boosts(result, BoostTable(by_category={"apparel": 1.4}))
        assert [i.label for i in result.items] == ["lamp", "sneakers"]

    def test_product_set_unchanged(self):
        result = make_result(("lamp", "home", ["1", "2", "3"]), ("mug", "home", ["4"]))
        boosted = apply_boosts(result, BoostTable(by_category={"home": 1.1}, by_query={"mug": 2}))
        assert boosted.product_count == result.product_count
        assert boosted.fingerprint == result.fingerprint


class TestLogBoosts:
    def test_empty_table(self, caplog):
        with caplog.at_level(logging.INFO, logger="boost"):
            log_boosts(BoostTable())
        assert "No boost data" in caplog.text

    def test_top_boosts_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="boost"):
            log_boosts(BoostTable(by_category={"apparel": 1.4}))
        assert "apparel" in caplog.text


# ── Recording ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRecording:
    async def test_one_impression_per_product(self, db):
        result = make_result(("lamp", "home", ["1", "2"]), ("mug", None, ["3"]), ("hat", "apparel", []))
        written = await record_impressions(db, result, "user-1", "session-1", "req-1")
        assert written == 3

        rows = await db.get_events("req-1")
        assert [r["kind"] for r in rows] == ["impression"] * 3
        assert [r["category"] for r in rows] == ["home", "home", "mug"]
        assert [r["query_text"] for r in rows] == ["lamp", "lamp", "mug"]
        assert [r["product_id"] for r in rows] == ["1", "2", "3"]
        assert rows[0]["product_url"] == "https://shop.example/products/1"
        assert {r["user_id"] for r in rows} == {"user-1"}
        assert {r["session_id"] for r in rows} == {"session-1"}

    async def test_empty_result_writes_nothing(self, db):
        assert await record_impressions(db, FrameResult("fp"), "u", "s") == 0
        assert await db.get_events() == []

    async def test_request_id_generated_when_missing(self, db):
        await record_impressions(db, make_result(("lamp", "home", ["1", "2"])), "u", "s")
        rows = await db.get_events()
        assert rows[0]["request_id"]
        assert rows[0]["request_id"] == rows[1]["request_id"]

    async def test_anonymous_user_default(self, db):
        await record_impressions(db, make_result(("lamp", "home", ["1"])), "", "s")
        assert (await db.get_events())[0]["user_id"] == "anonymous"

    async def test_record_click(self, db):
        click = ProductClick(
            user_id="u", category="apparel", query_text="blue sneakers",
            product_id=None, product_url="https://shop.example/x",
            session_id="s", request_id="req-9",
        )
        await record_click(db, click)
        rows = await db.get_events("req-9")
        assert len(rows) == 1
        assert rows[0]["kind"] == "click"
        assert rows[0]["product_id"] == "https://shop.example/x"

    async def test_clicks_feed_boosts(self, db):
        result = make_result(("sneakers", "apparel", ["1", "2", "3", "4", "5"]))
        await record_impressions(db, result, "u", "s")
        for _ in range(2):
            await record_click(db, ProductClick(category="apparel", query_text="sneakers", product_id="1"))
        table = await compute_boosts(db)
        assert table.category_boost("apparel") == pytest.approx(1.4)
        assert table.query_boost("sneakers") == pytest.approx(1.4)
