"""
Tests for catalog_search.py, the mock backend and the blended backend.

Covers:
  - normalize_source / build_backend selection per PRODUCT_SOURCE
  - CatalogSearch: no backend → empty result, SearchError passthrough,
    fallback to mock, unexpected exceptions wrapped, limit enforced
  - MockCatalogBackend: deterministic, ≤3 products
  - BlendedBackend: ceil(limit/2) split, primary first, truncation,
    one failing catalog dropped, both failing → SearchError
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

import config
from catalog_search import (
    CatalogResult, CatalogSearch, build_backend, build_catalog_search, normalize_source,
)
from conftest import make_product
from search_backends.base import CatalogBackend, SearchError
from search_backends.blended_backend import BlendedBackend
from search_backends.mock_backend import MockCatalogBackend
from search_backends.rapidapi_backend import RapidAPIBackend
from search_backends.shopify_backend import ShopifyCatalogBackend


def make_backend(products=None, side_effect=None, name="fake") -> CatalogBackend:
    backend = MagicMock(spec=CatalogBackend)
    backend.name = name
    backend.search = AsyncMock(return_value=products or [], side_effect=side_effect)
    return backend


@pytest.fixture
def no_credentials(monkeypatch):
    monkeypatch.setattr(config, "CATALOG_USE_MOCK", False)
    monkeypatch.setattr(config, "CATALOG_FALLBACK_TO_MOCK", False)
    monkeypatch.setattr(config, "SHOPIFY_CLIENT_ID", None)
    monkeypatch.setattr(config, "SHOPIFY_CLIENT_SECRET", None)
    monkeypatch.setattr(config, "RAPIDAPI_KEY", None)


# ── normalize_source ──────────────────────────────────────────────────────────

class TestNormalizeSource:
    @pytest.mark.parametrize("raw,expected", [
        ("shopify", "shopify"),
        ("AMAZON", "amazon"),
        (" all ", "all"),
        ("ebay", "shopify"),
        ("", "shopify"),
        (None, "shopify"),
    ])
    def test_values(self, raw, expected):
        assert normalize_source(raw) == expected


# ── build_backend ─────────────────────────────────────────────────────────────

class TestBuildBackend:
    def test_shopify_without_credentials_is_none(self, no_credentials):
        assert build_backend("shopify") is None

    def test_shopify_with_credentials(self, no_credentials, monkeypatch):
        monkeypatch.setattr(config, "SHOPIFY_CLIENT_ID", "id")
        monkeypatch.setattr(config, "SHOPIFY_CLIENT_SECRET", "secret")
        assert isinstance(build_backend("shopify"), ShopifyCatalogBackend)

    def test_mock_mode_overrides_credentials(self, no_credentials, monkeypatch):
        monkeypatch.setattr(config, "CATALOG_USE_MOCK", True)
        monkeypatch.setattr(config, "SHOPIFY_CLIENT_ID", "id")
        monkeypatch.setattr(config, "SHOPIFY_CLIENT_SECRET", "secret")
        assert isinstance(build_backend("shopify"), MockCatalogBackend)

    def test_amazon_with_key(self, no_credentials, monkeypatch):
        monkeypatch.setattr(config, "RAPIDAPI_KEY", "rk")
        assert isinstance(build_backend("amazon"), RapidAPIBackend)

    def test_amazon_without_key_is_mock(self, no_credentials):
        backend = build_backend("amazon")
        assert isinstance(backend, MockCatalogBackend)
        assert "amazon" in backend.name

    def test_all_blends_both(self, no_credentials, monkeypatch):
        monkeypatch.setattr(config, "SHOPIFY_CLIENT_ID", "id")
        monkeypatch.setattr(config, "SHOPIFY_CLIENT_SECRET", "secret")
        assert isinstance(build_backend("all"), BlendedBackend)

    def test_all_without_shopify_searches_amazon_only(self, no_credentials):
        assert isinstance(build_backend("all"), MockCatalogBackend)

    def test_default_from_config(self, no_credentials, monkeypatch):
        monkeypatch.setattr(config, "PRODUCT_SOURCE", "amazon")
        assert isinstance(build_backend(), MockCatalogBackend)

    def test_build_catalog_search_fallback(self, no_credentials, monkeypatch):
        monkeypatch.setattr(config, "CATALOG_FALLBACK_TO_MOCK", True)
        search = build_catalog_search("shopify")
        assert search.backend_name == "not configured"
        assert search._fallback is not None


# ── CatalogSearch.search ──────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestCatalogSearch:
    async def test_returns_products(self):
        products = [make_product("a"), make_product("b")]
        result = await CatalogSearch(make_backend(products)).search("mug", 3)
        assert result == CatalogResult(query="mug", products=tuple(products))

    async def test_truncates_to_limit(self):
        products = [make_product(str(i)) for i in range(6)]
        result = await CatalogSearch(make_backend(products)).search("mug", 2)
        assert len(result.products) == 2

    async def test_no_backend_is_empty(self):
        result = await CatalogSearch(None).search("mug", 3)
        assert result.products == ()

    async def test_empty_result_is_not_an_error(self):
        result = await CatalogSearch(make_backend([])).search("mug", 3)
        assert result.products == ()

    async def test_search_error_propagates_without_fallback(self):
        backend = make_backend(side_effect=SearchError("HTTP 500"))
        with pytest.raises(SearchError, match="500"):
            await CatalogSearch(backend).search("mug", 3)

    async def test_fallback_used_on_search_error(self):
        backend = make_backend(side_effect=SearchError("HTTP 401"))
        fallback = make_backend([make_product("mock")], name="mock")
        result = await CatalogSearch(backend, fallback=fallback).search("mug", 3)
        assert [p.id for p in result.products] == ["mock"]
        fallback.search.assert_awaited_once_with("mug", 3)

    async def test_unexpected_exception_wrapped(self):
        backend = make_backend(side_effect=ValueError("bad json"))
        with pytest.raises(SearchError, match="bad json"):
            await CatalogSearch(backend).search("mug", 3)

    async def test_backend_name(self):
        assert CatalogSearch(make_backend(name="Shopify")).backend_name == "Shopify"


# ── MockCatalogBackend ────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestMockBackend:
    async def test_deterministic(self):
        backend = MockCatalogBackend(delay=0)
        assert await backend.search("blue sneakers", 3) == await backend.search("blue sneakers", 3)

    async def test_at_most_three(self):
        assert len(await MockCatalogBackend(delay=0).search("mug", 5)) == 3
        assert len(await MockCatalogBackend(delay=0).search("mug", 1)) == 1

    async def test_products_complete(self):
        for p in await MockCatalogBackend("amazon", delay=0).search("desk lamp", 3):
            assert p.id.startswith("mock_amazon_")
            assert p.marketplace == "amazon"
            assert p.price is not None and p.price >= 20
            assert p.image_url and p.canonical_url and p.vendor

    async def test_distinct_urls(self):
        products = await MockCatalogBackend(delay=0).search("desk lamp", 3)
        assert len({p.canonical_url for p in products}) == 3


# ── BlendedBackend ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestBlendedBackend:
    async def test_split_limit_rounds_up(self):
        primary = make_backend([make_product("s1"), make_product("s2")], name="shopify")
        secondary = make_backend([make_product("a1"), make_product("a2")], name="amazon")
        products = await BlendedBackend(primary, secondary).search("mug", 3)

        primary.search.assert_awaited_once_with("mug", 2)
        secondary.search.assert_awaited_once_with("mug", 2)
        assert [p.id for p in products] == ["s1", "s2", "a1"]

    async def test_limit_one_asks_each_for_one(self):
        primary = make_backend([make_product("s1")])
        secondary = make_backend([make_product("a1")])
        products = await BlendedBackend(primary, secondary).search("mug", 1)
        secondary.search.assert_awaited_once_with("mug", 1)
        assert [p.id for p in products] == ["s1"]

    async def test_secondary_failure_keeps_primary(self):
        primary = make_backend([make_product("s1"), make_product("s2")])
        secondary = make_backend(side_effect=SearchError("down"))
        products = await BlendedBackend(primary, secondary).search("mug", 4)
        assert [p.id for p in products] == ["s1", "s2"]

    async def test_primary_failure_keeps_secondary(self):
        primary = make_backend(side_effect=RuntimeError("boom"))
        secondary = make_backend([make_product("a1")])
        products = await BlendedBackend(primary, secondary).search("mug", 4)
        assert [p.id for p in products] == ["a1"]

    async def test_both_failing_raises(self):
        primary = make_backend(side_effect=SearchError("down"))
        secondary = make_backend(side_effect=SearchError("also down"))
        with pytest.raises(SearchError, match="all catalogs failed"):
            await BlendedBackend(primary, secondary).search("mug", 4)

    async def test_catalog_search_returns_surviving_side(self):
        primary = make_backend([make_product("s1"), make_product("s2")])
        secondary = make_backend(side_effect=SearchError("down"))
        result = await CatalogSearch(BlendedBackend(primary, secondary)).search("mug", 3)
        assert [p.id for p in result.products] == ["s1", "s2"]

    async def test_name(self):
        backend = BlendedBackend(make_backend(name="A"), make_backend(name="B"))
        assert backend.name == "Blended (A + B)"
