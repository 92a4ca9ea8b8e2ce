"""
catalog_search.py — public interface for product catalog search.

The rest of the app imports only from here:
  from catalog_search import CatalogSearch, build_catalog_search

Source is chosen by config.PRODUCT_SOURCE:

  shopify  →  Shopify catalog (client-credentials auth)          (default)
  amazon   →  RapidAPI "Real-Time Amazon Data"
  all      →  both, each asked for half the limit, Shopify first

CATALOG_USE_MOCK=true swaps every catalog for MockCatalogBackend.
CATALOG_FALLBACK_TO_MOCK=true serves mock products when Shopify fails.
Without Shopify credentials the shopify source returns no products (with a
warning) rather than failing every search.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import config
from models import Product
from search_backends.base import CatalogBackend, SearchError

logger = logging.getLogger(__name__)

SOURCES = ("shopify", "amazon", "all")


@dataclass(frozen=True)
class CatalogResult:
    query: str
    products: tuple[Product, ...] = ()


def normalize_source(source: Optional[str]) -> str:
    source = (source or "").strip().lower()
    return source if source in SOURCES else "shopify"


# ── Backend construction ──────────────────────────────────────────────────────

def _shopify_backend() -> Optional[CatalogBackend]:
    if config.CATALOG_USE_MOCK:
        from search_backends.mock_backend import MockCatalogBackend
        return MockCatalogBackend("shopify")
    if not (config.SHOPIFY_CLIENT_ID and config.SHOPIFY_CLIENT_SECRET):
        return None
    from search_backends.shopify_backend import ShopifyCatalogBackend
    return ShopifyCatalogBackend(
        client_id=config.SHOPIFY_CLIENT_ID,
        client_secret=config.SHOPIFY_CLIENT_SECRET,
        catalog_url=config.SHOPIFY_CATALOG_URL,
        token_url=config.SHOPIFY_TOKEN_URL,
    )


def _amazon_backend() -> CatalogBackend:
    if config.RAPIDAPI_KEY and not config.CATALOG_USE_MOCK:
        from search_backends.rapidapi_backend import RapidAPIBackend
        return RapidAPIBackend(api_key=config.RAPIDAPI_KEY)
    from search_backends.mock_backend import MockCatalogBackend
    logger.info("No RAPIDAPI_KEY (or mock mode): amazon source uses mock products")
    return MockCatalogBackend("amazon")


def build_backend(source: Optional[str] = None) -> Optional[CatalogBackend]:
    """Backend for `source` (default config.PRODUCT_SOURCE). None = nothing configured."""
    source = normalize_source(source or config.PRODUCT_SOURCE)

    if source == "amazon":
        return _amazon_backend()

    shopify = _shopify_backend()
    if source == "all":
        amazon = _amazon_backend()
        if shopify is None:
            logger.warning("Shopify credentials missing: 'all' source searches Amazon only")
            return amazon
        from search_backends.blended_backend import BlendedBackend
        return BlendedBackend(shopify, amazon)

    return shopify


def build_catalog_search(source: Optional[str] = None) -> "CatalogSearch":
    fallback = None
    if config.CATALOG_FALLBACK_TO_MOCK:
        from search_backends.mock_backend import MockCatalogBackend
        fallback = MockCatalogBackend("shopify")
    search = CatalogSearch(build_backend(source), fallback=fallback)
    logger.info("Catalog backend: %s", search.backend_name)
    return search


# ── Public search ─────────────────────────────────────────────────────────────

class CatalogSearch:

    def __init__(
        self,
        backend: Optional[CatalogBackend],
        fallback: Optional[CatalogBackend] = None,
    ) -> None:
        self._backend = backend
        self._fallback = fallback

    @property
    def backend_name(self) -> str:
        return self._backend.name if self._backend else "not configured"

    async def search(self, query: str, limit: int) -> CatalogResult:
        """
        Search the active catalog. Empty results are returned, not raised.
        Raises SearchError on network/auth failure (unless a fallback is set).
        """
        if self._backend is None:
            logger.warning("[Catalog] no backend configured; returning no products for '%s'", query)
            return CatalogResult(query=query)
        try:
            products = await self._backend.search(query, limit)
        except SearchError as exc:
            if self._fallback is None:
                raise
            logger.error("[%s] error, falling back to %s: %s", self._backend.name, self._fallback.name, exc)
            products = await self._fallback.search(query, limit)
        except Exception as exc:
            raise SearchError(f"[{self._backend.name}] {exc}") from exc
        return CatalogResult(query=query, products=tuple(products[:limit]))
