"""
Mock catalog backend for demos and local development (CATALOG_USE_MOCK=true).

Returns up to three placeholder products per query. Prices and vendors are
derived from a hash of the query, so the same query always yields the same
products.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
from urllib.parse import quote, quote_plus

from models import Product
from search_backends.base import CatalogBackend

logger = logging.getLogger(__name__)

_VENDORS = {
    "shopify": ["StyleCo", "TrendHub", "ModernWear", "UrbanFinds", "LuxeGoods"],
    "amazon":  ["Amazon Basics", "Anker", "Levi's", "New Balance", "Adidas"],
}


class MockCatalogBackend(CatalogBackend):

    def __init__(self, marketplace: str = "shopify", delay: float = 0.1) -> None:
        self._marketplace = marketplace
        self._delay = delay

    @property
    def name(self) -> str:
        return f"Mock ({self._marketplace})"

    async def search(self, query: str, limit: int = 5) -> list[Product]:
        logger.info("[Mock] search (%s): '%s' (limit: %d)", self._marketplace, query, limit)
        if self._delay:
            await asyncio.sleep(self._delay)

        words = query.lower().split()
        vendors = _VENDORS.get(self._marketplace, _VENDORS["shopify"])
        products: list[Product] = []
        for i in range(min(limit, 3)):
            slug = f"{'-'.join(words)}-{i + 1}"
            digest = int(hashlib.sha256(f"{self._marketplace}:{slug}".encode()).hexdigest(), 16)
            if self._marketplace == "amazon":
                url = f"https://www.amazon.com/s?k={quote_plus(query)}&ref=mock{i + 1}"
            else:
                url = f"https://example-shop.myshopify.com/products/{slug}"
            products.append(Product(
                id=f"mock_{self._marketplace}_{slug}",
                title=f"{query.title()} - Style {i + 1}",
                vendor=vendors[digest % len(vendors)],
                price=round(20 + (digest % 20000) / 100, 2),
                image_url=(
                    "https://placehold.co/300x300/1a1a1a/ffffff?text="
                    + quote(words[0] if words else "Product")
                ),
                canonical_url=url,
                marketplace=self._marketplace,
            ))
        return products
