"""
RapidAPI "Real-Time Amazon Data" backend — the `amazon` product source.

Sign up at: https://rapidapi.com/letscrape-6bRBa3QguO5/api/real-time-amazon-data
  • Free tier: 100 searches/month
  • Returns ASIN, title, price, image, product URL per search hit

Products are keyed by their canonical /dp/<ASIN> URL so the same listing
found under two detected items collapses to one entry.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from models import Product
from search_backends.base import CatalogBackend, SearchError, clean_str, parse_price

logger = logging.getLogger(__name__)

# ── API constants ──────────────────────────────────────────────────────────────
RAPIDAPI_HOST = "real-time-amazon-data.p.rapidapi.com"
SEARCH_URL    = f"https://{RAPIDAPI_HOST}/search"

_TIMEOUT = aiohttp.ClientTimeout(total=15)


class RapidAPIBackend(CatalogBackend):

    def __init__(self, api_key: str, country: str = "US") -> None:
        self._country = country
        self._headers = {
            "X-RapidAPI-Key":  api_key,
            "X-RapidAPI-Host": RAPIDAPI_HOST,
        }

    @property
    def name(self) -> str:
        return "RapidAPI / Real-Time Amazon Data"

    async def search(self, query: str, limit: int = 5) -> list[Product]:
        """
        Fetch the first results page for `query`.
        Retries once with a short delay if the first call returns 0 products,
        since RapidAPI occasionally rate-limits bursts silently.
        """
        params = {
            "query":   query,
            "page":    "1",
            "country": self._country,
            "sort_by": "RELEVANCE",
        }

        raw_products = await self._fetch(params)
        if not raw_products:
            logger.warning("RapidAPI returned 0 for '%s', retrying in 1.5s", query)
            await asyncio.sleep(1.5)
            raw_products = await self._fetch(params)

        logger.info("RapidAPI returned %d products for query '%s'", len(raw_products), query)

        products: list[Product] = []
        for raw in raw_products:
            product = self._parse_product(raw)
            if product:
                products.append(product)
                if len(products) >= limit:
                    break
        return products

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _fetch(self, params: dict) -> list:
        """Single HTTP call to the search endpoint. Returns raw product list (may be empty)."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    SEARCH_URL,
                    headers=self._headers,
                    params=params,
                    timeout=_TIMEOUT,
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise SearchError(f"RapidAPI error {resp.status}: {text[:200]}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise SearchError(f"RapidAPI request failed: {exc}") from exc
        return (data.get("data") or {}).get("products") or []

    # ── Parser ────────────────────────────────────────────────────────────────

    def _parse_product(self, raw: dict) -> Optional[Product]:
        if not raw or not isinstance(raw, dict):
            return None
        asin = clean_str(raw.get("asin"))
        if not asin:
            return None

        price = parse_price(raw.get("product_price") or raw.get("product_minimum_offer_price"))
        price_max = parse_price(raw.get("product_original_price"))

        return Product(
            id=asin,
            title=clean_str(raw.get("product_title")) or "",
            vendor=clean_str(raw.get("product_byline")),
            price=price,
            price_max=price_max if price_max and price and price_max > price else None,
            image_url=clean_str(raw.get("product_photo")) or clean_str(raw.get("thumbnail")),
            canonical_url=f"https://www.amazon.com/dp/{asin}",
            marketplace="amazon",
        )
