"""
Shopify catalog backend — the default `shopify` product source.

Auth is OAuth 2.0 client credentials (SHOPIFY_CLIENT_ID / SHOPIFY_CLIENT_SECRET):
the access token is fetched on first use and re-fetched shortly before it
expires. Search hits come back with min/max price, image and product URL,
which map straight onto Product.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import aiohttp

from models import Product
from search_backends.base import CatalogBackend, SearchError, clean_str, parse_price

logger = logging.getLogger(__name__)

_TIMEOUT = aiohttp.ClientTimeout(total=15)
_TOKEN_SKEW_SECS = 60      # refresh this long before the token expires


class ShopifyCatalogBackend(CatalogBackend):

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        catalog_url: str,
        token_url: str,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._catalog_url = catalog_url
        self._token_url = token_url
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def name(self) -> str:
        return "Shopify Catalog"

    async def search(self, query: str, limit: int = 5) -> list[Product]:
        token = await self._access_token()
        params = {"query": query, "limit": str(limit)}
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self._catalog_url, params=params, headers=headers, timeout=_TIMEOUT,
                ) as resp:
                    if resp.status == 401:
                        self._token = None      # force a fresh token next call
                    if resp.status != 200:
                        text = await resp.text()
                        raise SearchError(f"Shopify catalog error {resp.status}: {text[:200]}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise SearchError(f"Shopify catalog request failed: {exc}") from exc

        raw_products = data.get("products") or data.get("data") or []
        products = [p for p in (self._parse_product(r) for r in raw_products) if p]
        logger.info("[Shopify] %d products for query '%s'", len(products), query)
        return products[:limit]

    # ── Auth ──────────────────────────────────────────────────────────────────

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._token_url,
                    json={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "grant_type": "client_credentials",
                    },
                    timeout=_TIMEOUT,
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise SearchError(f"Shopify token error {resp.status}: {text[:200]}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise SearchError(f"Shopify token request failed: {exc}") from exc

        token = data.get("access_token")
        if not token:
            raise SearchError("Shopify token response had no access_token")
        expires_in = float(data.get("expires_in") or 3600)
        self._token = token
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - _TOKEN_SKEW_SECS)
        return token

    # ── Parser ────────────────────────────────────────────────────────────────

    def _parse_product(self, raw: dict) -> Optional[Product]:
        if not raw or not isinstance(raw, dict):
            return None
        url = clean_str(raw.get("product_url") or raw.get("url"))
        product_id = clean_str(raw.get("id")) or url
        if not product_id:
            return None
        return Product(
            id=product_id,
            title=clean_str(raw.get("title")) or "",
            vendor=clean_str(raw.get("vendor")),
            price=parse_price(raw.get("min_price") if raw.get("min_price") is not None else raw.get("price")),
            price_max=parse_price(raw.get("max_price")),
            image_url=clean_str(raw.get("image_url") or raw.get("image")),
            canonical_url=url,
            marketplace="shopify",
        )
