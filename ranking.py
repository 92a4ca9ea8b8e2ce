"""
ranking.py — per-group dedup and completeness ranking.

Runs once per freshly processed frame. Cached results keep the ranking they
were stored with; only the engagement boosts (boost.py) are re-applied.
"""
from __future__ import annotations

from typing import Iterable

from models import Product

MAX_SCORE = 6


def dedupe_products(products: Iterable[Product]) -> list[Product]:
    """
    Keep the first product seen per canonical URL.
    Products without a canonical URL are never merged with anything.
    """
    seen: set[str] = set()
    unique: list[Product] = []
    for product in products:
        key = (product.canonical_url or "").strip()
        if key:
            if key in seen:
                continue
            seen.add(key)
        unique.append(product)
    return unique


def completeness_score(product: Product) -> int:
    """+2 image, +2 price, +1 vendor, +1 canonical URL."""
    score = 0
    if product.image_url:
        score += 2
    if product.price is not None:
        score += 2
    if product.vendor:
        score += 1
    if product.canonical_url:
        score += 1
    return score


def rank_group(products: Iterable[Product]) -> list[Product]:
    """Dedupe, then order by completeness (sorted() is stable, so ties keep search order)."""
    return sorted(dedupe_products(products), key=completeness_score, reverse=True)
