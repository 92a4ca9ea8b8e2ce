"""
Blended backend — the `all` product source.

Runs the same query against two catalogs concurrently, each asked for half
the limit (rounded up), and returns the primary catalog's hits followed by
the secondary's, truncated to the limit.

A catalog that fails is logged and left out of the blend. SearchError is
raised only when both catalogs fail.
"""
from __future__ import annotations

import asyncio
import logging
import math

from models import Product
from search_backends.base import CatalogBackend, SearchError

logger = logging.getLogger(__name__)


class BlendedBackend(CatalogBackend):

    def __init__(self, primary: CatalogBackend, secondary: CatalogBackend) -> None:
        self._primary = primary
        self._secondary = secondary

    @property
    def name(self) -> str:
        return f"Blended ({self._primary.name} + {self._secondary.name})"

    async def search(self, query: str, limit: int = 5) -> list[Product]:
        split_limit = max(1, math.ceil(limit / 2))
        backends = (self._primary, self._secondary)
        outcomes = await asyncio.gather(
            *(backend.search(query, split_limit) for backend in backends),
            return_exceptions=True,
        )

        products: list[Product] = []
        errors: list[BaseException] = []
        for backend, outcome in zip(backends, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("[%s] search failed for '%s', blending without it: %s",
                               backend.name, query, outcome)
                errors.append(outcome)
                continue
            products.extend(outcome)

        if len(errors) == len(backends):
            raise SearchError(f"[{self.name}] all catalogs failed: {errors[0]}") from errors[0]
        return products[:limit]
