"""
Abstract base for all catalog search backends.
Every backend must return the same Product list; the pipeline doesn't care
which catalog is active.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from models import Product


class SearchError(RuntimeError):
    """A single catalog search failed (network, auth, non-2xx)."""


class CatalogBackend(ABC):
    """All backends must implement this interface."""

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[Product]:
        """
        Search the catalog for products matching `query`.
        Returns up to `limit` products, catalog order. An empty result is
        [], never an exception. Network/auth failures raise SearchError.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs."""
        ...


# ── Helpers ────────────────────────────────────────────────────────────────────

def parse_price(value: Any) -> Optional[float]:
    """Extract a numeric value from 29.99, '$29.99', '29.99', '$1,299.00'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        cleaned = re.sub(r"[^\d.]", "", str(value).replace(",", ""))
        return float(cleaned) if cleaned else None
    except ValueError:
        return None


def clean_str(value: Any) -> Optional[str]:
    """Strip strings; empty / non-string values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
