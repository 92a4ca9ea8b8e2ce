"""
models.py — canonical home of the pipeline's data types.

Everything that crosses a module boundary (and everything written to the
database as JSON) is one of these dataclasses. Loosely-typed data from the
vision model and the catalogs is coerced into them at the ingestion edge
(item_extractor.py, search_backends/*), never deeper.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

CATEGORIES = ("apparel", "electronics", "home", "beauty", "other")

MIN_RESULT_LIMIT = 1
MAX_RESULT_LIMIT = 5
MAX_ITEMS_PER_FRAME = 8


# ── Detection ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DetectedItem:
    """One purchasable object the vision model found in a frame."""
    label: str                      # search-optimised phrase, never empty
    confidence: float               # 0–1
    category: Optional[str] = None  # one of CATEGORIES when the model gave one

    @property
    def group_category(self) -> str:
        """Key used for category boosts; falls back to the label."""
        return self.category or self.label

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"item": self.label, "confidence": self.confidence}
        if self.category:
            data["category"] = self.category
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DetectedItem":
        return cls(
            label=data.get("item") or data.get("label", ""),
            confidence=float(data.get("confidence", 0.5)),
            category=data.get("category"),
        )


@dataclass(frozen=True)
class SearchQuery:
    item: DetectedItem
    query_text: str
    result_limit: int = 3

    def __post_init__(self) -> None:
        clamped = max(MIN_RESULT_LIMIT, min(MAX_RESULT_LIMIT, int(self.result_limit)))
        object.__setattr__(self, "result_limit", clamped)

    @classmethod
    def for_item(cls, item: DetectedItem, limit: int = 3) -> "SearchQuery":
        return cls(item=item, query_text=item.label, result_limit=limit)

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "query": self.query_text,
            "limit": self.result_limit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SearchQuery":
        return cls(
            item=DetectedItem.from_dict(data["item"]),
            query_text=data.get("query", ""),
            result_limit=data.get("limit", 3),
        )


# ── Catalog ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Product:
    id: str
    title: str
    vendor: Optional[str]
    price: Optional[float]
    image_url: Optional[str]
    canonical_url: Optional[str]    # dedup identity; empty → always unique
    marketplace: str                # shopify | amazon
    price_max: Optional[float] = None

    @property
    def ref(self) -> str:
        """Identifier recorded in analytics events."""
        return self.id or self.canonical_url or "unknown"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "vendor": self.vendor,
            "price": self.price,
            "priceMax": self.price_max,
            "image": self.image_url,
            "url": self.canonical_url,
            "marketplace": self.marketplace,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=str(data.get("id") or ""),
            title=data.get("title", ""),
            vendor=data.get("vendor"),
            price=data.get("price"),
            image_url=data.get("image"),
            canonical_url=data.get("url"),
            marketplace=data.get("marketplace", "shopify"),
            price_max=data.get("priceMax"),
        )


@dataclass(frozen=True)
class ResultGroup:
    query: SearchQuery
    products: tuple[Product, ...] = ()

    def to_dict(self) -> dict:
        return {
            "item": self.query.to_dict(),
            "products": [p.to_dict() for p in self.products],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResultGroup":
        return cls(
            query=SearchQuery.from_dict(data["item"]),
            products=tuple(Product.from_dict(p) for p in data.get("products", [])),
        )


@dataclass(frozen=True)
class FrameResult:
    """
    Detection + search outcome for one frame.
    Invariant: len(groups) == len(items) and groups[i].query.item == items[i].
    """
    fingerprint: str
    items: tuple[DetectedItem, ...] = ()
    groups: tuple[ResultGroup, ...] = ()

    def __post_init__(self) -> None:
        if len(self.items) != len(self.groups):
            raise ValueError(
                f"FrameResult has {len(self.items)} items but {len(self.groups)} groups"
            )
        for i, (item, group) in enumerate(zip(self.items, self.groups)):
            if group.query.item != item:
                raise ValueError(f"Group {i} does not belong to item {item.label!r}")

    @property
    def product_count(self) -> int:
        return sum(len(g.products) for g in self.groups)

    def to_dict(self) -> dict:
        return {
            "frameHash": self.fingerprint,
            "frameItems": [i.to_dict() for i in self.items],
            "results": [g.to_dict() for g in self.groups],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FrameResult":
        groups = tuple(ResultGroup.from_dict(g) for g in data.get("results", []))
        return cls(
            fingerprint=data["frameHash"],
            items=tuple(g.query.item for g in groups),
            groups=groups,
        )


# ── Cache ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    result: FrameResult
    stored_at: datetime
    session_id: str
    video_id: Optional[str] = None
    timestamp_sec: Optional[float] = None


# ── Engagement ────────────────────────────────────────────────────────────────

@dataclass
class BoostTable:
    """Multiplicative boosts (all ≥ 1). Missing keys mean no boost."""
    by_category: dict[str, float] = field(default_factory=dict)
    by_query: dict[str, float] = field(default_factory=dict)

    def category_boost(self, category: str) -> float:
        return self.by_category.get(category, 1.0)

    def query_boost(self, query_text: str) -> float:
        return self.by_query.get(query_text, 1.0)

    @property
    def is_empty(self) -> bool:
        return not self.by_category and not self.by_query


@dataclass(frozen=True)
class InteractionEvent:
    kind: str                   # impression | click
    category: Optional[str]
    query_text: Optional[str]
    product_id: str
    session_id: Optional[str]
    user_id: str
    timestamp: datetime
    product_url: str = ""
    request_id: Optional[str] = None


# ── Request / response ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SessionMetadata:
    """Caller context for one frame request."""
    user_id: str = "anonymous"
    video_id: Optional[str] = None
    timestamp_sec: Optional[float] = None


@dataclass(frozen=True)
class ProductClick:
    """A product click reported back by the caller."""
    user_id: str = "anonymous"
    category: Optional[str] = None
    query_text: Optional[str] = None
    product_id: Optional[str] = None
    product_url: Optional[str] = None
    session_id: Optional[str] = None
    request_id: Optional[str] = None

    @property
    def product_ref(self) -> str:
        return self.product_id or self.product_url or "unknown"


@dataclass(frozen=True)
class FrameResponse:
    result: FrameResult         # boosted
    session_id: str
    request_id: str
    cached: bool = False

    def to_dict(self) -> dict:
        data = self.result.to_dict()
        data.update(
            sessionId=self.session_id,
            requestId=self.request_id,
            cached=self.cached,
        )
        return data
