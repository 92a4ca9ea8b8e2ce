"""
Shared prompt, error type and base class for all vision providers.

A provider's only job is to turn image bytes into the model's raw text
answer. Parsing and validation of that text lives in item_extractor.py so
every provider is held to the same rules.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

# ── Prompt (shared across all providers) ──────────────────────────────────────

SYSTEM_PROMPT = """You are a shopping assistant that analyzes video screenshots to identify purchasable items.
Return ONLY a valid JSON array — no markdown, no prose.

Each element:
{
  "item":       "detailed ecommerce search phrase",
  "category":   "apparel | electronics | home | beauty | other",
  "confidence": 0.0-1.0
}

Rules:
- Identify 5-8 distinct purchasable physical products visible in the image
- Include colour, material and pattern when clearly visible
- Only include a brand when a logo or brand text is CLEARLY visible
- Write search-optimised phrases ("navy blue crew neck wool sweater", not "sweater")
- Avoid generic terms like "item", "thing", "object"
- Ignore people, backgrounds, UI elements and anything not purchasable

Categories:
- apparel: clothing, shoes, accessories, jewelry, bags
- electronics: devices, gadgets, cables, tech accessories
- home: furniture, decor, kitchenware, bedding, storage
- beauty: makeup, skincare, haircare, fragrances
- other: anything that doesn't fit above categories
"""

USER_PROMPT = (
    "Analyze this video screenshot and return the JSON array of purchasable items."
)


class ExtractionError(RuntimeError):
    """The vision model call itself failed (network, timeout, non-2xx, SDK error)."""


def detect_mime(image_bytes: bytes) -> str:
    """Sniff the image type from magic bytes (default jpeg)."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"GIF8":
        return "image/gif"
    if image_bytes[:4] == b"RIFF":
        return "image/webp"
    return "image/jpeg"


# ── Abstract base ──────────────────────────────────────────────────────────────

class VisionProvider(ABC):
    """Base class all vision providers must implement."""

    name: str           # e.g. "google"
    model_id: str       # e.g. "gemini-2.0-flash"

    @abstractmethod
    async def detect(self, image_bytes: bytes) -> str:
        """Run vision inference on image_bytes and return the raw text answer."""
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"
