"""
item_extractor.py — turns a frame into a short list of DetectedItem.

The vision model's answer is loosely typed text. Everything is validated
here, at the edge:
  • markdown fences are stripped
  • a bare JSON array or an {"items": [...]} object is accepted
  • elements without a non-empty label are dropped
  • confidence is coerced into [0, 1] (0.5 when missing / non-numeric)
  • only the first MAX_DETECTED_ITEMS valid elements are kept (never more than 8)

Unparseable text is a legitimate "nothing found" ([]); a failed model call
is an ExtractionError. There are no retries at this layer.
"""
from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from typing import Any, Optional

import config
from models import CATEGORIES, MAX_ITEMS_PER_FRAME, DetectedItem
from providers.base import ExtractionError, VisionProvider

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
_LABEL_KEYS = ("label", "item", "query")
# Raw answers beyond this size are not worth parsing
_MAX_RESPONSE_CHARS = 64_000
_OPEN_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CLOSE_FENCE = re.compile(r"\s*```$")


def strip_code_fences(raw: str) -> str:
    """Remove ```json ... ``` or ``` ... ``` fences, on one line or several."""
    text = _OPEN_FENCE.sub("", raw.strip())
    return _CLOSE_FENCE.sub("", text).strip()


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(conf):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, conf))


def _coerce_category(value: Any) -> Optional[str]:
    if value is None:
        return None
    category = str(value).strip().lower()
    if not category:
        return None
    return category if category in CATEGORIES else "other"


def _coerce_item(raw: Any) -> Optional[DetectedItem]:
    if isinstance(raw, str):
        label = raw.strip()
        return DetectedItem(label=label, confidence=DEFAULT_CONFIDENCE) if label else None
    if not isinstance(raw, dict):
        return None
    label = ""
    for key in _LABEL_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            label = value.strip()
            break
    if not label:
        return None
    return DetectedItem(
        label=label,
        confidence=_coerce_confidence(raw.get("confidence")),
        category=_coerce_category(raw.get("category")),
    )


def parse_items(raw: str, max_items: Optional[int] = None) -> list[DetectedItem]:
    """Parse the model's text answer. Never raises; bad text gives []."""
    if max_items is None:
        max_items = config.MAX_DETECTED_ITEMS
    max_items = max(1, min(MAX_ITEMS_PER_FRAME, max_items))
    if not raw or len(raw) > _MAX_RESPONSE_CHARS:
        logger.warning("Vision response empty or oversized (%d chars)", len(raw or ""))
        return []

    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Some models wrap the array in prose, so fall back to the outermost brackets
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            logger.warning("Non-JSON vision response: %s", raw[:300])
            return []
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            logger.warning("Non-JSON vision response: %s", raw[:300])
            return []

    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        logger.warning("Vision response is not an array: %s", raw[:300])
        return []

    items: list[DetectedItem] = []
    for element in data:
        item = _coerce_item(element)
        if item is not None:
            items.append(item)
            if len(items) >= max_items:
                break
    return items


class ItemExtractor:

    def __init__(self, provider: VisionProvider, timeout: Optional[float] = None) -> None:
        self._provider = provider
        self._timeout = timeout

    async def extract(self, image_bytes: bytes) -> list[DetectedItem]:
        """
        Detect purchasable items in image_bytes.
        Raises ExtractionError when the model call fails or times out.
        """
        timeout = self._timeout if self._timeout is not None else config.VISION_TIMEOUT_SECS
        try:
            raw = await asyncio.wait_for(self._provider.detect(image_bytes), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ExtractionError(
                f"[{self._provider.full_name}] timed out after {timeout:.0f}s"
            ) from exc
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"[{self._provider.full_name}] {exc}") from exc

        items = parse_items(raw)
        logger.info("[%s] detected %d item(s)", self._provider.full_name, len(items))
        return items
