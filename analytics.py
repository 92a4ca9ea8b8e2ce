"""
analytics.py — best-effort product analytics via the Amplitude HTTP API.

track() never raises: without AMPLITUDE_API_KEY it is a no-op, and delivery
is retried up to MAX_RETRIES times with exponential backoff on network
errors, 5xx and 429. Anything else is dropped silently. The pipeline calls
it from background tasks only.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp

import config

logger = logging.getLogger(__name__)

AMPLITUDE_API_URL = "https://api2.amplitude.com/2/httpapi"
MAX_RETRIES = 3
BASE_DELAY_SECS = 0.2
_TIMEOUT = aiohttp.ClientTimeout(total=4)


def _should_retry(status: Optional[int]) -> bool:
    return status is None or status >= 500 or status == 429


class AnalyticsSink:

    def __init__(
        self,
        api_key: Optional[str] = None,
        app_env: Optional[str] = None,
        url: str = AMPLITUDE_API_URL,
    ) -> None:
        self._api_key = api_key if api_key is not None else config.AMPLITUDE_API_KEY
        self._app_env = app_env or config.APP_ENV
        self._url = url

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def track(
        self,
        event_name: str,
        user_id: Optional[str],
        props: Optional[dict[str, Any]] = None,
        user_props: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Send one event. Returns True if Amplitude accepted it."""
        if not self._api_key or not event_name:
            return False

        event: dict[str, Any] = {
            "event_type": event_name,
            "user_id": user_id or "anonymous",
            "event_properties": {"app_env": self._app_env, **(props or {})},
            "time": int(time.time() * 1000),
        }
        if user_props:
            event["user_properties"] = user_props
        payload = {"api_key": self._api_key, "events": [event]}

        for attempt in range(MAX_RETRIES + 1):
            status: Optional[int] = None
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(self._url, json=payload, timeout=_TIMEOUT) as resp:
                        status = resp.status
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.debug("Amplitude send failed (attempt %d): %s", attempt + 1, exc)

            if not _should_retry(status):
                return 200 <= status < 300
            if attempt < MAX_RETRIES:
                await asyncio.sleep(BASE_DELAY_SECS * (2 ** attempt))

        logger.debug("Amplitude dropped '%s' after %d attempts", event_name, MAX_RETRIES + 1)
        return False
