"""
Anthropic vision provider (messages API with a base64 image block).
"""
from __future__ import annotations

import base64
import logging
import time

import anthropic

from providers.base import SYSTEM_PROMPT, USER_PROMPT, VisionProvider, detect_mime

logger = logging.getLogger(__name__)


class AnthropicProvider(VisionProvider):

    def __init__(self, api_key: str, model: str = "claude-3-haiku-20240307"):
        self.name = "anthropic"
        self.model_id = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def detect(self, image_bytes: bytes) -> str:
        b64 = base64.b64encode(image_bytes).decode()
        t0 = time.monotonic()

        message = await self._client.messages.create(
            model=self.model_id,
            max_tokens=1024,
            system=SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": detect_mime(image_bytes),
                                "data": b64,
                            },
                        },
                        {"type": "text", "text": USER_PROMPT},
                    ],
                }
            ],
        )

        logger.info("[%s] detect OK in %dms", self.full_name, int((time.monotonic() - t0) * 1000))
        return message.content[0].text if message.content else ""
