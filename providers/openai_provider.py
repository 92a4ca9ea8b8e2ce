"""
OpenAI vision provider (chat completions with an inline data-URL image).
"""
from __future__ import annotations

import base64
import logging
import time

from openai import AsyncOpenAI

from providers.base import SYSTEM_PROMPT, USER_PROMPT, VisionProvider, detect_mime

logger = logging.getLogger(__name__)


class OpenAIProvider(VisionProvider):

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        self.name = "openai"
        self.model_id = model
        self._client = AsyncOpenAI(api_key=api_key)

    async def detect(self, image_bytes: bytes) -> str:
        b64 = base64.b64encode(image_bytes).decode()
        mime = detect_mime(image_bytes)
        t0 = time.monotonic()

        response = await self._client.chat.completions.create(
            model=self.model_id,
            max_tokens=1024,
            temperature=0,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime};base64,{b64}"},
                        },
                        {"type": "text", "text": USER_PROMPT},
                    ],
                },
            ],
        )

        logger.info("[%s] detect OK in %dms", self.full_name, int((time.monotonic() - t0) * 1000))
        return response.choices[0].message.content or ""
