"""
Google Gemini vision provider — uses the google-genai SDK (v1 API).
Default provider: fast, cheap, and good at picking out many small items.
"""
from __future__ import annotations

import logging
import time

from google import genai
from google.genai import types as genai_types

from providers.base import SYSTEM_PROMPT, USER_PROMPT, VisionProvider, detect_mime

logger = logging.getLogger(__name__)


class GeminiProvider(VisionProvider):

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash"):
        self.name     = "google"
        self.model_id = model
        self._client  = genai.Client(api_key=api_key, http_options={"api_version": "v1"})

    async def detect(self, image_bytes: bytes) -> str:
        gen_config = genai_types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT,
            temperature=0,
            max_output_tokens=1024,
        )

        t0 = time.monotonic()
        response = await self._client.aio.models.generate_content(
            model=self.model_id,
            contents=[
                genai_types.Part.from_bytes(data=image_bytes, mime_type=detect_mime(image_bytes)),
                USER_PROMPT,
            ],
            config=gen_config,
        )
        logger.info("[%s] detect OK in %dms", self.full_name, int((time.monotonic() - t0) * 1000))
        return response.text or ""
