"""
Provider Manager — picks the vision provider the extractor will use.

Modes (config.VISION_PROVIDER):
  auto       — first provider whose API key is set: gemini → openai → anthropic
  gemini     — force Google Gemini
  openai     — force OpenAI
  anthropic  — force Anthropic

Called once at startup; the returned provider is injected into ItemExtractor.
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from providers.base import VisionProvider

logger = logging.getLogger(__name__)

_ORDER = ("gemini", "openai", "anthropic")


def _key_for(name: str) -> Optional[str]:
    return {
        "gemini":    config.GOOGLE_API_KEY,
        "openai":    config.OPENAI_API_KEY,
        "anthropic": config.ANTHROPIC_API_KEY,
    }[name]


def _make(name: str, api_key: str, model: Optional[str]) -> VisionProvider:
    if name == "gemini":
        from providers.gemini_provider import GeminiProvider
        return GeminiProvider(api_key, model) if model else GeminiProvider(api_key)
    if name == "openai":
        from providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, model) if model else OpenAIProvider(api_key)
    from providers.anthropic_provider import AnthropicProvider
    return AnthropicProvider(api_key, model) if model else AnthropicProvider(api_key)


def build_provider(mode: Optional[str] = None) -> VisionProvider:
    """
    Instantiate the provider selected by `mode` (default config.VISION_PROVIDER).
    Raises RuntimeError when the requested provider has no key.
    """
    mode = (mode or config.VISION_PROVIDER).strip().lower()

    if mode in _ORDER:
        api_key = _key_for(mode)
        if not api_key:
            raise RuntimeError(f"VISION_PROVIDER={mode} but its API key is not set.")
        provider = _make(mode, api_key, config.VISION_MODEL)
        logger.info("Vision provider: %s", provider.full_name)
        return provider

    if mode != "auto":
        raise ValueError(f"Unknown VISION_PROVIDER '{mode}'. Use auto, {', '.join(_ORDER)}.")

    for name in _ORDER:
        api_key = _key_for(name)
        if api_key:
            provider = _make(name, api_key, config.VISION_MODEL)
            logger.info("Auto-selected vision provider: %s", provider.full_name)
            return provider

    raise RuntimeError(
        "No vision provider configured.\n"
        "Set at least one of GOOGLE_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY."
    )
