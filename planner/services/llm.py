"""
LLM client selection.

OpenRouter is preferred (one key, many models); a plain OpenAI key is the
fallback. Both speak the OpenAI chat completions API, so the rest of the code
only ever sees an ``AsyncOpenAI`` client.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI

from planner.config import get_settings

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Initialize client lazily
_client: Optional[AsyncOpenAI] = None


def get_llm_provider() -> Optional[str]:
    """Determine which LLM provider to use based on available API keys."""
    settings = get_settings()
    if settings.openrouter_api_key:
        return "openrouter"
    if settings.openai_api_key:
        return "openai"
    return None


def get_client() -> Optional[AsyncOpenAI]:
    """The shared chat client, or None when no API key is configured."""
    global _client
    if _client is not None:
        return _client

    settings = get_settings()
    provider = get_llm_provider()
    if provider == "openrouter":
        _client = AsyncOpenAI(api_key=settings.openrouter_api_key, base_url=OPENROUTER_BASE_URL)
    elif provider == "openai":
        _client = AsyncOpenAI(api_key=settings.openai_api_key)
    else:
        logger.warning("No LLM API key configured (set OPENROUTER_API_KEY or OPENAI_API_KEY)")
        return None

    logger.info("LLM client initialized (%s)", provider)
    return _client


def select_model(persona: str | None, requested: str | None = None) -> str:
    """Model for a chat request: the denglish persona is pinned, otherwise header or default."""
    settings = get_settings()
    if (persona or "").strip().lower() == "denglish":
        return settings.denglish_model
    return (requested or "").strip() or settings.llm_model
