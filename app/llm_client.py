"""OpenRouter LLM client factory (OpenAI-compatible SDK)."""
from __future__ import annotations

from openai import AsyncOpenAI

from app.config import settings


def get_client() -> AsyncOpenAI:
    """Get an OpenAI SDK client pointed at OpenRouter."""
    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def get_rephrase_model() -> str:
    return settings.rephrase_model or get_model()


def temperature_for_model(model: str) -> int:
    # Some OpenAI GPT-5-compatible gateways reject temperature=0.
    if "gpt-5" in (model or "").lower():
        return 1
    return 0


_client: AsyncOpenAI | None = None


def client() -> AsyncOpenAI:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
