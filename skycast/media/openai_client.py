"""Shared lazily-created OpenAI client for the media backends."""

from __future__ import annotations

from openai import AsyncOpenAI

from skycast.config import settings

_client: AsyncOpenAI | None = None


def get_client() -> AsyncOpenAI:
    """Return a lazily-initialised AsyncOpenAI singleton."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _client
