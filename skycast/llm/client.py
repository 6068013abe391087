"""Anthropic-backed model stream and title generator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import anthropic

from skycast.chat.models import DEFAULT_TITLE, Citation
from skycast.config import settings
from skycast.llm.models import resolve_tier
from skycast.llm.prompt import build_system_instruction
from skycast.llm.stream import Fragment

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from skycast.chat.models import Message, ModelTier, Preferences
    from skycast.geo import Coordinates

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


def to_api_messages(history: list[Message]) -> list[dict[str, Any]]:
    """Convert finished chat messages to Claude API message format.

    Streaming placeholders and empty messages are skipped. A user attachment
    is sent as an image block ahead of the text.
    """
    result: list[dict[str, Any]] = []
    for message in history:
        if message.is_streaming or not (message.content or message.attachment):
            continue
        if message.role == "user" and message.attachment is not None:
            content: str | list[dict[str, Any]] = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": message.attachment.mime_type,
                        "data": message.attachment.data,
                    },
                }
            ]
            if message.content:
                content.append({"type": "text", "text": message.content})
        else:
            content = message.content
        result.append({"role": message.role, "content": content})
    return result


def _to_citation(raw: Any) -> Citation | None:
    uri = getattr(raw, "url", None)
    if not uri:
        return None
    return Citation(uri=uri, title=getattr(raw, "title", None) or uri)


class AnthropicModelStream:
    """Streams Claude replies with web search enabled."""

    async def stream(
        self,
        tier: ModelTier,
        location: Coordinates | None,
        history: list[Message],
        preferences: Preferences,
    ) -> AsyncIterator[Fragment]:
        config = resolve_tier(tier)
        kwargs: dict[str, Any] = {
            "model": config.model,
            "max_tokens": settings.max_output_tokens + config.thinking_budget,
            "system": build_system_instruction(
                preferences, advanced=config.thinking, location=location
            ),
            "messages": to_api_messages(history),
            "tools": [
                {
                    "type": "web_search_20250305",
                    "name": "web_search",
                    "max_uses": settings.web_search_max_uses,
                }
            ],
        }
        if config.thinking:
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": config.thinking_budget}

        client = _get_client()
        async with client.messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type != "content_block_delta":
                    continue
                delta = event.delta
                if delta.type == "text_delta":
                    yield Fragment(text=delta.text)
                elif delta.type == "citations_delta":
                    citation = _to_citation(delta.citation)
                    if citation is not None:
                        yield Fragment(citations=(citation,))


def clean_title(raw: str) -> str:
    """Strip quotes and whitespace; empty becomes the default title."""
    return raw.replace('"', "").strip() or DEFAULT_TITLE


class AnthropicTitleGenerator:
    """Single-shot Claude call that names a chat after its first message.

    Errors propagate; the orchestrator falls back to a prefix of the message.
    """

    async def generate(self, first_message: str) -> str:
        response = await _get_client().messages.create(
            model=settings.title_model,
            max_tokens=32,
            messages=[
                {
                    "role": "user",
                    "content": (
                        "Generate a very short, concise title (max 5 words, no quotes) "
                        f'for a chat that starts with this user query: "{first_message}"'
                    ),
                }
            ],
        )
        text = "".join(b.text for b in response.content if b.type == "text")
        return clean_title(text)
