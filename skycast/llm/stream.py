"""Interfaces for the language-model collaborators the orchestrator drives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from skycast.chat.models import Citation, Message, ModelTier, Preferences
    from skycast.geo import Coordinates


@dataclass(frozen=True)
class Fragment:
    """One increment of a streamed response."""

    text: str = ""
    citations: tuple[Citation, ...] = ()


@runtime_checkable
class ModelStream(Protocol):
    """Produces the streamed reply to a conversation."""

    def stream(
        self,
        tier: ModelTier,
        location: Coordinates | None,
        history: list[Message],
        preferences: Preferences,
    ) -> AsyncIterator[Fragment]:
        """Yield fragments in order. May raise at any point."""
        ...


@runtime_checkable
class TitleGenerator(Protocol):
    async def generate(self, first_message: str) -> str:
        """Return a short title for a chat. May raise."""
        ...
