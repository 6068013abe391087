"""Interfaces for speech, audio output and image/video generation backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from skycast.chat.models import Attachment, ImageSize


@dataclass(frozen=True)
class AudioClip:
    """Decoded speech: signed 16-bit little-endian PCM."""

    pcm: bytes
    sample_rate: int = 24000
    channels: int = 1

    @property
    def duration(self) -> float:
        frames = len(self.pcm) // (2 * self.channels)
        return frames / self.sample_rate


@runtime_checkable
class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, voice: str) -> AudioClip | None:
        """Return speech for *text*, or None when nothing came back. May raise."""
        ...


@runtime_checkable
class PlaybackHandle(Protocol):
    def stop(self) -> None:
        """Stop playback. The ended callback does not fire after this."""
        ...


@runtime_checkable
class AudioOutput(Protocol):
    def play(self, clip: AudioClip, on_ended: Callable[[], None]) -> PlaybackHandle:
        """Start playing *clip*; call *on_ended* when it finishes on its own."""
        ...


@runtime_checkable
class ImageGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        aspect_ratio: str,
        reference: Attachment | None = None,
        *,
        image_size: ImageSize | None = None,
    ) -> str | None:
        """Return an asset reference for the new image, or None. May raise.

        *image_size* asks for a detail level; None leaves it to the backend.
        """
        ...


@dataclass(frozen=True)
class VideoPoll:
    """State of a submitted video operation."""

    state: Literal["running", "done", "failed"]
    progress: int | None = None
    uri: str | None = None
    error: str | None = None


@runtime_checkable
class VideoGenerator(Protocol):
    async def submit(self, prompt: str, aspect_ratio: str) -> str:
        """Start an operation and return its handle."""
        ...

    async def poll(self, handle: str) -> VideoPoll:
        """Check an operation. Raises OperationNotFound if it was lost."""
        ...
