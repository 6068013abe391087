"""Text-to-speech over OpenAI and a timer-driven stand-in for an audio device."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from skycast.config import settings
from skycast.media.base import AudioClip
from skycast.media.openai_client import get_client

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# OpenAI "pcm" output: 24 kHz, 16-bit signed little-endian, mono.
PCM_SAMPLE_RATE = 24000


class OpenAISpeechSynthesizer:
    async def synthesize(self, text: str, voice: str) -> AudioClip | None:
        if not text.strip():
            return None
        response = await get_client().audio.speech.create(
            model=settings.tts_model,
            voice=voice,
            input=text,
            response_format="pcm",
        )
        pcm = response.content
        if not pcm:
            logger.warning("Speech synthesis returned no audio")
            return None
        return AudioClip(pcm=pcm, sample_rate=PCM_SAMPLE_RATE)


class _TimerPlayback:
    def __init__(self, timer: asyncio.TimerHandle) -> None:
        self._timer = timer

    def stop(self) -> None:
        self._timer.cancel()


class TimedAudioOutput:
    """Reports a clip as finished after its duration without making a sound.

    Used when no audio device is wired in (terminal shell, tests) so the
    playback lifecycle still runs end to end.
    """

    def play(self, clip: AudioClip, on_ended: Callable[[], None]) -> _TimerPlayback:
        loop = asyncio.get_running_loop()
        logger.debug("Playing %.1fs clip", clip.duration)
        return _TimerPlayback(loop.call_later(clip.duration, on_ended))
