"""Text-to-speech playback for at most one message at a time."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skycast.chat.session import SessionStore
    from skycast.media.base import AudioClip, AudioOutput, PlaybackHandle, SpeechSynthesizer
    from skycast.voice.loop import VoiceLoopController

logger = logging.getLogger(__name__)


class AudioCoordinator:
    """Owns the single active playback and each message's ``audio_state``.

    Synthesised clips are cached per message for the lifetime of the
    coordinator, so replaying a message never calls the synthesiser twice.
    """

    def __init__(
        self,
        store: SessionStore,
        synthesizer: SpeechSynthesizer,
        output: AudioOutput,
    ) -> None:
        self._store = store
        self._synthesizer = synthesizer
        self._output = output
        self._cache: dict[str, AudioClip] = {}
        self._active: PlaybackHandle | None = None
        # (session_id, message_id) of the message currently loading or playing.
        self._target: tuple[str, str] | None = None
        # Bumped on every play/stop; callbacks from older generations are stale.
        self._generation = 0
        self.voice: VoiceLoopController | None = None

    @property
    def is_playing(self) -> bool:
        return self._active is not None

    def is_cached(self, message_id: str) -> bool:
        return message_id in self._cache

    def _halt(self) -> None:
        self._generation += 1
        if self._active is not None:
            self._active.stop()
            self._active = None
        if self._target is not None:
            # The interrupted message may live in another session.
            self._store.update_message(*self._target, audio_state="idle")
            self._target = None

    def stop_all(self, session_id: str | None = None) -> None:
        """Stop playback, idling the interrupted message and every message of *session_id*."""
        self._halt()
        if session_id is not None:
            self._store.update_all_messages(session_id, audio_state="idle")

    async def play(
        self,
        session_id: str,
        message_id: str,
        text: str,
        restart_capture_after: bool = False,
    ) -> bool:
        """Speak *text* for one message. Returns True once playback has started.

        Failure to synthesise is not an error for the caller: the message
        goes back to idle and, if asked, capture resumes.
        """
        if self.voice is not None:
            self.voice.suspend_capture()
        self.stop_all(session_id)
        generation = self._generation

        if self._store.update_message(session_id, message_id, audio_state="loading") is None:
            if restart_capture_after:
                self._resume_capture(clear_input=False)
            return False
        self._target = (session_id, message_id)

        clip = self._cache.get(message_id)
        if clip is None:
            try:
                clip = await self._synthesizer.synthesize(text, self._store.preferences.voice)
                if clip is None:
                    msg = "Speech synthesis returned no audio"
                    raise RuntimeError(msg)
            except Exception:
                logger.exception("Failed to synthesise speech for message %s", message_id)
                if generation == self._generation:
                    self._target = None
                    self._store.update_message(session_id, message_id, audio_state="idle")
                    if restart_capture_after:
                        self._resume_capture(clear_input=False)
                return False
            self._cache[message_id] = clip

        if generation != self._generation:
            logger.debug("Playback of %s superseded while loading", message_id)
            return False

        if self._store.update_message(session_id, message_id, audio_state="playing") is None:
            self._target = None
            return False

        def on_ended() -> None:
            self._finished(session_id, message_id, generation, restart_capture_after)

        self._active = self._output.play(clip, on_ended)
        logger.debug("Playing audio for message %s", message_id)
        return True

    def _finished(
        self, session_id: str, message_id: str, generation: int, restart_capture_after: bool
    ) -> None:
        if generation != self._generation:
            return
        self._active = None
        self._target = None
        self._store.update_message(session_id, message_id, audio_state="idle")
        if restart_capture_after:
            self._resume_capture(clear_input=True)

    def _resume_capture(self, *, clear_input: bool) -> None:
        # Conversational mode is checked now, not when playback was requested.
        if self.voice is not None and self._store.preferences.conversational_mode:
            self.voice.resume_capture(clear_input=clear_input)
