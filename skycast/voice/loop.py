"""Voice loop: when to capture speech, relative to turns and playback.

States::

    OFF → LISTENING → SUBMITTED → OFF                  (single shot)
    OFF → LISTENING → IDLE → LISTENING → ...           (conversational)

In conversational mode capture pauses while a reply streams and is spoken,
then resumes. Only a capture end seen while LISTENING counts as the user
finishing an utterance; ends caused by our own ``stop()`` calls are ignored
because the state has already moved on by the time they arrive.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skycast.chat.orchestrator import TurnOrchestrator
    from skycast.parsing.payloads import WeatherAlert
    from skycast.voice.capture import CaptureEngine

logger = logging.getLogger(__name__)


class VoiceState(enum.Enum):
    OFF = "off"
    LISTENING = "listening"
    SUBMITTED = "submitted"
    IDLE = "idle"


class VoiceLoopController:
    """Drives a capture engine on behalf of a turn orchestrator.

    Also holds the per-session transient UI state that a session switch
    wipes (dismissed weather alerts).
    """

    def __init__(self, orchestrator: TurnOrchestrator, capture: CaptureEngine) -> None:
        self._orchestrator = orchestrator
        self._store = orchestrator.store
        self._input = orchestrator.input
        self._capture = capture
        self.state = VoiceState.OFF
        self.dismissed_alerts: set[str] = set()

        capture.on_transcript = self.on_transcript
        capture.on_end = self.on_capture_end
        capture.on_error = self.on_capture_error
        orchestrator.voice = self
        orchestrator.audio.voice = self

    @property
    def conversational(self) -> bool:
        return self._store.preferences.conversational_mode

    @property
    def active(self) -> bool:
        return self.state is not VoiceState.OFF

    # -- Capture engine --------------------------------------------------------

    def _start_capture(self) -> None:
        try:
            self._capture.start()
        except Exception:
            logger.warning("Capture did not start", exc_info=True)

    def _stop_capture(self) -> None:
        try:
            self._capture.stop()
        except Exception:
            logger.warning("Capture did not stop cleanly", exc_info=True)

    def on_transcript(self, text: str) -> None:
        if text.strip():
            self._input.append(text.strip())

    def on_capture_error(self, error: str) -> None:
        logger.warning("Speech recognition error: %s", error)
        self.state = VoiceState.OFF

    def on_capture_end(self) -> None:
        """The user stopped talking (or the engine timed out)."""
        if self.state is not VoiceState.LISTENING:
            return

        if self.conversational:
            if self._orchestrator.is_streaming():
                self.state = VoiceState.IDLE
                return
            if self._input:
                self._orchestrator.submit()
            else:
                self._start_capture()
            return

        self.state = VoiceState.SUBMITTED
        if self._input:
            self._orchestrator.submit()
        self.state = VoiceState.OFF

    # -- User controls ---------------------------------------------------------

    def toggle(self) -> VoiceState:
        """Microphone button: start listening, or stop if already on."""
        if self.active:
            self.state = VoiceState.OFF
            self._stop_capture()
            return self.state

        self._input.clear()
        self.state = VoiceState.LISTENING
        self._orchestrator.auto_play_next = True
        self._start_capture()
        return self.state

    def set_conversational_mode(self, enabled: bool) -> None:
        self._store.update_preferences(conversational_mode=enabled)
        if not enabled and self.active:
            self.state = VoiceState.OFF
            self._stop_capture()

    # -- Hooks from the orchestrator and audio coordinator ---------------------

    def submitted(self) -> None:
        """A turn was accepted; stop capturing while it runs."""
        if not self.active:
            return
        self.state = VoiceState.IDLE if self.conversational else VoiceState.OFF
        self._stop_capture()

    def rearm(self) -> None:
        """A submission was rejected; keep the conversation going."""
        if self.conversational and self.active:
            self.state = VoiceState.LISTENING
            self._start_capture()

    def suspend_capture(self) -> None:
        """Stop listening so playback is not transcribed."""
        if self.state is not VoiceState.LISTENING:
            return
        self.state = VoiceState.IDLE if self.conversational else VoiceState.OFF
        self._stop_capture()

    def resume_capture(self, *, clear_input: bool = False) -> None:
        """Start the next conversational utterance."""
        if not (self.conversational and self.active):
            return
        if clear_input:
            self._input.clear()
        self.state = VoiceState.LISTENING
        self._start_capture()

    def session_switched(self) -> None:
        """Session switches reset all transient voice and alert state."""
        if self.active:
            self.state = VoiceState.OFF
            self._stop_capture()
        self.dismissed_alerts.clear()

    # -- Alert dismissal -------------------------------------------------------

    def dismiss_alert(self, title: str) -> None:
        self.dismissed_alerts.add(title)

    def dismiss_alerts(self, alerts: Iterable[WeatherAlert]) -> None:
        self.dismissed_alerts.update(alert.title for alert in alerts)

    def visible_alerts(self, alerts: Iterable[WeatherAlert]) -> list[WeatherAlert]:
        return [alert for alert in alerts if alert.title not in self.dismissed_alerts]
