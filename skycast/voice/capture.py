"""Speech capture interface and the shared input buffer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable


@runtime_checkable
class CaptureEngine(Protocol):
    """A speech-to-text engine that reports final transcripts per utterance.

    The owner installs the three callbacks before calling ``start``.
    ``on_end`` fires whenever capture stops, whether requested or not.
    """

    on_transcript: Callable[[str], None] | None
    on_end: Callable[[], None] | None
    on_error: Callable[[str], None] | None

    def start(self) -> None:
        """Begin capturing. May raise if the engine is already running."""
        ...

    def stop(self) -> None:
        ...


class InputBuffer:
    """The pending user input that typing and dictation both write into."""

    def __init__(self, text: str = "") -> None:
        self.text = text

    def append(self, transcript: str) -> None:
        self.text = f"{self.text} {transcript.strip()}".strip()

    def clear(self) -> None:
        self.text = ""

    def take(self) -> str:
        """Return the current text and clear the buffer."""
        text, self.text = self.text, ""
        return text

    def __bool__(self) -> bool:
        return bool(self.text.strip())


class TypedCapture:
    """Capture engine fed by typed lines instead of a microphone.

    The terminal shell routes lines here while listening; an empty line
    ends the utterance the way a pause in speech would.
    """

    def __init__(self) -> None:
        self.on_transcript: Callable[[str], None] | None = None
        self.on_end: Callable[[], None] | None = None
        self.on_error: Callable[[str], None] | None = None
        self.running = False

    def start(self) -> None:
        if self.running:
            msg = "Capture already running"
            raise RuntimeError(msg)
        self.running = True

    def stop(self) -> None:
        if self.running:
            self._end()

    def feed(self, line: str) -> None:
        if not self.running:
            return
        if not line.strip():
            self._end()
        elif self.on_transcript is not None:
            self.on_transcript(line)

    def _end(self) -> None:
        self.running = False
        if self.on_end is not None:
            self.on_end()
