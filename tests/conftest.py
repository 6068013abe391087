"""Shared test fixtures and in-memory collaborators."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

import pytest

from skycast.chat.orchestrator import TurnOrchestrator
from skycast.chat.session import SessionStore
from skycast.coordinators.audio import AudioCoordinator
from skycast.coordinators.generation import ImageCoordinator, VideoCoordinator
from skycast.llm.stream import Fragment
from skycast.media.base import AudioClip, VideoPoll
from skycast.voice.capture import InputBuffer

# -- Fakes ---------------------------------------------------------------------


class FakeModelStream:
    """Yields the configured fragments, then raises ``error`` if set.

    Set ``gate`` to an Event to hold the stream open before its first fragment.
    """

    def __init__(self) -> None:
        self.fragments: list[Fragment] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[dict] = []

    def reply(self, *chunks: str) -> None:
        self.fragments = [Fragment(text=chunk) for chunk in chunks]

    async def stream(self, tier, location, history, preferences) -> AsyncIterator[Fragment]:
        self.calls.append(
            {"tier": tier, "location": location, "history": list(history), "preferences": preferences}
        )
        if self.gate is not None:
            await self.gate.wait()
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error


class FakeTitleGenerator:
    def __init__(self, title: str = "Paris Weather") -> None:
        self.title = title
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def generate(self, first_message: str) -> str:
        self.calls.append(first_message)
        if self.error is not None:
            raise self.error
        return self.title


class FakeSynthesizer:
    def __init__(self) -> None:
        self.clip: AudioClip | None = AudioClip(pcm=b"\x00\x00" * 2400)
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str]] = []

    async def synthesize(self, text: str, voice: str) -> AudioClip | None:
        self.calls.append((text, voice))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.clip


class FakePlayback:
    def __init__(self, clip: AudioClip, on_ended: Callable[[], None]) -> None:
        self.clip = clip
        self.on_ended = on_ended
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeAudioOutput:
    """Records playbacks; call ``finish()`` to end the latest one naturally."""

    def __init__(self) -> None:
        self.playbacks: list[FakePlayback] = []

    def play(self, clip: AudioClip, on_ended: Callable[[], None]) -> FakePlayback:
        playback = FakePlayback(clip, on_ended)
        self.playbacks.append(playback)
        return playback

    def finish(self) -> None:
        self.playbacks[-1].on_ended()


class FakeImageGenerator:
    def __init__(self) -> None:
        self.uri: str | None = "data:image/png;base64,AAAA"
        self.error: Exception | None = None
        self.calls: list[tuple] = []
        self.sizes: list[str | None] = []

    async def generate(self, prompt, aspect_ratio, reference=None, *, image_size=None) -> str | None:
        self.calls.append((prompt, aspect_ratio, reference))
        self.sizes.append(image_size)
        if self.error is not None:
            raise self.error
        return self.uri


class FakeVideoGenerator:
    """Returns queued poll results in order; ``running`` once they run out.

    A queued exception is raised instead of returned.
    """

    def __init__(self) -> None:
        self.handle = "op-1"
        self.polls: list[VideoPoll | Exception] = []
        self.submit_error: Exception | None = None
        self.submitted: list[tuple[str, str]] = []
        self.poll_count = 0

    async def submit(self, prompt: str, aspect_ratio: str) -> str:
        self.submitted.append((prompt, aspect_ratio))
        if self.submit_error is not None:
            raise self.submit_error
        return self.handle

    async def poll(self, handle: str) -> VideoPoll:
        self.poll_count += 1
        if not self.polls:
            return VideoPoll(state="running")
        result = self.polls.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeCapture:
    def __init__(self) -> None:
        self.on_transcript = None
        self.on_end = None
        self.on_error = None
        self.starts = 0
        self.stops = 0
        self.start_error: Exception | None = None

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.starts += 1

    def stop(self) -> None:
        self.stops += 1

    def say(self, text: str) -> None:
        self.on_transcript(text)
        self.on_end()


# -- Fixtures ------------------------------------------------------------------


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def model_stream() -> FakeModelStream:
    return FakeModelStream()


@pytest.fixture
def titles() -> FakeTitleGenerator:
    return FakeTitleGenerator()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def audio_output() -> FakeAudioOutput:
    return FakeAudioOutput()


@pytest.fixture
def image_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def video_generator() -> FakeVideoGenerator:
    return FakeVideoGenerator()


@pytest.fixture
def capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def audio(store, synthesizer, audio_output) -> AudioCoordinator:
    return AudioCoordinator(store, synthesizer, audio_output)


@pytest.fixture
def images(store, image_generator) -> ImageCoordinator:
    return ImageCoordinator(store, image_generator)


@pytest.fixture
def videos(store, video_generator) -> VideoCoordinator:
    return VideoCoordinator(store, video_generator, poll_interval=0, max_polls=20)


@pytest.fixture
def orchestrator(store, model_stream, titles, audio, images, videos) -> TurnOrchestrator:
    return TurnOrchestrator(store, model_stream, titles, audio, images, videos, InputBuffer())


@pytest.fixture
def settle() -> Callable:
    """Return a coroutine function that waits until every other task is done."""

    async def _settle() -> None:
        for _ in range(100):
            current = asyncio.current_task()
            pending = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    return _settle
