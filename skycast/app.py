"""Application factory: wires the store, collaborators and controllers together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from skycast.chat.orchestrator import TurnOrchestrator
from skycast.coordinators.audio import AudioCoordinator
from skycast.coordinators.generation import (
    BackgroundCoordinator,
    ImageCoordinator,
    VideoCoordinator,
)
from skycast.geo import locate
from skycast.llm.client import AnthropicModelStream, AnthropicTitleGenerator
from skycast.media.images import OpenAIImageGenerator
from skycast.media.speech import OpenAISpeechSynthesizer, TimedAudioOutput
from skycast.media.video import OpenAIVideoGenerator
from skycast.storage.kv import KeyValueStore
from skycast.storage.persister import StatePersister, load_store
from skycast.voice.capture import InputBuffer, TypedCapture
from skycast.voice.loop import VoiceLoopController

if TYPE_CHECKING:
    from skycast.chat.session import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class App:
    orchestrator: TurnOrchestrator
    voice: VoiceLoopController
    capture: TypedCapture
    persister: StatePersister
    backgrounds: BackgroundCoordinator

    @property
    def store(self) -> SessionStore:
        return self.orchestrator.store

    async def close(self) -> None:
        """Stop playback and write out any unsaved state."""
        self.orchestrator.audio.stop_all(self.store.current_session_id)
        await self.persister.flush()
        self.persister.detach()


async def build_app(kv: KeyValueStore | None = None, *, locate_user: bool = True) -> App:
    """Load saved state and build a ready-to-use application."""
    kv = kv or KeyValueStore()
    store = await load_store(kv)
    persister = StatePersister(store, kv)
    persister.attach()

    location = await locate() if locate_user else None
    if location is None:
        logger.info("No location available; answers will not be location-biased")

    image_generator = OpenAIImageGenerator()
    orchestrator = TurnOrchestrator(
        store,
        AnthropicModelStream(),
        AnthropicTitleGenerator(),
        AudioCoordinator(store, OpenAISpeechSynthesizer(), TimedAudioOutput()),
        ImageCoordinator(store, image_generator),
        VideoCoordinator(store, OpenAIVideoGenerator()),
        InputBuffer(),
        location=location,
    )
    capture = TypedCapture()
    voice = VoiceLoopController(orchestrator, capture)
    logger.info("Skycast ready with %d session(s)", len(store.sessions))
    return App(
        orchestrator=orchestrator,
        voice=voice,
        capture=capture,
        persister=persister,
        backgrounds=BackgroundCoordinator(store, image_generator),
    )
