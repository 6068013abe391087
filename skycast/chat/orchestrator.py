"""Turn orchestration: one user submission through to a settled reply.

A turn moves through ``TurnState`` in order:

    IDLE → USER_MESSAGE_APPENDED → ASSISTANT_STREAMING
         → ASSISTANT_FINALIZED → SIDE_EFFECTS_DISPATCHED

Side effects (speech, image, video, title) run as independent tasks and are
not awaited by the turn. Everything they write goes through the session
store by message ID and is dropped if the target has disappeared.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from skycast.chat.models import Message
from skycast.config import settings
from skycast.llm.client import clean_title
from skycast.parsing.interpreter import interpret

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from skycast.chat.models import Attachment, Citation, ModelTier, Session
    from skycast.chat.session import SessionStore
    from skycast.coordinators.audio import AudioCoordinator
    from skycast.coordinators.generation import ImageCoordinator, VideoCoordinator
    from skycast.geo import Coordinates
    from skycast.llm.stream import ModelStream, TitleGenerator
    from skycast.parsing.interpreter import ParsedTurn
    from skycast.voice.capture import InputBuffer
    from skycast.voice.loop import VoiceLoopController

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Sorry, I encountered an error. Details:"

_PLACEHOLDER_RE = re.compile(r"\[DIAGRAM_PLACEHOLDER_\d+\]")


class TurnState(enum.Enum):
    IDLE = "idle"
    USER_MESSAGE_APPENDED = "user_message_appended"
    ASSISTANT_STREAMING = "assistant_streaming"
    ASSISTANT_FINALIZED = "assistant_finalized"
    SIDE_EFFECTS_DISPATCHED = "side_effects_dispatched"


@dataclass
class Turn:
    """Bookkeeping for one submission."""

    session_id: str
    user_message_id: str
    assistant_message_id: str
    state: TurnState = TurnState.IDLE
    parsed: ParsedTurn | None = None
    error: str | None = None


def error_text(exc: BaseException) -> str:
    detail = str(exc) or repr(exc)
    return f"{ERROR_PREFIX} {detail}"


def speech_text(text: str) -> str:
    """Reply text as it should be read aloud (no diagram placeholders)."""
    return _PLACEHOLDER_RE.sub("", text).strip()


class TurnOrchestrator:
    """Owns the message lifecycle for every session in the store."""

    def __init__(
        self,
        store: SessionStore,
        model_stream: ModelStream,
        title_generator: TitleGenerator,
        audio: AudioCoordinator,
        images: ImageCoordinator,
        videos: VideoCoordinator,
        input_buffer: InputBuffer,
        *,
        location: Coordinates | None = None,
    ) -> None:
        self._store = store
        self._model = model_stream
        self._titles = title_generator
        self.audio = audio
        self.images = images
        self.videos = videos
        self.input = input_buffer
        self.location = location
        self.auto_play_next = False
        self.voice: VoiceLoopController | None = None
        self._streaming: dict[str, Turn] = {}
        self._background: set[asyncio.Task[Any]] = set()

    # -- Queries ---------------------------------------------------------------

    @property
    def store(self) -> SessionStore:
        return self._store

    def is_streaming(self, session_id: str | None = None) -> bool:
        """Whether a turn is streaming in *session_id* (default: current session)."""
        sid = session_id or self._store.current_session_id
        return sid is not None and sid in self._streaming

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # -- Submission ------------------------------------------------------------

    def submit(
        self, text: str | None = None, attachment: Attachment | None = None
    ) -> asyncio.Task[Turn] | None:
        """Start a turn with *text* (default: the input buffer).

        Returns the task running the turn, or None when the submission is
        rejected: nothing to send, or this session already has a reply
        streaming. A rejected submission re-arms voice capture.
        """
        if text is None:
            text = self.input.text
        text = text.strip()
        session = self._store.current

        if not text and attachment is None:
            logger.debug("Ignoring empty submission")
            self._rearm_voice()
            return None
        if session is not None and session.id in self._streaming:
            logger.info("Ignoring submission while session %s is streaming", session.id)
            self._rearm_voice()
            return None

        if session is None:
            session = self._store.create_session()
        if self.voice is not None:
            self.voice.submitted()

        first_turn = not session.messages
        history = [*session.messages]
        user_message = Message(role="user", content=text, attachment=attachment)
        placeholder = Message(role="assistant", is_streaming=True)
        history.append(user_message)

        self._store.append(session.id, user_message, placeholder)
        turn = Turn(
            session_id=session.id,
            user_message_id=user_message.id,
            assistant_message_id=placeholder.id,
            state=TurnState.USER_MESSAGE_APPENDED,
        )
        self.input.clear()

        if first_turn and text:
            self._spawn(self._name_session(session.id, text))

        turn.state = TurnState.ASSISTANT_STREAMING
        self._streaming[session.id] = turn
        logger.info("Turn started in session %s: %s", session.id, text[:80])
        return self._spawn(self._run(turn, session, history))

    def _rearm_voice(self) -> None:
        if self.voice is not None:
            self.voice.rearm()

    async def _name_session(self, session_id: str, text: str) -> None:
        try:
            title = clean_title(await self._titles.generate(text))
        except Exception:
            logger.warning("Title generation failed, using message prefix", exc_info=True)
            title = text[: settings.title_fallback_length]
        self._store.set_title(session_id, title)

    # -- Streaming -------------------------------------------------------------

    async def _run(self, turn: Turn, session: Session, history: list[Message]) -> Turn:
        sid, aid = turn.session_id, turn.assistant_message_id
        full_text = ""
        citations: list[Citation] = []

        try:
            async for fragment in self._model.stream(
                session.model, self.location, history, self._store.preferences
            ):
                citations.extend(fragment.citations)
                if fragment.text:
                    full_text += fragment.text
                    self._store.update_message(sid, aid, content=full_text)
                await asyncio.sleep(0)
        except Exception as exc:
            logger.exception("Model stream failed in session %s", sid)
            self._release(turn)
            self._fail(turn, exc)
            return turn

        self._release(turn)
        parsed = interpret(full_text, self._store.preferences.units)
        turn.parsed = parsed
        finalized = self._store.update_message(
            sid,
            aid,
            content=parsed.text,
            is_streaming=False,
            citations=tuple(citations),
            contains_plan=parsed.contains_plan,
            location=parsed.location,
            latitude=parsed.latitude,
            longitude=parsed.longitude,
            current=parsed.current,
            hourly=parsed.hourly,
            daily=parsed.daily,
            alerts=parsed.alerts,
            insights=parsed.insights,
            diagrams=parsed.diagrams,
            image_request=parsed.image_request,
            video_request=parsed.video_request,
        )
        turn.state = TurnState.ASSISTANT_FINALIZED
        if finalized is None:
            logger.info("Reply %s finished after its message was removed", aid)
            turn.state = TurnState.SIDE_EFFECTS_DISPATCHED
            return turn

        if parsed.location:
            self._store.remember_location(parsed.location)
        self._dispatch(turn, parsed)
        return turn

    def _release(self, turn: Turn) -> None:
        if self._streaming.get(turn.session_id) is turn:
            del self._streaming[turn.session_id]

    def _fail(self, turn: Turn, exc: BaseException) -> None:
        turn.error = error_text(exc)
        self._store.update_message(
            turn.session_id, turn.assistant_message_id, content=turn.error, is_streaming=False
        )
        turn.state = TurnState.ASSISTANT_FINALIZED
        if self._store.preferences.conversational_mode and self.voice is not None:
            self.voice.resume_capture(clear_input=False)
        turn.state = TurnState.SIDE_EFFECTS_DISPATCHED

    # -- Side effects ----------------------------------------------------------

    def _dispatch(self, turn: Turn, parsed: ParsedTurn) -> None:
        sid, aid = turn.session_id, turn.assistant_message_id
        prefs = self._store.preferences

        if parsed.video_request is not None:
            self.videos.start(sid, aid, parsed.video_request)

        if parsed.image_request is not None:
            user_message = self._store.get_message(sid, turn.user_message_id)
            reference = user_message.attachment if user_message else None
            self.images.start(sid, aid, parsed.image_request, reference)

        spoken = speech_text(parsed.text)
        if (self.auto_play_next or prefs.conversational_mode) and spoken:
            self.auto_play_next = False
            self._spawn(
                self.audio.play(sid, aid, spoken, restart_capture_after=prefs.conversational_mode)
            )
        elif prefs.conversational_mode and self.voice is not None:
            self.voice.resume_capture(clear_input=False)

        turn.state = TurnState.SIDE_EFFECTS_DISPATCHED

    def play_message(self, message_id: str) -> asyncio.Task[bool] | None:
        """Read one message of the current session aloud on request."""
        session = self._store.current
        message = session.find(message_id) if session else None
        if message is None or message.is_streaming:
            return None
        return self._spawn(self.audio.play(session.id, message_id, speech_text(message.content)))

    # -- Session navigation ----------------------------------------------------

    def _switched(self, previous_id: str | None) -> None:
        current_id = self._store.current_session_id
        if previous_id == current_id:
            return
        self.audio.stop_all(previous_id)
        self.audio.stop_all(current_id)
        if self.voice is not None:
            self.voice.session_switched()
        logger.info("Switched session %s → %s", previous_id, current_id)

    def new_session(self, model: ModelTier | None = None) -> Session:
        previous = self._store.current_session_id
        session = self._store.create_session(model)
        self._switched(previous)
        return session

    def select_session(self, session_id: str) -> Session:
        previous = self._store.current_session_id
        session = self._store.select(session_id)
        self._switched(previous)
        return session

    def delete_session(self, session_id: str) -> bool:
        previous = self._store.current_session_id
        deleted = self._store.delete(session_id)
        if deleted:
            self._switched(previous)
        return deleted

    def truncate_history(self, session_id: str, message_id: str) -> int:
        """Remove a message and everything after it from a session."""
        if self._store.current_session_id == session_id:
            self.audio.stop_all(session_id)
        return self._store.truncate(session_id, message_id)
