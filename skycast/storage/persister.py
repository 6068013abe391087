"""Load chat state at startup and save it after every change."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from skycast.chat.models import ImageResult, Preferences, Session, VideoResult
from skycast.chat.session import LocationHistory, SessionStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from skycast.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

SESSIONS_KEY = "sessions"
CURRENT_SESSION_KEY = "current_session_id"
PREFERENCES_KEY = "preferences"
LOCATION_HISTORY_KEY = "location_history"

INTERRUPTED_ERROR = "Interrupted before it finished. Please try again."


def _settle(session: Session) -> Session:
    """Close out work that was in flight when the state was last saved.

    Nothing resumes across restarts: streams, playback and generation
    operations all belonged to the previous process.
    """
    settled = []
    for message in session.messages:
        changes: dict[str, Any] = {"audio_state": "idle"}
        if message.is_streaming:
            changes["is_streaming"] = False
        if message.image_result and message.image_result.status == "generating":
            changes["image_result"] = ImageResult(status="error", error=INTERRUPTED_ERROR)
        if message.video_result and message.video_result.status == "generating":
            changes["video_result"] = VideoResult(
                status="error", progress=message.video_result.progress, error=INTERRUPTED_ERROR
            )
        settled.append(message.model_copy(update=changes))
    session.messages = settled
    return session


async def _load(kv: KeyValueStore, key: str, parse: Callable[[Any], Any], default: Any) -> Any:
    try:
        raw = await kv.get(key)
    except Exception:
        logger.exception("Failed to read '%s'; starting fresh", key)
        return default
    if raw is None:
        return default
    try:
        return parse(raw)
    except (ValidationError, TypeError, ValueError):
        logger.exception("Saved '%s' is unreadable; starting fresh", key)
        return default


def _parse_sessions(raw: Any) -> list[Session]:
    return [_settle(Session.model_validate(item)) for item in raw]


def _parse_history(raw: Any) -> list[str]:
    return [str(name) for name in raw]


async def load_store(kv: KeyValueStore) -> SessionStore:
    """Rebuild a SessionStore from *kv*. Never raises: bad data means fresh state."""
    sessions = await _load(kv, SESSIONS_KEY, _parse_sessions, [])
    current_id = await _load(kv, CURRENT_SESSION_KEY, str, None)
    preferences = await _load(kv, PREFERENCES_KEY, Preferences.model_validate, Preferences())
    history = await _load(kv, LOCATION_HISTORY_KEY, _parse_history, [])
    logger.info("Loaded %d saved session(s)", len(sessions))
    return SessionStore(
        sessions=sessions,
        current_session_id=current_id,
        preferences=preferences,
        location_history=LocationHistory(history),
    )


class StatePersister:
    """Writes the store to *kv* after mutations.

    Bursts of changes (one per streamed fragment) collapse into as few
    writes as possible: at most one save runs at a time, and it loops until
    no change arrived during the last write.
    """

    def __init__(self, store: SessionStore, kv: KeyValueStore) -> None:
        self._store = store
        self._kv = kv
        self._dirty = False
        self._pending: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self.schedule)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def snapshot(self) -> dict[str, Any]:
        values: dict[str, Any] = {
            SESSIONS_KEY: [s.model_dump(mode="json") for s in self._store.sessions],
            PREFERENCES_KEY: self._store.preferences.model_dump(mode="json"),
            LOCATION_HISTORY_KEY: self._store.locations.entries,
        }
        if self._store.current_session_id:
            values[CURRENT_SESSION_KEY] = self._store.current_session_id
        return values

    def schedule(self) -> None:
        self._dirty = True
        if self._pending is not None and not self._pending.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; save deferred until flush()")
            return
        self._pending = loop.create_task(self._drain())

    async def save(self) -> None:
        """Write the whole store now. Raises on storage errors."""
        await self._kv.set_many(self.snapshot())

    async def _drain(self) -> None:
        while self._dirty:
            self._dirty = False
            try:
                await self.save()
            except Exception:
                logger.exception("Failed to save chat state")

    async def flush(self) -> None:
        """Wait for any pending save, then write once more if still dirty."""
        if self._pending is not None and not self._pending.done():
            await self._pending
        if self._dirty:
            await self._drain()
