"""In-memory session store: the single owner of all chat state.

Every mutation is one synchronous step keyed by ID, so async callbacks that
interleave at ``await`` points never see a half-applied change. Writers that
run in the background (streams, coordinators, title generation) must expect
their target to be gone and check the return value instead of assuming.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from skycast.chat.models import DEFAULT_TITLE, Message, ModelTier, Preferences, Session
from skycast.config import settings
from skycast.errors import SessionNotFound

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class LocationHistory:
    """Most-recent-first list of distinct location names with a size cap."""

    def __init__(self, entries: list[str] | None = None, limit: int | None = None) -> None:
        self.limit = limit or settings.location_history_limit
        self._entries: list[str] = []
        for name in entries or []:
            if name and name not in self._entries:
                self._entries.append(name)
        del self._entries[self.limit :]

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def remember(self, location: str) -> bool:
        """Put *location* at the front. Returns True if the list changed."""
        if not location:
            return False
        if self._entries and self._entries[0] == location:
            return False
        if location in self._entries:
            self._entries.remove(location)
        self._entries.insert(0, location)
        del self._entries[self.limit :]
        return True

    def suggest(self, prefix: str) -> list[str]:
        """Entries starting with *prefix*, case-insensitively."""
        if not prefix:
            return []
        needle = prefix.lower()
        return [name for name in self._entries if name.lower().startswith(needle)]


class SessionStore:
    """Holds every session, the current-session pointer, and user settings."""

    def __init__(
        self,
        sessions: list[Session] | None = None,
        current_session_id: str | None = None,
        preferences: Preferences | None = None,
        location_history: LocationHistory | None = None,
    ) -> None:
        self._sessions: list[Session] = list(sessions or [])
        self._current_id = current_session_id if self._lookup(current_session_id) else None
        if self._current_id is None and self._sessions:
            self._current_id = self._sessions[0].id
        self.preferences = preferences or Preferences()
        self.locations = location_history or LocationHistory()
        self._listeners: list[Callable[[], None]] = []

    # -- Change notification ---------------------------------------------------

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call *listener* after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Session store listener failed")

    # -- Sessions --------------------------------------------------------------

    def _lookup(self, session_id: str | None) -> Session | None:
        if session_id is None:
            return None
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def current_session_id(self) -> str | None:
        return self._current_id

    @property
    def current(self) -> Session | None:
        return self._lookup(self._current_id)

    def get(self, session_id: str) -> Session | None:
        return self._lookup(session_id)

    def create_session(self, model: ModelTier | None = None) -> Session:
        """Start a new empty session and make it current."""
        session = Session(model=model or self.preferences.default_model)
        self._sessions.insert(0, session)
        self._current_id = session.id
        logger.info("Created session %s (%s)", session.id, session.model)
        self._changed()
        return session

    def select(self, session_id: str) -> Session:
        session = self._lookup(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        self._current_id = session_id
        self._changed()
        return session

    def delete(self, session_id: str) -> bool:
        session = self._lookup(session_id)
        if session is None:
            return False
        self._sessions.remove(session)
        if self._current_id == session_id:
            self._current_id = self._sessions[0].id if self._sessions else None
        logger.info("Deleted session %s", session_id)
        self._changed()
        return True

    def set_title(self, session_id: str, title: str) -> bool:
        session = self._lookup(session_id)
        if session is None:
            logger.debug("Title for vanished session %s dropped", session_id)
            return False
        session.title = title or DEFAULT_TITLE
        self._changed()
        return True

    # -- Messages --------------------------------------------------------------

    def append(self, session_id: str, *messages: Message) -> None:
        """Append messages to a session as one step."""
        session = self._lookup(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        session.messages.extend(messages)
        self._changed()

    def get_message(self, session_id: str, message_id: str) -> Message | None:
        session = self._lookup(session_id)
        return session.find(message_id) if session else None

    def update_message(self, session_id: str, message_id: str, **changes: Any) -> Message | None:
        """Replace fields of one message.

        Returns the updated message, or None when the session or message no
        longer exists (deleted session, truncated history).
        """
        session = self._lookup(session_id)
        if session is None:
            logger.debug("Update for vanished session %s dropped", session_id)
            return None
        for index, message in enumerate(session.messages):
            if message.id == message_id:
                updated = message.model_copy(update=changes)
                session.messages[index] = updated
                self._changed()
                return updated
        logger.debug("Update for vanished message %s dropped", message_id)
        return None

    def update_all_messages(self, session_id: str, **changes: Any) -> None:
        """Apply the same field changes to every message of a session."""
        session = self._lookup(session_id)
        if session is None:
            return
        session.messages[:] = [m.model_copy(update=changes) for m in session.messages]
        self._changed()

    def truncate(self, session_id: str, message_id: str) -> int:
        """Drop *message_id* and everything after it. Returns the count removed."""
        session = self._lookup(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        for index, message in enumerate(session.messages):
            if message.id == message_id:
                removed = len(session.messages) - index
                del session.messages[index:]
                self._changed()
                return removed
        return 0

    # -- Preferences and history -----------------------------------------------

    def update_preferences(self, **changes: Any) -> Preferences:
        self.preferences = Preferences.model_validate({**self.preferences.model_dump(), **changes})
        self._changed()
        return self.preferences

    def remember_location(self, location: str) -> bool:
        changed = self.locations.remember(location)
        if changed:
            self._changed()
        return changed
