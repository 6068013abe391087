"""Pick a backdrop for the chat from the most recent weather report."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skycast.chat.models import Message, Preferences, Session

DEFAULT_BACKDROP = "clear"

# First match wins, so order matters ("thunder showers" is a storm).
_BACKDROPS: list[tuple[tuple[str, ...], str]] = [
    (("thunder", "storm"), "storm"),
    (("snow", "sleet", "flurries", "blizzard"), "snow"),
    (("rain", "drizzle", "showers"), "rain"),
    (("fog", "mist", "haze"), "cloudy"),
    (("cloudy", "overcast"), "cloudy"),
    (("sunny", "clear"), "clear"),
]


def backdrop_for(condition: str | None) -> str:
    if not condition:
        return DEFAULT_BACKDROP
    lowered = condition.lower()
    for keywords, backdrop in _BACKDROPS:
        if any(keyword in lowered for keyword in keywords):
            return backdrop
    return DEFAULT_BACKDROP


def latest_weather(session: Session | None) -> Message | None:
    """The newest message in *session* that carries current conditions."""
    if session is None:
        return None
    for message in reversed(session.messages):
        if message.current is not None:
            return message
    return None


def session_backdrop(session: Session | None) -> str:
    message = latest_weather(session)
    return backdrop_for(message.current.condition if message else None)


def describe_backdrop(session: Session | None, preferences: Preferences) -> str:
    """What the chat is drawn over: a custom image, or the weather under the theme."""
    if preferences.background_type == "custom" and preferences.background_image:
        return f"custom ({preferences.background_prompt})"
    return f"{session_backdrop(session)} ({preferences.theme} theme)"
