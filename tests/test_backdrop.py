"""Tests for picking a backdrop from the latest weather."""

import pytest

from skycast.chat.backdrop import backdrop_for, describe_backdrop, latest_weather, session_backdrop
from skycast.chat.models import Message, Preferences, Session
from skycast.parsing.payloads import CurrentConditions


@pytest.mark.parametrize(
    ("condition", "expected"),
    [
        ("Thunder showers", "storm"),
        ("Light snow", "snow"),
        ("Drizzle", "rain"),
        ("Partly Cloudy", "cloudy"),
        ("Fog", "cloudy"),
        ("Sunny", "clear"),
        ("Something odd", "clear"),
        (None, "clear"),
    ],
)
def test_backdrop_for(condition, expected) -> None:
    """Condition keywords map to backdrops, first match winning."""
    assert backdrop_for(condition) == expected


def test_latest_weather_wins() -> None:
    """The newest message with current conditions decides the backdrop."""
    old = Message(role="assistant", current=CurrentConditions(condition="Rain"))
    new = Message(role="assistant", current=CurrentConditions(condition="Snow"))
    chatter = Message(role="assistant", content="no weather here")
    session = Session(messages=[old, new, chatter])

    assert latest_weather(session) is new
    assert session_backdrop(session) == "snow"


def test_no_session_or_weather() -> None:
    """No session or no weather gives the default backdrop."""
    assert latest_weather(None) is None
    assert session_backdrop(Session()) == "clear"


def test_describe_backdrop_uses_theme() -> None:
    """Without a custom image the weather backdrop is shown under the theme."""
    rainy = Session(messages=[Message(role="assistant", current=CurrentConditions(condition="Rain"))])
    assert describe_backdrop(rainy, Preferences(theme="sky")) == "rain (sky theme)"


def test_describe_backdrop_custom() -> None:
    """A custom image wins over the weather."""
    prefs = Preferences(background_type="custom", background_prompt="dunes", background_image="data:x")
    assert describe_backdrop(Session(), prefs) == "custom (dunes)"
    assert describe_backdrop(None, prefs.model_copy(update={"background_image": ""})) == "clear (diamond theme)"
