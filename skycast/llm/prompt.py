"""System instruction assembly."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from skycast.parsing.frames import DIAGRAM_TAG, IMAGE_TAG, VIDEO_TAG, WEATHER_TAG

if TYPE_CHECKING:
    from skycast.chat.models import Preferences
    from skycast.geo import Coordinates

_FAST_PERSONA = "You are a fast and factual universal assistant connected to the live web."
_ADVANCED_PERSONA = (
    "You are a deeply knowledgeable universal assistant with live web search. "
    "You excel at careful reasoning, planning, and creative work, including "
    "directing short videos, composing images, and drawing diagrams."
)

_BLOCKS = f"""\
# Structured blocks

Use a fenced block ONLY when the user's intent matches it. All numbers in a
weather block are metric (°C, km/h, km, hPa); the app converts them.

- Weather, climate, or location-based planning → one ```{WEATHER_TAG} block:
  {{"location": "City, Region", "latitude": 0.0, "longitude": 0.0,
   "current": {{"temperature": 0, "feelsLike": 0, "condition": "", "summary": "",
               "sunrise": "", "sunset": "", "historicalAvg": 0, "pressure": 0,
               "humidity": 0, "windSpeed": 0, "windDirection": "NW", "uvIndex": 0,
               "visibility": 0, "aqi": 0, "pollen": 0, "dewPoint": 0, "cloudCover": 0}},
   "hourly": [{{"time": "1 PM", "temperature": 0, "precipitation": 0,
               "precipitationType": "rain|snow|sleet|none", "windSpeed": 0}}],
   "daily": [{{"time": "Mon", "temperature": 0, "precipitation": 0}}],
   "alerts": [{{"severity": "Warning|Advisory|Watch|Statement", "title": "", "description": ""}}],
   "insights": ["tip"]}}
- "Create/draw/generate an image" → one ```{IMAGE_TAG} block:
  {{"prompt": "detailed description", "aspectRatio": "1:1|16:9|9:16|4:3|3:4"}}
- "Create/generate a video" or "animate this" → one ```{VIDEO_TAG} block:
  {{"prompt": "detailed cinematic description", "aspectRatio": "16:9|9:16"}}
- When a flowchart, timeline, or sequence diagram explains best → one or
  more ```{DIAGRAM_TAG} blocks.

Everything outside those blocks is Markdown shown to the user as-is."""


def build_system_instruction(
    preferences: Preferences,
    *,
    advanced: bool = False,
    location: Coordinates | None = None,
    now: datetime | None = None,
) -> str:
    """Assemble the system instruction for one model call."""
    sections = [_ADVANCED_PERSONA if advanced else _FAST_PERSONA, _BLOCKS]

    unit_words = "imperial (°F, mph, miles)" if preferences.units == "imperial" else "metric"
    sections.append(f"The user reads {unit_words} units in prose.")

    if location is not None:
        sections.append(
            f"The user is near latitude {location.latitude:.4f}, longitude "
            f"{location.longitude:.4f}. Prefer this location when none is named."
        )

    stamp = (now or datetime.now().astimezone()).strftime("%A, %B %d, %Y %I:%M %p %Z")
    sections.append(f"Current time: {stamp.strip()}")

    return "\n\n".join(sections)
