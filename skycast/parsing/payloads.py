"""Typed models for the structured blocks a model response may carry.

The model emits these as JSON inside fenced blocks. Nothing about their shape
is trusted until it has been validated into one of these models; fields the
model leaves out stay ``None`` rather than being filled with defaults.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

Severity = Literal["Warning", "Advisory", "Watch", "Statement"]
PrecipitationType = Literal["rain", "snow", "sleet", "none"]
VideoAspect = Literal["16:9", "9:16"]
ImageAspect = Literal["1:1", "16:9", "9:16", "4:3", "3:4"]

_SEVERITIES = {"warning": "Warning", "advisory": "Advisory", "watch": "Watch", "statement": "Statement"}
_PRECIPITATION = {"rain", "snow", "sleet", "none"}


class Payload(BaseModel):
    """Base for model-emitted payloads: camelCase on the wire, unknown keys dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class CurrentConditions(Payload):
    """Snapshot of the weather right now."""

    temperature: float | None = None
    feels_like: float | None = None
    condition: str | None = None
    summary: str | None = None
    sunrise: str | None = None
    sunset: str | None = None
    historical_avg: float | None = None
    pressure: float | None = None
    humidity: float | None = None
    wind_speed: float | None = None
    wind_direction: str | None = None
    uv_index: float | None = None
    visibility: float | None = None
    aqi: float | None = None
    pollen: float | None = None
    dew_point: float | None = None
    cloud_cover: float | None = None


class WeatherPoint(Payload):
    """One entry of an hourly or daily series."""

    time: str
    temperature: float | None = None
    feels_like: float | None = None
    precipitation: float | None = None
    precipitation_type: PrecipitationType | None = None
    humidity: float | None = None
    wind_speed: float | None = None
    wind_direction: str | None = None
    uv_index: float | None = None
    aqi: float | None = None
    pollen: float | None = None
    visibility: float | None = None
    dew_point: float | None = None
    pressure: float | None = None
    cloud_cover: float | None = None
    historical_avg_temp: float | None = None
    confidence: float | None = None

    @field_validator("time", mode="before")
    @classmethod
    def _stringify_time(cls, value: object) -> object:
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("precipitation_type", mode="before")
    @classmethod
    def _known_precipitation(cls, value: object) -> object:
        if isinstance(value, str) and value.lower() in _PRECIPITATION:
            return value.lower()
        return None


class WeatherAlert(Payload):
    severity: Severity = "Statement"
    title: str
    description: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _known_severity(cls, value: object) -> object:
        if isinstance(value, str):
            return _SEVERITIES.get(value.strip().lower(), "Statement")
        return "Statement"


class WeatherReport(Payload):
    """The full ``json_weather`` block."""

    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    current: CurrentConditions | None = None
    hourly: tuple[WeatherPoint, ...] = ()
    daily: tuple[WeatherPoint, ...] = ()
    alerts: tuple[WeatherAlert, ...] = ()
    insights: tuple[str, ...] = ()

    @field_validator("location", mode="before")
    @classmethod
    def _blank_location(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("hourly", "daily", "alerts", mode="before")
    @classmethod
    def _drop_invalid_entries(cls, value: Any, info: ValidationInfo) -> Any:
        # A bad entry is dropped on its own; the rest of the series is kept.
        if not isinstance(value, list):
            return value
        model = WeatherAlert if info.field_name == "alerts" else WeatherPoint
        kept = []
        for index, entry in enumerate(value):
            try:
                kept.append(model.model_validate(entry))
            except ValidationError as exc:
                logger.warning(
                    "Dropping %s entry %d: %d validation error(s)",
                    info.field_name,
                    index,
                    exc.error_count(),
                )
        return kept


class ImageRequest(Payload):
    """The ``json_image`` block."""

    prompt: str = Field(min_length=1)
    aspect_ratio: ImageAspect = "1:1"

    @field_validator("aspect_ratio", mode="before")
    @classmethod
    def _known_image_aspect(cls, value: object) -> object:
        if value in ("1:1", "16:9", "9:16", "4:3", "3:4"):
            return value
        return "1:1"


class VideoRequest(Payload):
    """The ``json_video`` block."""

    prompt: str = Field(min_length=1)
    aspect_ratio: VideoAspect = "16:9"

    @field_validator("aspect_ratio", mode="before")
    @classmethod
    def _known_video_aspect(cls, value: object) -> object:
        if value in ("16:9", "9:16"):
            return value
        return "16:9"
