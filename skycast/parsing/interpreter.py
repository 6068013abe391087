"""Turn a finished model response into a typed, display-ready record."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from skycast.parsing.frames import split_frames
from skycast.parsing.payloads import (
    CurrentConditions,
    ImageRequest,
    VideoRequest,
    WeatherAlert,
    WeatherPoint,
    WeatherReport,
)
from skycast.parsing.units import convert_report

if TYPE_CHECKING:
    from skycast.parsing.units import Units

logger = logging.getLogger(__name__)

# Heading, bullet, or numbered item at the start of any line. Approximate on
# purpose: it only decides whether to render the reply as a plan.
_PLAN_RE = re.compile(r"(^#{1,3}\s.*$)|(^\s*-\s)|(^\s*\*\s)|(^\s*\d+\.\s)", re.MULTILINE)

_M = TypeVar("_M", bound=BaseModel)


@dataclass(frozen=True)
class ParsedTurn:
    """Everything extracted from one assistant response."""

    text: str
    contains_plan: bool = False
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    current: CurrentConditions | None = None
    hourly: tuple[WeatherPoint, ...] = ()
    daily: tuple[WeatherPoint, ...] = ()
    alerts: tuple[WeatherAlert, ...] = ()
    insights: tuple[str, ...] = ()
    diagrams: tuple[str, ...] = ()
    image_request: ImageRequest | None = None
    video_request: VideoRequest | None = None

    @property
    def has_weather(self) -> bool:
        return self.current is not None or bool(self.hourly or self.daily)


def looks_like_plan(text: str) -> bool:
    return _PLAN_RE.search(text) is not None


def _validate(model: type[_M], data: dict[str, Any] | None, tag: str) -> _M | None:
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Dropping malformed %s payload: %d error(s)", tag, exc.error_count())
        return None


def interpret(text: str, units: Units = "metric") -> ParsedTurn:
    """Parse the complete text of an assistant turn.

    Weather values are converted to *units* here, once. A missing or
    malformed payload simply leaves its fields empty.
    """
    split = split_frames(text)

    report = _validate(WeatherReport, split.weather, "weather")
    if report is not None:
        report = convert_report(report, units)

    fields: dict[str, Any] = {}
    if report is not None:
        fields = {
            "location": report.location,
            "latitude": report.latitude,
            "longitude": report.longitude,
            "current": report.current,
            "hourly": report.hourly,
            "daily": report.daily,
            "alerts": report.alerts,
            "insights": report.insights,
        }

    return ParsedTurn(
        text=split.residual,
        contains_plan=looks_like_plan(split.residual),
        diagrams=split.diagrams,
        image_request=_validate(ImageRequest, split.image, "image"),
        video_request=_validate(VideoRequest, split.video, "video"),
        **fields,
    )
