"""Metric → display unit conversion for weather payloads.

Payloads arrive in metric (°C, km/h, km, hPa). Conversion happens once, when
a response is interpreted; converted values are what gets stored.
"""

from __future__ import annotations

from typing import Literal

from skycast.parsing.payloads import CurrentConditions, WeatherPoint, WeatherReport

Units = Literal["metric", "imperial"]

KM_PER_MILE = 1.609
HPA_PER_INHG = 33.864


def to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def to_mph(kph: float) -> float:
    return kph / KM_PER_MILE


def to_miles(km: float) -> float:
    return km / KM_PER_MILE


def to_inhg(hpa: float) -> float:
    return hpa / HPA_PER_INHG


_TEMPERATURE_FIELDS = ("temperature", "feels_like", "historical_avg", "historical_avg_temp", "dew_point")
_CONVERTERS = {
    **{name: to_fahrenheit for name in _TEMPERATURE_FIELDS},
    "wind_speed": to_mph,
    "visibility": to_miles,
    "pressure": to_inhg,
}


def _imperial_updates(model: CurrentConditions | WeatherPoint) -> dict[str, float]:
    """Converted values for every convertible field that is present."""
    updates: dict[str, float] = {}
    for name, convert in _CONVERTERS.items():
        if name not in type(model).model_fields:
            continue
        value = getattr(model, name)
        if value is not None:
            updates[name] = convert(value)
    return updates


def convert_conditions(current: CurrentConditions, units: Units) -> CurrentConditions:
    if units != "imperial":
        return current
    return current.model_copy(update=_imperial_updates(current))


def convert_point(point: WeatherPoint, units: Units) -> WeatherPoint:
    if units != "imperial":
        return point
    return point.model_copy(update=_imperial_updates(point))


def convert_report(report: WeatherReport, units: Units) -> WeatherReport:
    """Return *report* expressed in *units*. Metric is a no-op."""
    if units != "imperial":
        return report
    return report.model_copy(
        update={
            "current": convert_conditions(report.current, units) if report.current else None,
            "hourly": tuple(convert_point(p, units) for p in report.hourly),
            "daily": tuple(convert_point(p, units) for p in report.daily),
        }
    )
