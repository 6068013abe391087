"""Best-effort user location via IP geolocation.

Location only biases answers, so every failure (timeout, HTTP error, a
refusal from the service) degrades to "no location".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from skycast.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    label: str = ""


async def _lookup(url: str) -> Coordinates | None:
    async with httpx.AsyncClient() as client:
        resp = await client.get(url)
        resp.raise_for_status()
        data = resp.json()

    if data.get("status") != "success":
        logger.warning("Geolocation refused: %s", data.get("message", "unknown reason"))
        return None

    label = ", ".join(part for part in (data.get("city"), data.get("country")) if part)
    return Coordinates(latitude=float(data["lat"]), longitude=float(data["lon"]), label=label)


async def locate(url: str | None = None, timeout: float | None = None) -> Coordinates | None:
    """Look up approximate coordinates, or None within *timeout* seconds."""
    try:
        coords = await asyncio.wait_for(
            _lookup(url or settings.geolocation_url),
            timeout=timeout if timeout is not None else settings.geolocation_timeout,
        )
    except TimeoutError:
        logger.warning("Geolocation timed out")
        return None
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Geolocation failed: %s", exc)
        return None

    if coords:
        logger.info("Located user near %s", coords.label or f"{coords.latitude},{coords.longitude}")
    return coords
