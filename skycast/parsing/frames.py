"""Fenced sub-payload extraction from a finished model response.

A response is Markdown prose that may embed fenced blocks tagged with one of
the sentinel tags below. ``split_frames`` pulls those blocks out and returns
the prose that remains. It must only ever see the complete text of a turn;
mid-stream text may end inside a fence.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

FENCE = "```"

WEATHER_TAG = "json_weather"
IMAGE_TAG = "json_image"
VIDEO_TAG = "json_video"
DIAGRAM_TAG = "mermaid"

PAYLOAD_TAGS = frozenset({WEATHER_TAG, IMAGE_TAG, VIDEO_TAG})
KNOWN_TAGS = PAYLOAD_TAGS | {DIAGRAM_TAG}

RADAR_LINK_TEXT = "View Local Weather Radar"

_TAG_RE = re.compile(r"[A-Za-z0-9_-]*")
# Bare URLs only: a URL right after "(", "[" or "<" is already part of a link.
_RADAR_URL_RE = re.compile(r"(?<![(\[<])https?://[^\s)\]>]*radar[^\s)\]>]*", re.IGNORECASE)
_TRAILING_PUNCTUATION = ".,;:!?"
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def diagram_placeholder(index: int) -> str:
    return f"[DIAGRAM_PLACEHOLDER_{index}]"


@dataclass(frozen=True)
class Fence:
    """One fenced block: its tag, inner text, and span in the source."""

    tag: str
    body: str
    start: int
    end: int
    closed: bool = True


@dataclass(frozen=True)
class FrameSplit:
    """Result of splitting a response into prose and fenced payloads.

    Payload fields hold the decoded JSON object of the first block of that
    kind, or ``None`` when the block is missing or failed to decode.
    """

    residual: str
    weather: dict[str, Any] | None = None
    image: dict[str, Any] | None = None
    video: dict[str, Any] | None = None
    diagrams: tuple[str, ...] = ()


def scan_fences(text: str, tags: frozenset[str] = KNOWN_TAGS) -> list[Fence]:
    """Find fenced blocks in order of appearance.

    Every fence is consumed as a unit (open tag through the next closing
    ``````), so a sentinel tag mentioned inside some other fenced block is
    never mistaken for a real one. Only fences whose tag is in *tags* are
    returned. An unclosed fence runs to the end of the text.
    """
    fences: list[Fence] = []
    pos = 0
    while True:
        open_at = text.find(FENCE, pos)
        if open_at < 0:
            break
        tag_match = _TAG_RE.match(text, open_at + len(FENCE))
        tag = tag_match.group(0)
        body_start = tag_match.end()
        close_at = text.find(FENCE, body_start)
        if close_at < 0:
            end, body, closed = len(text), text[body_start:], False
        else:
            end, body, closed = close_at + len(FENCE), text[body_start:close_at], True
        if tag in tags:
            fences.append(Fence(tag=tag, body=body.strip(), start=open_at, end=end, closed=closed))
        pos = end
    return fences


def _decode(fence: Fence) -> dict[str, Any] | None:
    try:
        data = json.loads(fence.body)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse %s block: %s", fence.tag, exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring %s block: expected an object, got %s", fence.tag, type(data).__name__)
        return None
    return data


def _link_radar(match: re.Match[str]) -> str:
    url = match.group(0)
    stripped = url.rstrip(_TRAILING_PUNCTUATION)
    trailing = url[len(stripped):]
    return f"\n[{RADAR_LINK_TEXT}]({stripped})\n{trailing}"


def link_radar_urls(text: str) -> str:
    """Rewrite bare radar URLs into a descriptive Markdown link on their own line."""
    return _RADAR_URL_RE.sub(_link_radar, text)


def split_frames(text: str) -> FrameSplit:
    """Extract fenced payloads from *text* and return the cleaned prose.

    - The first block of each payload kind supplies that payload; later
      blocks of the same kind are dropped.
    - Diagram blocks are all kept, in order, and each is replaced in the
      prose with :func:`diagram_placeholder`.
    - Every recognised fence is removed from the prose whether or not its
      contents decoded, so raw fence syntax never reaches the reader.

    Running this on its own ``residual`` returns the same residual.
    """
    pieces: list[str] = []
    payloads: dict[str, dict[str, Any] | None] = {}
    diagrams: list[str] = []
    cursor = 0

    for fence in scan_fences(text):
        pieces.append(text[cursor : fence.start])
        cursor = fence.end
        if not fence.closed:
            logger.warning("Unterminated %s block at offset %d", fence.tag, fence.start)
        if fence.tag == DIAGRAM_TAG:
            pieces.append(diagram_placeholder(len(diagrams)))
            diagrams.append(fence.body)
        elif fence.tag in payloads:
            logger.warning("Ignoring repeated %s block", fence.tag)
        else:
            payloads[fence.tag] = _decode(fence)
    pieces.append(text[cursor:])

    residual = link_radar_urls("".join(pieces))
    residual = _BLANK_RUN_RE.sub("\n\n", residual).strip()

    return FrameSplit(
        residual=residual,
        weather=payloads.get(WEATHER_TAG),
        image=payloads.get(IMAGE_TAG),
        video=payloads.get(VIDEO_TAG),
        diagrams=tuple(diagrams),
    )
