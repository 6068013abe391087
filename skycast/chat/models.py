"""Data models for chat sessions, messages and user preferences."""

from __future__ import annotations

import time
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from skycast.parsing.payloads import (
    CurrentConditions,
    ImageRequest,
    VideoRequest,
    WeatherAlert,
    WeatherPoint,
)

Role = Literal["user", "assistant"]
ModelTier = Literal["fast", "advanced"]
AudioState = Literal["idle", "loading", "playing"]
OperationStatus = Literal["generating", "done", "error"]
ImageSize = Literal["1K", "2K", "4K"]

DEFAULT_TITLE = "New Chat"


def make_id() -> str:
    """Generate a new message or session ID."""
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class Citation(BaseModel):
    """A source the model grounded part of its answer on."""

    model_config = ConfigDict(frozen=True)

    uri: str
    title: str = ""


class Attachment(BaseModel):
    """An image the user attached to their message."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = "image/png"
    data: str  # base64


class ImageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OperationStatus
    uri: str | None = None
    error: str | None = None


class VideoResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OperationStatus
    progress: int = 0
    uri: str | None = None
    error: str | None = None


class Message(BaseModel):
    """A single chat message.

    Instances are never mutated in place; the session store swaps in an
    updated copy so every change is one synchronous replacement.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=make_id)
    role: Role
    content: str = ""
    is_streaming: bool = False
    timestamp: int = Field(default_factory=now_ms)
    attachment: Attachment | None = None

    # Extracted from the finished response
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    current: CurrentConditions | None = None
    hourly: tuple[WeatherPoint, ...] = ()
    daily: tuple[WeatherPoint, ...] = ()
    alerts: tuple[WeatherAlert, ...] = ()
    insights: tuple[str, ...] = ()
    diagrams: tuple[str, ...] = ()
    citations: tuple[Citation, ...] = ()
    contains_plan: bool = False
    image_request: ImageRequest | None = None
    video_request: VideoRequest | None = None

    # Written back by side-effect coordinators
    audio_state: AudioState = "idle"
    image_result: ImageResult | None = None
    video_result: VideoResult | None = None


class Session(BaseModel):
    """An ordered conversation. Messages are append-only."""

    id: str = Field(default_factory=make_id)
    title: str = DEFAULT_TITLE
    created_at: int = Field(default_factory=now_ms)
    model: ModelTier = "fast"
    messages: list[Message] = Field(default_factory=list)

    def find(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


class Preferences(BaseModel):
    """User-facing settings, persisted between runs."""

    default_model: ModelTier = "fast"
    voice: str = "alloy"
    units: Literal["metric", "imperial"] = "metric"
    theme: Literal["diamond", "sky"] = "diamond"
    image_size: ImageSize = "1K"
    background_type: Literal["default", "custom"] = "default"
    background_prompt: str = ""
    background_image: str = ""
    conversational_mode: bool = False
