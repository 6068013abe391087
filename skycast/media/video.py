"""Video generation over the OpenAI video API (submit, then poll)."""

from __future__ import annotations

import asyncio
import logging

import openai

from skycast.config import settings
from skycast.errors import OperationNotFound
from skycast.media.base import VideoPoll
from skycast.media.openai_client import get_client

logger = logging.getLogger(__name__)

ASPECT_SIZES = {"16:9": "1280x720", "9:16": "720x1280"}


class OpenAIVideoGenerator:
    """Finished videos are downloaded into ``settings.media_dir``."""

    async def submit(self, prompt: str, aspect_ratio: str) -> str:
        video = await get_client().videos.create(
            model=settings.video_model,
            prompt=prompt,
            size=ASPECT_SIZES.get(aspect_ratio, ASPECT_SIZES["16:9"]),
        )
        logger.info("Submitted video %s", video.id)
        return video.id

    async def poll(self, handle: str) -> VideoPoll:
        client = get_client()
        try:
            video = await client.videos.retrieve(handle)
        except openai.NotFoundError as exc:
            raise OperationNotFound(handle) from exc

        if video.status in ("queued", "in_progress"):
            return VideoPoll(state="running", progress=video.progress)
        if video.status == "failed":
            message = getattr(video.error, "message", None) or "Video generation failed."
            return VideoPoll(state="failed", error=message)

        content = await client.videos.download_content(handle, variant="video")
        path = settings.media_dir / f"{handle}.mp4"
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, content.content)
        return VideoPoll(state="done", progress=100, uri=path.resolve().as_uri())
