"""Image and video generation tracked against the message that asked for them.

Each coordinator runs one background task per message and writes every
status change back into that message. Several messages may generate at once;
a second request for a message that is already generating is ignored.
The custom chat backdrop is generated the same way but saved in preferences.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from skycast.chat.models import ImageResult, VideoResult
from skycast.config import settings
from skycast.errors import OperationNotFound

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from skycast.chat.models import Attachment
    from skycast.chat.session import SessionStore
    from skycast.media.base import ImageGenerator, VideoGenerator
    from skycast.parsing.payloads import ImageRequest, VideoRequest

logger = logging.getLogger(__name__)

IMAGE_EMPTY_ERROR = (
    "Generation was successful, but no image was returned. "
    "This may be due to a content safety policy."
)
VIDEO_LOST_ERROR = (
    "Video generation session lost. This can happen due to high traffic "
    "or model timeouts. Please try again."
)
VIDEO_EMPTY_ERROR = "Video generation completed, but no video was returned."
VIDEO_TIMEOUT_ERROR = "Video generation is taking too long and was stopped. Please try again."

VIDEO_SUBMITTED_PROGRESS = 10
VIDEO_PROGRESS_STEP = 5
VIDEO_PROGRESS_CAP = 95


def _failure_text(kind: str, exc: BaseException) -> str:
    detail = str(exc) or type(exc).__name__
    return f"{kind} generation failed: {detail}"


class _PerMessageTasks:
    """Background tasks keyed by message ID, at most one live task per ID."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def is_active(self, message_id: str) -> bool:
        task = self._tasks.get(message_id)
        return task is not None and not task.done()

    def spawn(self, message_id: str, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None] | None:
        if self.is_active(message_id):
            coro.close()
            logger.info("Generation already running for message %s", message_id)
            return None
        task = asyncio.create_task(coro)
        self._tasks[message_id] = task

        def _forget(done: asyncio.Task[None]) -> None:
            if self._tasks.get(message_id) is done:
                del self._tasks[message_id]

        task.add_done_callback(_forget)
        return task


class ImageCoordinator:
    """Single request/response: ``generating`` → ``done`` | ``error``."""

    def __init__(self, store: SessionStore, generator: ImageGenerator) -> None:
        self._store = store
        self._generator = generator
        self._tasks = _PerMessageTasks()

    def is_active(self, message_id: str) -> bool:
        return self._tasks.is_active(message_id)

    def start(
        self,
        session_id: str,
        message_id: str,
        request: ImageRequest,
        reference: Attachment | None = None,
    ) -> asyncio.Task[None] | None:
        return self._tasks.spawn(message_id, self.run(session_id, message_id, request, reference))

    def _write(self, session_id: str, message_id: str, result: ImageResult) -> bool:
        return self._store.update_message(session_id, message_id, image_result=result) is not None

    async def run(
        self,
        session_id: str,
        message_id: str,
        request: ImageRequest,
        reference: Attachment | None = None,
    ) -> None:
        if not self._write(session_id, message_id, ImageResult(status="generating")):
            return
        try:
            uri = await self._generator.generate(request.prompt, request.aspect_ratio, reference)
        except Exception as exc:
            logger.exception("Image generation failed for message %s", message_id)
            self._write(session_id, message_id, ImageResult(status="error", error=_failure_text("Image", exc)))
            return

        if not uri:
            self._write(session_id, message_id, ImageResult(status="error", error=IMAGE_EMPTY_ERROR))
            return
        self._write(session_id, message_id, ImageResult(status="done", uri=uri))
        logger.info("Image ready for message %s", message_id)


class VideoCoordinator:
    """Submit then poll: ``generating(progress)`` → ``done`` | ``error``.

    Progress is estimated: 10 once submitted, then +5 per poll (or the
    backend's own figure if higher), never above 95 until the video is done.
    A lost operation ends polling with its own error message.
    """

    def __init__(
        self,
        store: SessionStore,
        generator: VideoGenerator,
        *,
        poll_interval: float | None = None,
        max_polls: int | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self.poll_interval = settings.video_poll_interval if poll_interval is None else poll_interval
        self.max_polls = settings.video_max_polls if max_polls is None else max_polls
        self._tasks = _PerMessageTasks()

    def is_active(self, message_id: str) -> bool:
        return self._tasks.is_active(message_id)

    def start(self, session_id: str, message_id: str, request: VideoRequest) -> asyncio.Task[None] | None:
        return self._tasks.spawn(message_id, self.run(session_id, message_id, request))

    def _write(self, session_id: str, message_id: str, result: VideoResult) -> bool:
        return self._store.update_message(session_id, message_id, video_result=result) is not None

    async def run(self, session_id: str, message_id: str, request: VideoRequest) -> None:
        progress = 0
        if not self._write(session_id, message_id, VideoResult(status="generating", progress=progress)):
            return

        def fail(error: str) -> None:
            self._write(session_id, message_id, VideoResult(status="error", progress=progress, error=error))

        try:
            handle = await self._generator.submit(request.prompt, request.aspect_ratio)
            progress = VIDEO_SUBMITTED_PROGRESS
            if not self._write(session_id, message_id, VideoResult(status="generating", progress=progress)):
                return

            for _ in range(self.max_polls):
                await asyncio.sleep(self.poll_interval)
                poll = await self._generator.poll(handle)

                if poll.state == "done":
                    if not poll.uri:
                        fail(VIDEO_EMPTY_ERROR)
                        return
                    self._write(
                        session_id, message_id, VideoResult(status="done", progress=100, uri=poll.uri)
                    )
                    logger.info("Video ready for message %s", message_id)
                    return
                if poll.state == "failed":
                    fail(poll.error or "Video generation failed.")
                    return

                progress = min(VIDEO_PROGRESS_CAP, max(progress + VIDEO_PROGRESS_STEP, poll.progress or 0))
                if not self._write(
                    session_id, message_id, VideoResult(status="generating", progress=progress)
                ):
                    logger.info("Message %s is gone; abandoning video %s", message_id, handle)
                    return

            logger.warning("Video %s still running after %d polls", handle, self.max_polls)
            fail(VIDEO_TIMEOUT_ERROR)
        except OperationNotFound:
            logger.warning("Video operation lost for message %s", message_id)
            fail(VIDEO_LOST_ERROR)
        except Exception as exc:
            logger.exception("Video generation failed for message %s", message_id)
            fail(_failure_text("Video", exc))


BACKGROUND_PROMPT = (
    "A beautiful, scenic, high-quality background image for a weather application. "
    "The scene should be: {prompt}. Photorealistic."
)
BACKGROUND_NO_PROMPT_ERROR = "Describe the background you want first."
BACKGROUND_BUSY_ERROR = "A background is already being generated."
UNKNOWN_ERROR = "An unknown error occurred."


class BackgroundCoordinator:
    """Generates the custom chat backdrop from the saved background prompt.

    Unlike message media, the outcome lands in the preferences: on success
    the backdrop switches to ``custom`` with the new image, on failure the
    preferences are left untouched and the error text is returned.
    """

    def __init__(self, store: SessionStore, generator: ImageGenerator) -> None:
        self._store = store
        self._generator = generator
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def generate(self, prompt: str | None = None) -> str | None:
        """Generate a backdrop, saving *prompt* first if given. Returns an error or None."""
        if prompt is not None:
            self._store.update_preferences(background_prompt=prompt.strip())
        prefs = self._store.preferences
        if not prefs.background_prompt:
            return BACKGROUND_NO_PROMPT_ERROR
        if self._running:
            return BACKGROUND_BUSY_ERROR

        self._running = True
        try:
            uri = await self._generator.generate(
                BACKGROUND_PROMPT.format(prompt=prefs.background_prompt),
                "16:9",
                image_size=prefs.image_size,
            )
        except Exception as exc:
            logger.exception("Background generation failed")
            return f"API Error: {exc}" if str(exc) else UNKNOWN_ERROR
        finally:
            self._running = False

        if not uri:
            return IMAGE_EMPTY_ERROR
        self._store.update_preferences(background_type="custom", background_image=uri)
        logger.info("Custom background ready")
        return None

    def reset(self) -> None:
        """Go back to the weather-driven backdrop."""
        self._store.update_preferences(background_type="default", background_image="")
