"""Image generation over OpenAI GPT-Image-1."""

from __future__ import annotations

import base64
import logging
import mimetypes
from typing import TYPE_CHECKING, Any

from skycast.config import settings
from skycast.media.openai_client import get_client

if TYPE_CHECKING:
    from skycast.chat.models import Attachment, ImageSize

logger = logging.getLogger(__name__)

# Closest supported size for each requested aspect ratio.
ASPECT_SIZES = {
    "1:1": "1024x1024",
    "16:9": "1536x1024",
    "4:3": "1536x1024",
    "9:16": "1024x1536",
    "3:4": "1024x1536",
}

# GPT-Image-1 has no larger canvases; detail is controlled by quality instead.
SIZE_QUALITY = {"1K": "low", "2K": "medium", "4K": "high"}


class OpenAIImageGenerator:
    """Returns generated images as ``data:`` URIs."""

    async def generate(
        self,
        prompt: str,
        aspect_ratio: str,
        reference: Attachment | None = None,
        *,
        image_size: ImageSize | None = None,
    ) -> str | None:
        client = get_client()
        options: dict[str, Any] = {"size": ASPECT_SIZES.get(aspect_ratio, "1024x1024")}
        if image_size is not None:
            options["quality"] = SIZE_QUALITY[image_size]

        if reference is not None:
            ext = mimetypes.guess_extension(reference.mime_type) or ".png"
            image_file = (f"reference{ext}", base64.b64decode(reference.data), reference.mime_type)
            response = await client.images.edit(
                model=settings.image_model, image=image_file, prompt=prompt, **options
            )
        else:
            response = await client.images.generate(
                model=settings.image_model, prompt=prompt, n=1, **options
            )

        image_b64 = response.data[0].b64_json if response.data else None
        if not image_b64:
            logger.warning("No image data returned for prompt: %s", prompt[:80])
            return None
        return f"data:image/png;base64,{image_b64}"
