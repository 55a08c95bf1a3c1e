"""Stateless image generation."""

import logging

from murmur_models import ArtisticStyle, AspectRatio, GeneratedImage

from murmur.exceptions import (
    CONFIGURATION_ERROR_MESSAGE,
    CapabilityUnavailable,
    ConfigurationError,
    ImageGenerationError,
)
from murmur.services.backends import AssistantBackend

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "Couldn't generate an image. The prompt may have been rejected."
IMAGE_ERROR_MESSAGE = "An error occurred during image generation. Please try again."


def build_image_prompt(prompt: str, style: ArtisticStyle, negative_prompt: str = "") -> str:
    final_prompt = f"{prompt}, {style} style"
    if negative_prompt.strip():
        final_prompt += f", avoid the following: {negative_prompt}"
    return final_prompt


class ImageStudio:
    """One request, one image; no conversation state."""

    def __init__(self, backend: AssistantBackend | None):
        self.backend = backend

    async def generate(
        self,
        prompt: str,
        negative_prompt: str = "",
        style: ArtisticStyle = "photorealistic",
        aspect_ratio: AspectRatio = "1:1",
    ) -> GeneratedImage:
        if not prompt.strip():
            raise ValueError("Prompt must not be empty")
        if self.backend is None:
            raise ConfigurationError(CONFIGURATION_ERROR_MESSAGE)

        final_prompt = build_image_prompt(prompt, style, negative_prompt)
        logger.info(f"Generating image ({style}, {aspect_ratio})")
        try:
            images = await self.backend.generate_images(
                final_prompt,
                aspect_ratio=aspect_ratio,
                number_of_images=1,
            )
        except (CapabilityUnavailable, ImageGenerationError):
            raise
        except Exception as e:
            logger.error(f"Image generation failed: {e}")
            raise ImageGenerationError(IMAGE_ERROR_MESSAGE) from e

        if not images:
            raise ImageGenerationError(NO_IMAGE_MESSAGE)
        return GeneratedImage(base64=images[0], prompt=prompt)
