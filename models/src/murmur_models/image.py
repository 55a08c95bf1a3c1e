"""Image generation models."""

from typing import Literal

from pydantic import BaseModel, Field

AspectRatio = Literal["1:1", "16:9", "9:16"]
ArtisticStyle = Literal["photorealistic", "anime", "cartoon", "fantasy"]


class GeneratedImage(BaseModel):
    """An image returned by the image generation backend."""

    base64: str = Field(..., description="Base64-encoded PNG bytes")
    prompt: str = Field(..., description="The user's original prompt")
    mime_type: str = Field("image/png", description="Image MIME type")
