"""Pollinations.ai image generation provider."""

from urllib.parse import quote

import httpx

from ..errors import DecodeError
from ..models import AssetKind, ImageRequest
from .base import HttpAssetProvider

POLLINATIONS_URL = "https://image.pollinations.ai/prompt/"

STYLE_PREFIX = (
    "Studio Ghibli anime style, soft watercolour painting, peaceful Japanese scene, "
)
STYLE_SUFFIX = ", detailed background, warm light, no text, no characters"

# Long prompts are rejected or truncated unpredictably by the service
MAX_SCENE_CHARS = 300


def build_prompt(scene: str) -> str:
    """Wrap a scene description in the card illustration style."""
    return STYLE_PREFIX + scene[:MAX_SCENE_CHARS] + STYLE_SUFFIX


class PollinationsImageProvider(HttpAssetProvider):
    """Pollinations image provider.

    Returns raw image bytes. The seed is derived from the subject id, so a
    retry or a later regeneration asks for the same picture. Two instances
    with different models serve as primary and fallback.
    """

    name = "pollinations"
    kind = AssetKind.IMAGE

    def __init__(self, model: str = "flux", width: int = 800, height: int = 500) -> None:
        self.model = model
        self.width = width
        self.height = height

    @property
    def label(self) -> str:
        return f"{self.name}/{self.model}"

    def build_request(self, descriptor: ImageRequest) -> httpx.Request:
        if not descriptor.scene:
            raise ValueError(f"No scene text for image '{descriptor.key}'")
        return httpx.Request(
            "GET",
            POLLINATIONS_URL + quote(build_prompt(descriptor.scene), safe=""),
            params={
                "width": self.width,
                "height": self.height,
                "nologo": "true",
                "seed": descriptor.seed,
                "model": self.model,
            },
        )

    def decode(self, response: httpx.Response) -> bytes:
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise DecodeError(
                f"{self.label} returned {content_type or 'no content type'} instead of an image"
            )
        if not response.content:
            raise DecodeError(f"{self.label} returned an empty image")
        return response.content
