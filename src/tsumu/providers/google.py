"""Google Cloud Text-to-Speech provider (Chirp 3 HD Japanese voices)."""

import base64
import binascii
import os

import httpx

from ..errors import DecodeError, ProviderAuthError
from ..models import AssetKind, AudioRequest
from .base import HttpAssetProvider

GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
LANGUAGE_CODE = "ja-JP"
VOICE_PREFIX = f"{LANGUAGE_CODE}-Chirp3-HD-"

CHIRP3_HD_VOICES = [
    "Achernar",
    "Achird",
    "Algenib",
    "Algieba",
    "Alnilam",
    "Aoede",
    "Autonoe",
    "Callirrhoe",
    "Charon",
    "Despina",
    "Enceladus",
    "Erinome",
    "Fenrir",
    "Gacrux",
    "Iapetus",
    "Kore",
    "Laomedeia",
    "Leda",
    "Orus",
    "Puck",
    "Pulcherrima",
    "Rasalgethi",
    "Sadachbia",
    "Sadaltager",
    "Schedar",
    "Sulafat",
    "Umbriel",
    "Vindemiatrix",
    "Zephyr",
    "Zubenelgenubi",
]


def full_voice_name(voice: str) -> str:
    """Expand a short voice selector ("Aoede") to its full Chirp 3 HD name."""
    if not voice:
        return VOICE_PREFIX + "Aoede"
    if voice.startswith(LANGUAGE_CODE):
        return voice
    return VOICE_PREFIX + voice


class GoogleTTSProvider(HttpAssetProvider):
    """Google Cloud Text-to-Speech provider.

    The API answers with JSON whose ``audioContent`` field already holds
    base64 MP3, which is decoded here so every provider hands raw bytes to
    the pipeline.
    """

    name = "google"
    kind = AssetKind.AUDIO

    def __init__(self, api_key: str | None = None) -> None:
        """Initialize Google TTS provider.

        Args:
            api_key: Cloud API key. If not provided, reads from
                    GOOGLE_TTS_API_KEY environment variable.

        Raises:
            ProviderAuthError: If API key is not provided.
        """
        self._api_key = api_key or os.getenv("GOOGLE_TTS_API_KEY")
        if not self._api_key:
            raise ProviderAuthError(
                "Google TTS API key not found. Set GOOGLE_TTS_API_KEY environment "
                "variable or provide api_key parameter."
            )

    def build_request(self, descriptor: AudioRequest) -> httpx.Request:
        return httpx.Request(
            "POST",
            GOOGLE_TTS_URL,
            params={"key": self._api_key},
            json={
                "input": {"text": descriptor.text},
                "voice": {
                    "languageCode": LANGUAGE_CODE,
                    "name": full_voice_name(descriptor.voice),
                },
                "audioConfig": {"audioEncoding": "MP3"},
            },
        )

    def decode(self, response: httpx.Response) -> bytes:
        data = response.json()
        content = data.get("audioContent") if isinstance(data, dict) else None
        if not content:
            raise DecodeError("No audioContent returned")
        try:
            return base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"audioContent is not valid base64: {e}", e) from e

    async def list_voices(self) -> list[dict]:
        """List the Japanese Chirp 3 HD voices.

        Returns:
            List of voice dictionaries with id, name, and provider fields.
        """
        return [
            {"id": voice, "name": VOICE_PREFIX + voice, "provider": self.name}
            for voice in CHIRP3_HD_VOICES
        ]
