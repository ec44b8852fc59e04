"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import os
from dataclasses import asdict, dataclass

import httpx
from elevenlabs.client import ElevenLabs

from ..errors import NetworkError, ProviderAuthError, ProviderError
from ..models import AssetKind, AudioRequest
from .base import AssetProvider


@dataclass
class VoiceSettings:
    """Voice generation settings.

    Args:
        stability: Voice stability (0.0-1.0)
        similarity_boost: Voice similarity boost (0.0-1.0)
        style: Voice style exaggeration (0.0-1.0)
        use_speaker_boost: Whether to use speaker boost
        speed: Speaking rate (0.7-1.2), slowed a little for learners
    """

    stability: float = 0.65
    similarity_boost: float = 0.75
    style: float = 0.2
    use_speaker_boost: bool = True
    speed: float = 0.9

    def __post_init__(self) -> None:
        """Validate voice settings."""
        if not 0.0 <= self.stability <= 1.0:
            raise ValueError("stability must be between 0.0 and 1.0")
        if not 0.0 <= self.similarity_boost <= 1.0:
            raise ValueError("similarity_boost must be between 0.0 and 1.0")
        if not 0.0 <= self.style <= 1.0:
            raise ValueError("style must be between 0.0 and 1.0")
        if not 0.7 <= self.speed <= 1.2:
            raise ValueError("speed must be between 0.7 and 1.2")


class ElevenLabsProvider(AssetProvider):
    """ElevenLabs TTS provider implementation.

    Goes through the official SDK, which manages its own connection pool,
    instead of a hand-built HTTP request.
    """

    name = "elevenlabs"
    kind = AssetKind.AUDIO

    def __init__(
        self,
        api_key: str | None = None,
        model_id: str = "eleven_multilingual_v2",
        settings: VoiceSettings | None = None,
    ) -> None:
        """Initialize ElevenLabs provider.

        Args:
            api_key: ElevenLabs API key. If not provided, reads from
                    ELEVENLABS_API_KEY environment variable.
            model_id: Model to synthesize with; must support Japanese
            settings: Voice settings, defaults tuned for study playback

        Raises:
            ProviderAuthError: If API key is not provided or invalid.
        """
        self._api_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        if not self._api_key:
            raise ProviderAuthError(
                "ElevenLabs API key not found. Set ELEVENLABS_API_KEY environment "
                "variable or provide api_key parameter."
            )

        try:
            self._client = ElevenLabs(api_key=self._api_key)
        except Exception as e:
            raise ProviderAuthError(
                f"Failed to initialize ElevenLabs client: {e}", original_error=e
            ) from e

        self.model_id = model_id
        self.settings = settings or VoiceSettings()
        # Cache for voices to avoid repeated API calls
        self._voices_cache: list[dict] | None = None

    async def produce(self, descriptor: AudioRequest, client: httpx.AsyncClient) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            descriptor: Text and ElevenLabs voice id to synthesize
            client: Unused; the SDK manages its own connection pool

        Returns:
            Audio data as bytes (MP3 format)

        Raises:
            NetworkError: If the API could not be reached
            ProviderAuthError: If authentication fails
            ProviderError: If the API call fails or returns no audio
        """

        def _sync_convert() -> bytes:
            audio_generator = self._client.text_to_speech.convert(
                text=descriptor.text,
                voice_id=descriptor.voice,
                model_id=self.model_id,
                voice_settings=asdict(self.settings),
            )
            return b"".join(audio_generator)

        try:
            # Run synchronous ElevenLabs client in thread to avoid blocking event loop
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise NetworkError(f"ElevenLabs unreachable: {e}", e) from e
        except Exception as e:
            raise self._map_error(e) from e

        if not audio_bytes:
            raise ProviderError("No audio data received from ElevenLabs")
        return audio_bytes

    async def list_voices(self) -> list[dict]:
        """Get list of available voices.

        Results are cached after first call to avoid repeated API requests.

        Returns:
            List of voice dictionaries with id, name, and provider fields

        Raises:
            ProviderError: If API call fails
            ProviderAuthError: If authentication fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        def _sync_get_voices() -> list[dict]:
            response = self._client.voices.get_all()
            return [
                {"id": voice.voice_id, "name": voice.name, "provider": self.name}
                for voice in response.voices
            ]

        try:
            voices = await asyncio.to_thread(_sync_get_voices)
        except Exception as e:
            raise self._map_error(e) from e

        self._voices_cache = voices
        return voices

    @staticmethod
    def _map_error(e: Exception) -> ProviderError:
        status = getattr(e, "status_code", None)
        message = str(e)
        if status in (401, 403) or "unauthorized" in message.lower():
            return ProviderAuthError(f"Authentication failed: {e}", status, e)
        if status == 429 or "429" in message:
            return ProviderError(f"Rate limit exceeded: {e}", 429, e)
        return ProviderError(f"ElevenLabs call failed: {e}", status, e)
