"""Unit tests for ElevenLabsProvider error handling and logic."""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from tsumu.errors import ProviderAuthError, ProviderError
from tsumu.models import AudioRequest
from tsumu.providers import AssetProvider, HttpAssetProvider
from tsumu.providers.elevenlabs import ElevenLabsProvider, VoiceSettings


def request(text: str = "こんにちは") -> AudioRequest:
    return AudioRequest(text=text, voice="voice123", provider="elevenlabs")


class TestElevenLabsProviderInitialization:
    """Test ElevenLabsProvider initialization and authentication error handling."""

    def test_initialization_with_provided_api_key(self) -> None:
        with patch("tsumu.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            mock_client = MagicMock()
            mock_elevenlabs.return_value = mock_client

            provider = ElevenLabsProvider(api_key="test_key")

            assert provider._api_key == "test_key"
            mock_elevenlabs.assert_called_once_with(api_key="test_key")
            assert provider._client == mock_client

    def test_initialization_with_env_var_api_key(self) -> None:
        with patch.dict(os.environ, {"ELEVENLABS_API_KEY": "env_test_key"}):
            with patch("tsumu.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
                provider = ElevenLabsProvider()

                assert provider._api_key == "env_test_key"
                mock_elevenlabs.assert_called_once_with(api_key="env_test_key")

    def test_initialization_no_api_key_raises_auth_error(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ProviderAuthError, match="ElevenLabs API key not found"):
                ElevenLabsProvider()

    def test_initialization_client_failure_raises_auth_error(self) -> None:
        with patch("tsumu.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            mock_elevenlabs.side_effect = Exception("Invalid API key")

            with pytest.raises(
                ProviderAuthError, match="Failed to initialize ElevenLabs client"
            ):
                ElevenLabsProvider(api_key="invalid_key")

    def test_is_sdk_backed_provider(self) -> None:
        with patch("tsumu.providers.elevenlabs.ElevenLabs"):
            provider = ElevenLabsProvider(api_key="test_key")

        assert isinstance(provider, AssetProvider)
        assert not isinstance(provider, HttpAssetProvider)
        assert not hasattr(provider, "build_request")


class TestVoiceSettings:
    """Test VoiceSettings validation."""

    def test_defaults_are_valid(self) -> None:
        settings = VoiceSettings()
        assert settings.speed == 0.9

    def test_stability_out_of_range_raises(self) -> None:
        with pytest.raises(ValueError, match="stability"):
            VoiceSettings(stability=1.5)

    def test_speed_out_of_range_raises(self) -> None:
        with pytest.raises(ValueError, match="speed"):
            VoiceSettings(speed=2.0)


class TestElevenLabsProviderProduce:
    """Test ElevenLabsProvider.produce success and error mapping."""

    def setup_method(self) -> None:
        """Set up test provider with mocked ElevenLabs client."""
        with patch("tsumu.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            self.mock_elevenlabs_client = MagicMock()
            mock_elevenlabs.return_value = self.mock_elevenlabs_client
            self.provider = ElevenLabsProvider(api_key="test_key")

    @pytest.mark.asyncio
    async def test_produce_joins_audio_chunks(self) -> None:
        self.mock_elevenlabs_client.text_to_speech.convert.return_value = iter(
            [b"ID3", b"chunk"]
        )

        result = await self.provider.produce(request("猫"), client=None)

        assert result == b"ID3chunk"
        kwargs = self.mock_elevenlabs_client.text_to_speech.convert.call_args.kwargs
        assert kwargs["text"] == "猫"
        assert kwargs["voice_id"] == "voice123"
        assert kwargs["model_id"] == "eleven_multilingual_v2"
        assert kwargs["voice_settings"]["stability"] == 0.65

    @pytest.mark.asyncio
    async def test_unauthorized_error_raises_auth_error(self) -> None:
        self.mock_elevenlabs_client.text_to_speech.convert.side_effect = Exception(
            "401 unauthorized"
        )

        with pytest.raises(ProviderAuthError, match="Authentication failed"):
            await self.provider.produce(request(), client=None)

    @pytest.mark.asyncio
    async def test_rate_limit_error_carries_status(self) -> None:
        self.mock_elevenlabs_client.text_to_speech.convert.side_effect = Exception(
            "429 rate limit"
        )

        with pytest.raises(ProviderError, match="Rate limit exceeded") as exc_info:
            await self.provider.produce(request(), client=None)

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_status_code_attribute_is_used(self) -> None:
        error = Exception("server exploded")
        error.status_code = 503  # type: ignore[attr-defined]
        self.mock_elevenlabs_client.text_to_speech.convert.side_effect = error

        with pytest.raises(ProviderError, match="ElevenLabs call failed") as exc_info:
            await self.provider.produce(request(), client=None)

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_no_audio_data_raises_provider_error(self) -> None:
        self.mock_elevenlabs_client.text_to_speech.convert.return_value = iter([])

        with pytest.raises(ProviderError, match="No audio data received"):
            await self.provider.produce(request(), client=None)


class TestElevenLabsProviderListVoices:
    """Test ElevenLabsProvider.list_voices caching and errors."""

    def setup_method(self) -> None:
        with patch("tsumu.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            self.mock_elevenlabs_client = MagicMock()
            mock_elevenlabs.return_value = self.mock_elevenlabs_client
            self.provider = ElevenLabsProvider(api_key="test_key")

    @pytest.mark.asyncio
    async def test_list_voices_is_cached(self) -> None:
        voice = MagicMock(voice_id="v1")
        voice.name = "Hana"
        self.mock_elevenlabs_client.voices.get_all.return_value = MagicMock(voices=[voice])

        first = await self.provider.list_voices()
        second = await self.provider.list_voices()

        assert first == [{"id": "v1", "name": "Hana", "provider": "elevenlabs"}]
        assert second is first
        self.mock_elevenlabs_client.voices.get_all.assert_called_once()

    @pytest.mark.asyncio
    async def test_list_voices_unauthorized_raises_auth_error(self) -> None:
        self.mock_elevenlabs_client.voices.get_all.side_effect = Exception(
            "401 unauthorized"
        )

        with pytest.raises(ProviderAuthError, match="Authentication failed"):
            await self.provider.list_voices()
