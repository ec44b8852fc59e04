"""Unit tests for content keys, request descriptors and payload encoding."""

import sys
from pathlib import Path

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from tsumu.errors import AllProvidersExhausted, DecodeError
from tsumu.models import (
    AssetKind,
    AudioRequest,
    FetchAttempt,
    ImageRequest,
    Sentence,
    audio_key,
    seed_for,
    story_page_key,
)
from tsumu.payload import decode_payload, encode_payload


class TestContentKeys:
    """Test key construction."""

    def test_audio_key_format(self) -> None:
        assert audio_key("google", "Aoede", "こんにちは") == "google:Aoede|こんにちは"

    def test_story_page_key_format(self) -> None:
        assert story_page_key("story42", 3) == "story42_p3"

    def test_seed_is_deterministic_and_non_negative(self) -> None:
        assert seed_for("s1") == seed_for("s1")
        assert seed_for("s1") != seed_for("s2")
        assert seed_for("a") == 97
        assert seed_for("ab") == 31 * 97 + 98
        # Long ids overflow 32 bits and must still fold to a non-negative seed
        assert 0 <= seed_for("x" * 100) <= 2**31


class TestAudioRequest:
    """Test AudioRequest validation."""

    def test_text_is_stripped_and_keyed(self) -> None:
        request = AudioRequest(text="  猫がいます。 ", voice="Kore", provider="google")

        assert request.text == "猫がいます。"
        assert request.key == "google:Kore|猫がいます。"
        assert request.kind is AssetKind.AUDIO

    def test_empty_text_raises(self) -> None:
        with pytest.raises(ValueError, match="Text cannot be empty"):
            AudioRequest(text="   ", voice="Aoede", provider="google")

    def test_different_voices_are_different_keys(self) -> None:
        a = AudioRequest(text="猫", voice="Aoede", provider="google")
        b = AudioRequest(text="猫", voice="Kore", provider="google")
        assert a.key != b.key


class TestImageRequest:
    """Test ImageRequest keys and prompt selection."""

    def test_subject_id_is_the_key(self) -> None:
        request = ImageRequest(subject_id="s1", prompt_text="A cat")

        assert request.key == "s1"
        assert request.kind is AssetKind.IMAGE
        assert request.seed == seed_for("s1")

    def test_scene_falls_back_to_fallback_text(self) -> None:
        assert ImageRequest("s1", "", " 猫がいます。").scene == "猫がいます。"
        assert ImageRequest("s1", "A cat", "猫").scene == "A cat"

    def test_empty_subject_id_raises(self) -> None:
        with pytest.raises(ValueError, match="subject_id cannot be empty"):
            ImageRequest(subject_id="")

    def test_sentence_builds_requests(self) -> None:
        sentence = Sentence(id="s1", text="猫がいます。", translation="There is a cat.")

        assert sentence.audio_request("google", "Aoede").key == "google:Aoede|猫がいます。"
        image = sentence.image_request()
        assert image.key == "s1"
        assert image.scene == "There is a cat."


class TestPayload:
    """Test payload text encoding."""

    def test_encode_decode(self) -> None:
        payload = encode_payload(b"\xff\xd8\xff jpeg")
        assert isinstance(payload, str)
        assert decode_payload(payload) == b"\xff\xd8\xff jpeg"

    def test_encode_empty_raises(self) -> None:
        with pytest.raises(DecodeError, match="empty payload"):
            encode_payload(b"")

    def test_decode_invalid_raises(self) -> None:
        with pytest.raises(DecodeError, match="not valid base64"):
            decode_payload("not base64!!")

    def test_decode_empty_raises(self) -> None:
        with pytest.raises(DecodeError, match="Payload is empty"):
            decode_payload("")


class TestAllProvidersExhausted:
    """Test the terminal fetch error."""

    def test_message_includes_last_attempt_error(self) -> None:
        attempts = [
            FetchAttempt("s1", 0, "pollinations/flux", 0, 45.0, "HTTP 500"),
            FetchAttempt("s1", 1, "pollinations/turbo", 0, 45.0, "timed out"),
        ]
        error = AllProvidersExhausted("s1", attempts)

        assert error.key == "s1"
        assert error.attempts == attempts
        assert "2 attempts" in str(error)
        assert "timed out" in str(error)
