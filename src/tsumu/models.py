"""Content keys and request descriptors."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AssetKind(str, Enum):
    """The two kinds of generated asset the engine delivers."""

    AUDIO = "audio"
    IMAGE = "images"


def audio_key(provider: str, voice: str, text: str) -> str:
    """Build the content key for a spoken sentence.

    Args:
        provider: Speech provider name (e.g. "google")
        voice: Voice selector (e.g. "Aoede")
        text: Sentence text

    Returns:
        Key of the form ``provider:voice|text``
    """
    return f"{provider}:{voice}|{text}"


def story_page_key(story_id: str, page_index: int) -> str:
    """Build the content key for a story page background picture."""
    return f"{story_id}_p{page_index}"


def seed_for(subject_id: str) -> int:
    """Deterministic image seed for a subject id.

    Uses the classic 31-multiplier string hash folded to a signed 32-bit
    integer, so the same sentence always asks for the same picture.
    """
    h = 0
    for ch in subject_id:
        h = (31 * h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


@dataclass(frozen=True)
class AudioRequest:
    """Descriptor for one piece of synthesized speech.

    Args:
        text: Japanese text to speak
        voice: Voice selector understood by the provider
        provider: Name of the speech provider
    """

    text: str
    voice: str
    provider: str

    def __post_init__(self) -> None:
        """Validate and normalize the request."""
        if not self.text or not self.text.strip():
            raise ValueError("Text cannot be empty")
        object.__setattr__(self, "text", self.text.strip())

    @property
    def key(self) -> str:
        return audio_key(self.provider, self.voice, self.text)

    @property
    def kind(self) -> AssetKind:
        return AssetKind.AUDIO


@dataclass(frozen=True)
class ImageRequest:
    """Descriptor for one generated illustration.

    Args:
        subject_id: Sentence id or story page id; doubles as the content key
        prompt_text: Scene description, usually the English translation
        fallback_text: Used when prompt_text is empty (e.g. the Japanese text)
    """

    subject_id: str
    prompt_text: str = ""
    fallback_text: str = ""

    def __post_init__(self) -> None:
        if not self.subject_id:
            raise ValueError("subject_id cannot be empty")

    @property
    def key(self) -> str:
        return self.subject_id

    @property
    def kind(self) -> AssetKind:
        return AssetKind.IMAGE

    @property
    def seed(self) -> int:
        return seed_for(self.subject_id)

    @property
    def scene(self) -> str:
        return (self.prompt_text or self.fallback_text).strip()


@dataclass(frozen=True)
class Sentence:
    """A study sentence as supplied by the deck.

    Attributes:
        id: Stable sentence identifier
        text: Japanese text
        translation: Optional English translation
    """

    id: str
    text: str
    translation: str | None = None

    def audio_request(self, provider: str, voice: str) -> AudioRequest:
        return AudioRequest(text=self.text, voice=voice, provider=provider)

    def image_request(self) -> ImageRequest:
        return ImageRequest(
            subject_id=self.id,
            prompt_text=self.translation or "",
            fallback_text=self.text,
        )


@dataclass(frozen=True)
class CacheEntry:
    """A cached asset.

    Attributes:
        key: Content key
        payload: Base64 text of the asset bytes
        last_used_at: When the entry was last read or written
    """

    key: str
    payload: str
    last_used_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class FetchAttempt:
    """One provider attempt made while fetching a key.

    Attributes:
        key: Content key being fetched
        provider_index: Position of the provider stage in the pipeline
        provider_name: Name of the provider
        retry_count: 0 for the first attempt on a stage, 1 for its retry, ...
        deadline: Deadline in seconds, or None for the client default
        error: Failure description, None when the attempt succeeded
    """

    key: str
    provider_index: int
    provider_name: str
    retry_count: int
    deadline: float | None
    error: str | None = None
