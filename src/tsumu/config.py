"""Configuration management for tsumu.

Loads configuration from ~/.config/tsumu/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "tsumu"
CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_STORE_PATH = Path.home() / ".cache" / "tsumu" / "assets.db"

DEFAULT_CONFIG = """\
# tsumu configuration

[audio]
# Provider: "google" (Cloud Text-to-Speech, Chirp 3 HD) or "elevenlabs"
provider = "google"

# Voice selector. Google: Aoede, Kore, Leda, Zephyr, Puck, Charon, Fenrir, Orus
# ElevenLabs: use `tsumu voices --provider elevenlabs`
voice = "Aoede"

# In-memory and on-disk entry caps (least recently used entries go first)
memory_capacity = 50
persistent_capacity = 200

# Per-attempt deadline in seconds (omit to use the HTTP client default)
# timeout = 30

# Delay before the single retry of a failed synthesis
retry_backoff = 1

[images]
persistent_capacity = 300
# memory_capacity = 100
timeout = 45
primary_retry_backoff = 3
fallback_retry_backoff = 5
advance_backoff = 2
width = 800
height = 500

[playback]
fade_ms = 80
start_delay_ms = 80
poll_interval_ms = 50

[store]
# path = "~/.cache/tsumu/assets.db"

# API keys are read from environment variables, not this file:
#   GOOGLE_TTS_API_KEY  - Google Cloud Text-to-Speech
#   ELEVENLABS_API_KEY  - ElevenLabs
"""


@dataclass(frozen=True)
class AudioConfig:
    """Speech provider and audio cache configuration."""

    provider: str = "google"
    voice: str = "Aoede"
    memory_capacity: int | None = 50
    persistent_capacity: int = 200
    timeout: float | None = None
    retry_backoff: float = 1.0


@dataclass(frozen=True)
class ImageConfig:
    """Image generation and image cache configuration."""

    persistent_capacity: int = 300
    memory_capacity: int | None = None
    timeout: float | None = 45.0
    primary_retry_backoff: float = 3.0
    fallback_retry_backoff: float = 5.0
    advance_backoff: float = 2.0
    width: int = 800
    height: int = 500


@dataclass(frozen=True)
class PlaybackConfig:
    """Playback timing configuration (milliseconds)."""

    fade_ms: int = 80
    start_delay_ms: int = 80
    poll_interval_ms: int = 50


@dataclass(frozen=True)
class StoreConfig:
    """Persistent store location."""

    path: Path = DEFAULT_STORE_PATH


@dataclass(frozen=True)
class TsumuConfig:
    """Top-level tsumu configuration."""

    audio: AudioConfig
    images: ImageConfig
    playback: PlaybackConfig
    store: StoreConfig

    @classmethod
    def defaults(cls, store_path: Path | None = None) -> "TsumuConfig":
        """Build a configuration without reading any file."""
        return cls(
            audio=AudioConfig(),
            images=ImageConfig(),
            playback=PlaybackConfig(),
            store=StoreConfig(path=store_path or DEFAULT_STORE_PATH),
        )


_cached_config: TsumuConfig | None = None


def generate_config() -> Path:
    """Generate default config file at ~/.config/tsumu/config.toml."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(DEFAULT_CONFIG)
    return CONFIG_PATH


def parse_config(data: dict) -> TsumuConfig:
    """Build a TsumuConfig from parsed TOML data, applying env overrides.

    Raises:
        ValueError: If a capacity or timing value is out of range, or the
            speech provider is not registered.
    """
    audio = data.get("audio", {})
    images = data.get("images", {})
    playback = data.get("playback", {})
    store = data.get("store", {})

    store_path = os.getenv("TSUMU_STORE_PATH", store.get("path", ""))

    config = TsumuConfig(
        audio=AudioConfig(
            provider=os.getenv("TSUMU_AUDIO_PROVIDER", audio.get("provider", "google")),
            voice=os.getenv("TSUMU_VOICE", audio.get("voice", "Aoede")),
            memory_capacity=audio.get("memory_capacity", 50),
            persistent_capacity=audio.get("persistent_capacity", 200),
            timeout=audio.get("timeout"),
            retry_backoff=audio.get("retry_backoff", 1.0),
        ),
        images=ImageConfig(
            persistent_capacity=images.get("persistent_capacity", 300),
            memory_capacity=images.get("memory_capacity"),
            timeout=images.get("timeout", 45.0),
            primary_retry_backoff=images.get("primary_retry_backoff", 3.0),
            fallback_retry_backoff=images.get("fallback_retry_backoff", 5.0),
            advance_backoff=images.get("advance_backoff", 2.0),
            width=images.get("width", 800),
            height=images.get("height", 500),
        ),
        playback=PlaybackConfig(
            fade_ms=playback.get("fade_ms", 80),
            start_delay_ms=playback.get("start_delay_ms", 80),
            poll_interval_ms=playback.get("poll_interval_ms", 50),
        ),
        store=StoreConfig(
            path=Path(store_path).expanduser() if store_path else DEFAULT_STORE_PATH
        ),
    )

    for name, value in (
        ("audio.persistent_capacity", config.audio.persistent_capacity),
        ("images.persistent_capacity", config.images.persistent_capacity),
    ):
        if value < 1:
            raise ValueError(f"{name} must be at least 1, got {value}")
    for name, value in (
        ("audio.memory_capacity", config.audio.memory_capacity),
        ("images.memory_capacity", config.images.memory_capacity),
    ):
        if value is not None and value < 1:
            raise ValueError(f"{name} must be at least 1, got {value}")
    if config.playback.fade_ms < 0 or config.playback.start_delay_ms < 0:
        raise ValueError("playback timings cannot be negative")

    from .providers import ProviderRegistry

    available = ProviderRegistry.available()
    if config.audio.provider not in available:
        raise ValueError(
            f"audio.provider must be one of {', '.join(available)}, "
            f"got '{config.audio.provider}'"
        )

    return config


def load_config() -> TsumuConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding.

    Returns:
        Loaded and validated TsumuConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if not CONFIG_PATH.exists():
        path = generate_config()
        print(
            f"No config found. Generated {path}, review it and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    with open(CONFIG_PATH, "rb") as f:
        data = tomllib.load(f)

    try:
        _cached_config = parse_config(data)
    except (ValueError, TypeError) as e:
        print(f"Invalid config: {e}", file=sys.stderr)
        print(f"Edit {CONFIG_PATH} or delete it to regenerate.", file=sys.stderr)
        raise SystemExit(1) from e

    return _cached_config
