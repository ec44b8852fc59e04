"""Audio transports: the handle that actually makes sound."""

# ruff: noqa: E402
import os

# Suppress pygame's welcome message BEFORE any pygame import
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

# Suppress pygame's pkg_resources deprecation warning spam
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import io
from abc import ABC, abstractmethod

import pygame

from ..errors import DecodeError, PlaybackError


class Transport(ABC):
    """A loaded, controllable audio source.

    A transport is created per playback session and kept while the
    session is paused, so resuming never re-fetches or re-decodes.
    """

    @abstractmethod
    def load(self, data: bytes) -> None:
        """Decode audio bytes into a playable source.

        Raises:
            DecodeError: If the bytes are not playable audio
        """
        pass

    @abstractmethod
    def play(self) -> None:
        """Start playback from the beginning.

        Raises:
            PlaybackError: If the output refuses to play
        """
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def resume(self) -> None:
        """Continue from the paused position.

        Raises:
            PlaybackError: If the source is no longer valid
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop and release the source."""
        pass

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        pass

    @abstractmethod
    def is_busy(self) -> bool:
        """True while audio is being produced (False when paused or done)."""
        pass


class PygameTransport(Transport):
    """Transport backed by ``pygame.mixer.music``.

    pygame has a single music stream, which matches the engine's rule
    that only one session is ever audible.
    """

    def __init__(self, namehint: str = "mp3") -> None:
        """Initialize the pygame mixer.

        Raises:
            PlaybackError: If pygame mixer fails to initialize.
        """
        try:
            pygame.mixer.init()
        except pygame.error as e:
            raise PlaybackError(
                f"Failed to initialize pygame audio mixer: {e}", e
            ) from e
        self.namehint = namehint
        self._buffer: io.BytesIO | None = None

    def load(self, data: bytes) -> None:
        if not data:
            raise DecodeError("No audio data provided")
        # pygame streams from the file object, so it must outlive load()
        self._buffer = io.BytesIO(data)
        try:
            pygame.mixer.music.load(self._buffer, self.namehint)
        except pygame.error as e:
            self._buffer = None
            raise DecodeError(f"Failed to decode audio: {e}", e) from e

    def play(self) -> None:
        try:
            pygame.mixer.music.play()
        except pygame.error as e:
            raise PlaybackError(f"Failed to play audio: {e}", e) from e

    def pause(self) -> None:
        pygame.mixer.music.pause()

    def resume(self) -> None:
        if self._buffer is None:
            raise PlaybackError("Nothing loaded to resume")
        try:
            pygame.mixer.music.unpause()
        except pygame.error as e:
            raise PlaybackError(f"Failed to resume audio: {e}", e) from e

    def stop(self) -> None:
        if self._buffer is None:
            return
        try:
            pygame.mixer.music.stop()
            pygame.mixer.music.unload()
        except pygame.error as e:
            raise PlaybackError(f"Failed to stop audio: {e}", e) from e
        finally:
            self._buffer = None

    def set_volume(self, volume: float) -> None:
        pygame.mixer.music.set_volume(max(0.0, min(1.0, volume)))

    def is_busy(self) -> bool:
        return self._buffer is not None and pygame.mixer.music.get_busy()
