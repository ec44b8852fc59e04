"""Seams between the engine and whatever renders the study UI.

The engine knows nothing about layout. It only needs to tell a control
which icon to show, and to hand an image surface bytes or a failure.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum


class Icon(str, Enum):
    """Audio control indicator."""

    PLAY = "play"
    PAUSE = "pause"


class Control(ABC):
    """A clickable audio button that owns a playback slot.

    Attributes:
        is_primary: True for the main study-card button; only primary
            controls raise an alert when audio fails
    """

    is_primary: bool = False

    @abstractmethod
    def set_icon(self, icon: Icon) -> None:
        """Show the idle (PLAY) or active (PAUSE) indicator."""
        pass


class ImageSurface(ABC):
    """Somewhere a generated picture is displayed."""

    @abstractmethod
    def show_loading(self) -> None:
        """Show the placeholder while the picture is generated."""
        pass

    @abstractmethod
    def show_image(self, data: bytes) -> None:
        """Display the picture."""
        pass

    @abstractmethod
    def show_failed(self) -> None:
        """Show the small failure glyph; the surface stays retryable."""
        pass


Alert = Callable[[str], None]

AUDIO_FAILED_MESSAGE = "Audio failed. Check your API key or internet connection."
FAILED_GLYPH = "✕"
