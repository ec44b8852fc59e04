"""Playback session data."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from ..surfaces import Control
from .fader import VolumeFader
from .transport import Transport


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PlaybackState.ENDED, PlaybackState.FAILED})


class PlaybackAction(str, Enum):
    """What a play request turned into."""

    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"


@dataclass(eq=False)
class PlaybackSession:
    """One play of one key, optionally bound to a control.

    Attributes:
        key: Content key being played
        control: Owning control, or None for one-shot playback
        generation: Engine generation captured when the session was created
        state: Current lifecycle state
        transport: Loaded source; kept while paused, released when terminal
        fader: Volume ramps for the transport
        error: The failure that ended the session, if it FAILED
    """

    key: str
    control: Control | None
    generation: int
    state: PlaybackState = PlaybackState.IDLE
    transport: Transport | None = None
    fader: VolumeFader | None = None
    watcher: asyncio.Task[None] | None = None
    error: Exception | None = None
    finished: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    async def wait(self) -> PlaybackState:
        """Wait until the session ends or fails."""
        await self.finished.wait()
        return self.state
