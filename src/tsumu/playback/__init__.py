"""Audio playback package for tsumu.

This package provides the playback state machine and the pygame-backed
transport it drives.
"""

from .fader import VolumeFader
from .machine import PlaybackStateMachine
from .session import PlaybackAction, PlaybackSession, PlaybackState
from .transport import PygameTransport, Transport

__all__ = [
    "PlaybackAction",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStateMachine",
    "PygameTransport",
    "Transport",
    "VolumeFader",
]
