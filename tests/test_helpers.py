"""Fakes shared by the tsumu unit and integration tests."""

import asyncio
from typing import Any

import httpx

from tsumu.config import PlaybackConfig
from tsumu.errors import DecodeError, PlaybackError, ProviderError
from tsumu.models import AssetKind
from tsumu.playback import Transport
from tsumu.providers import AssetProvider
from tsumu.surfaces import Control, Icon, ImageSurface


FAST_PLAYBACK = PlaybackConfig(fade_ms=0, start_delay_ms=0, poll_interval_ms=1)


class FakeTransport(Transport):
    """Records every call; plays until ``finish`` is called."""

    instances: list["FakeTransport"] = []

    def __init__(self, fail_load: bool = False, fail_resume: bool = False) -> None:
        self.calls: list[str] = []
        self.loaded: bytes | None = None
        self.volume = 1.0
        self.playing = False
        self.fail_load = fail_load
        self.fail_resume = fail_resume
        FakeTransport.instances.append(self)

    def load(self, data: bytes) -> None:
        self.calls.append("load")
        if self.fail_load:
            raise DecodeError("not audio")
        self.loaded = data

    def play(self) -> None:
        self.calls.append("play")
        self.playing = True

    def pause(self) -> None:
        self.calls.append("pause")
        self.playing = False

    def resume(self) -> None:
        self.calls.append("resume")
        if self.fail_resume:
            raise PlaybackError("mixer lost the stream")
        self.playing = True

    def stop(self) -> None:
        self.calls.append("stop")
        self.playing = False

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def is_busy(self) -> bool:
        return self.playing

    def finish(self) -> None:
        """Simulate the audio running out on its own."""
        self.playing = False


class FakeControl(Control):
    """Audio button that remembers its icon history."""

    def __init__(self, is_primary: bool = False) -> None:
        self.is_primary = is_primary
        self.icons: list[Icon] = []

    @property
    def icon(self) -> Icon | None:
        return self.icons[-1] if self.icons else None

    def set_icon(self, icon: Icon) -> None:
        self.icons.append(icon)


class FakeSurface(ImageSurface):
    """Image slot that records what it was asked to display."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.image: bytes | None = None

    def show_loading(self) -> None:
        self.events.append("loading")

    def show_image(self, data: bytes) -> None:
        self.events.append("image")
        self.image = data

    def show_failed(self) -> None:
        self.events.append("failed")


class ScriptedProvider(AssetProvider):
    """Provider whose outcomes are scripted per call.

    Each script item is either bytes (returned) or an exception (raised).
    The last item repeats once the script runs out. An optional gate
    holds every call until it is set.
    """

    kind = AssetKind.AUDIO

    def __init__(
        self,
        script: list[Any] | None = None,
        name: str = "google",
        gate: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.script = script or [b"ID3 fake mp3"]
        self.gate = gate
        self.calls: list[Any] = []

    async def produce(self, descriptor: Any, client: httpx.AsyncClient) -> bytes:
        self.calls.append(descriptor)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.script[min(len(self.calls), len(self.script)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def server_error() -> ProviderError:
    return ProviderError("HTTP 500", 500)
