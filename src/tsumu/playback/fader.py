"""Short linear volume ramps that keep playback from clicking."""

import asyncio
import logging
from collections.abc import Callable

from .transport import Transport

logger = logging.getLogger(__name__)


class VolumeFader:
    """Ramps a transport's volume linearly over ``duration`` seconds.

    Only one ramp runs at a time; starting a new one cancels the old.
    """

    def __init__(self, transport: Transport, duration: float = 0.08, steps: int = 8) -> None:
        self.transport = transport
        self.duration = duration
        self.steps = max(1, steps)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def fade_in(self) -> asyncio.Task[None] | None:
        return self._start(0.0, 1.0)

    def fade_out(self, then: Callable[[], None] | None = None) -> asyncio.Task[None] | None:
        """Ramp down to silence, then call ``then`` (e.g. pause the transport)."""
        return self._start(1.0, 0.0, then)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _start(
        self, start: float, end: float, then: Callable[[], None] | None = None
    ) -> asyncio.Task[None] | None:
        self.cancel()
        if self.duration <= 0:
            self.transport.set_volume(end)
            if then is not None:
                then()
            return None
        self.transport.set_volume(start)
        self._task = asyncio.create_task(self._ramp(start, end, then))
        return self._task

    async def _ramp(
        self, start: float, end: float, then: Callable[[], None] | None
    ) -> None:
        interval = self.duration / self.steps
        for step in range(1, self.steps + 1):
            await asyncio.sleep(interval)
            self.transport.set_volume(start + (end - start) * step / self.steps)
        if then is not None:
            then()
