"""Request deduplication and cancellation for in-flight fetches."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..errors import Cancelled
from ..store import TieredStore

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[str]]


class RequestCoordinator:
    """Runs at most one fetch per key and writes its result to the store.

    The fetch and the cache write run in one task that callers join through
    ``asyncio.shield``. A caller that stops waiting (the user navigated away)
    therefore never aborts the fetch or its cache write; only ``cancel`` does.

    Example:
        coordinator = RequestCoordinator(stores.images)
        payload = await coordinator.request(
            request.key, lambda: pipeline.fetch(request)
        )
    """

    def __init__(self, store: TieredStore) -> None:
        self.store = store
        self._in_flight: dict[str, asyncio.Task[str]] = {}
        self.fetch_count = 0

    @property
    def pending(self) -> int:
        return len(self._in_flight)

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def request(self, key: str, producer: Producer) -> str:
        """Get the payload for ``key``, joining an in-flight fetch if any.

        Args:
            key: Content key
            producer: Starts the fetch; only called when nothing is in flight

        Returns:
            Payload text, already written to the store

        Raises:
            AllProvidersExhausted: If the fetch failed
            Cancelled: If the fetch was cancelled through ``cancel``
        """
        task = self._in_flight.get(key)
        if task is None:
            self.fetch_count += 1
            task = asyncio.create_task(self._run(key, producer), name=f"fetch:{key[:40]}")
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            logger.debug(f"Joining in-flight fetch for '{key[:50]}'")

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise Cancelled(f"Fetch for '{key[:50]}' was cancelled") from None
            # Only this caller was cancelled; the shared fetch keeps going
            raise

    def cancel(self, key: str) -> bool:
        """Abort the in-flight fetch for ``key``.

        The in-flight entry is cleared immediately so the next request for
        the key starts fresh instead of joining the aborted one.

        Returns:
            True if a fetch was in flight
        """
        task = self._in_flight.pop(key, None)
        if task is None:
            return False
        task.cancel()
        logger.debug(f"Cancelled in-flight fetch for '{key[:50]}'")
        return True

    def cancel_all(self) -> int:
        keys = list(self._in_flight)
        for key in keys:
            self.cancel(key)
        return len(keys)

    async def _run(self, key: str, producer: Producer) -> str:
        payload = await producer()
        await self.store.set(key, payload)
        return payload

    def _forget(self, key: str, task: asyncio.Task[str]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Fetch for '{key[:50]}' failed: {task.exception()}")
