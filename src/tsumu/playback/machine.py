"""Play / pause / resume / end lifecycle with a single audible session."""

import asyncio
import logging
from collections.abc import Callable

from ..config import PlaybackConfig
from ..errors import AssetError, PlaybackError
from ..payload import decode_payload
from ..state import EngineState
from ..surfaces import AUDIO_FAILED_MESSAGE, Alert, Control, Icon
from .fader import VolumeFader
from .session import PlaybackAction, PlaybackSession, PlaybackState
from .transport import Transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[], Transport]


class PlaybackStateMachine:
    """Owns the one non-terminal playback session.

    ``request`` decides synchronously what a click means, so a new session
    can never overlap with an old one:

        same control + key, PLAYING  -> PAUSE
        same control + key, PAUSED   -> RESUME
        same control + key, LOADING  -> CANCEL (ends the session)
        anything else                -> end current session, START new one

    Sessions without a control are one-shot: they never pause, a repeat
    request just replaces them.

    Example:
        action, session = machine.request(key, card_button)
        if action is PlaybackAction.START:
            payload = await fetch_somehow(key)
            await machine.start(session, payload)
    """

    def __init__(
        self,
        state: EngineState,
        transport_factory: TransportFactory,
        alert: Alert | None = None,
        config: PlaybackConfig | None = None,
    ) -> None:
        self.state = state
        self.transport_factory = transport_factory
        self.alert = alert
        self.config = config or PlaybackConfig()

    @property
    def current(self) -> PlaybackSession | None:
        session = self.state.session
        if session is None or session.is_terminal:
            return None
        return session

    def request(
        self, key: str, control: Control | None = None
    ) -> tuple[PlaybackAction, PlaybackSession]:
        """Handle a play click for ``key`` on ``control``.

        Returns:
            The action taken and the session it applies to
        """
        current = self.current
        if (
            current is not None
            and control is not None
            and current.control is control
            and current.key == key
        ):
            if current.state is PlaybackState.PLAYING:
                self.pause(current)
                return PlaybackAction.PAUSE, current
            if current.state is PlaybackState.PAUSED:
                self.resume(current)
                return PlaybackAction.RESUME, current
            # Still loading: a second click means "never mind"
            self.state.next_generation()
            self.end(current)
            return PlaybackAction.CANCEL, current

        if current is not None:
            self.end(current)

        session = PlaybackSession(
            key=key,
            control=control,
            generation=self.state.next_generation(),
            state=PlaybackState.LOADING,
        )
        self.state.session = session
        if control is not None:
            control.set_icon(Icon.PAUSE)
        logger.debug(f"Loading '{key[:50]}' (generation {session.generation})")
        return PlaybackAction.START, session

    async def start(self, session: PlaybackSession, payload: str) -> bool:
        """Decode and start playing a LOADING session.

        Does nothing if the session was superseded while its payload was
        being fetched.

        Returns:
            True if the session reached PLAYING
        """
        if not self._is_live(session):
            logger.debug(f"Dropping stale playback of '{session.key[:50]}'")
            return False

        try:
            data = decode_payload(payload)
            transport = self.transport_factory()
            transport.load(data)
        except AssetError as e:
            self.fail(session, e)
            return False

        session.transport = transport
        session.fader = VolumeFader(transport, self.config.fade_ms / 1000)

        # Give the decoder a moment to buffer before the first sample
        if self.config.start_delay_ms > 0:
            await asyncio.sleep(self.config.start_delay_ms / 1000)
        if not self._is_live(session):
            logger.debug(f"Playback of '{session.key[:50]}' superseded while buffering")
            self._release(session)
            return False

        try:
            transport.set_volume(0.0)
            transport.play()
        except PlaybackError as e:
            self.fail(session, e)
            return False

        session.state = PlaybackState.PLAYING
        session.fader.fade_in()
        session.watcher = asyncio.create_task(self._watch(session))
        logger.debug(f"Playing '{session.key[:50]}'")
        return True

    def pause(self, session: PlaybackSession) -> None:
        """PLAYING -> PAUSED, keeping the transport for resume."""
        if session.state is not PlaybackState.PLAYING:
            return
        session.state = PlaybackState.PAUSED
        if session.control is not None:
            session.control.set_icon(Icon.PLAY)
        session.fader.fade_out(then=lambda: self._pause_transport(session))
        logger.debug(f"Paused '{session.key[:50]}'")

    def resume(self, session: PlaybackSession) -> None:
        """PAUSED -> PLAYING on the retained transport."""
        if session.state is not PlaybackState.PAUSED:
            return
        try:
            if session.transport is None:
                raise PlaybackError("Paused session lost its transport")
            session.fader.cancel()
            session.transport.set_volume(0.0)
            session.transport.resume()
        except PlaybackError as e:
            self.fail(session, e)
            return

        session.state = PlaybackState.PLAYING
        if session.control is not None:
            session.control.set_icon(Icon.PAUSE)
        session.fader.fade_in()
        logger.debug(f"Resumed '{session.key[:50]}'")

    def stop(self) -> None:
        """Hard stop, e.g. on page navigation."""
        self.state.next_generation()
        current = self.current
        if current is not None:
            self.end(current)

    def end(self, session: PlaybackSession, state: PlaybackState = PlaybackState.ENDED) -> None:
        """Move a session to a terminal state and release its handles."""
        if session.is_terminal:
            return
        session.state = state
        self._release(session)
        if session.control is not None:
            session.control.set_icon(Icon.PLAY)
        if self.state.session is session:
            self.state.session = None
        session.finished.set()
        logger.debug(f"Session for '{session.key[:50]}' {state.value}")

    def fail(self, session: PlaybackSession, error: Exception) -> None:
        """Mark a session FAILED; alert only for the primary control."""
        if session.is_terminal:
            return
        session.error = error
        self.end(session, PlaybackState.FAILED)
        logger.error(f"Playback of '{session.key[:50]}' failed: {error}")
        if (
            self.alert is not None
            and session.control is not None
            and session.control.is_primary
        ):
            self.alert(AUDIO_FAILED_MESSAGE)

    def _is_live(self, session: PlaybackSession) -> bool:
        return (
            self.state.session is session
            and self.state.is_current(session.generation)
            and session.state is PlaybackState.LOADING
        )

    def _pause_transport(self, session: PlaybackSession) -> None:
        if session.state is not PlaybackState.PAUSED or session.transport is None:
            return
        try:
            session.transport.pause()
        except PlaybackError as e:
            self.fail(session, e)

    def _release(self, session: PlaybackSession) -> None:
        if session.fader is not None:
            session.fader.cancel()
        if session.watcher is not None and session.watcher is not asyncio.current_task():
            session.watcher.cancel()
        if session.transport is not None:
            try:
                session.transport.stop()
            except PlaybackError as e:
                logger.warning(f"Failed to release transport for '{session.key[:50]}': {e}")
        session.transport = None
        session.fader = None
        session.watcher = None

    async def _watch(self, session: PlaybackSession) -> None:
        """End the session when the transport runs out on its own."""
        interval = max(self.config.poll_interval_ms, 1) / 1000
        while not session.is_terminal:
            await asyncio.sleep(interval)
            if (
                session.state is PlaybackState.PLAYING
                and session.transport is not None
                and not session.transport.is_busy()
            ):
                logger.debug(f"Finished '{session.key[:50]}'")
                self.end(session)
                return
