"""Asset facade: "play/show this, from cache if possible".

Coordinates the tiered stores, the fetch pipelines, the request
coordinators and the playback state machine behind the few entry points
rendering code needs.
"""

import asyncio
import logging
import sqlite3
from collections.abc import Iterable
from typing import Any

import httpx

from .config import TsumuConfig
from .errors import AssetError, Cancelled, DecodeError, UnknownProviderError
from .fetch import (
    FetchPipeline,
    RequestCoordinator,
    build_audio_pipeline,
    build_image_pipeline,
)
from .fetch.pipeline import Sleep
from .models import (
    AssetKind,
    AudioRequest,
    ImageRequest,
    Sentence,
    audio_key,
    story_page_key,
)
from .payload import decode_payload
from .playback import (
    PlaybackAction,
    PlaybackSession,
    PlaybackStateMachine,
    PygameTransport,
)
from .playback.machine import TransportFactory
from .providers import AssetProvider, ProviderRegistry
from .state import EngineState
from .store import AssetStores, TieredStore, open_stores
from .surfaces import Alert, Control, ImageSurface

logger = logging.getLogger(__name__)


class AssetEngine:
    """Delivers generated speech and pictures for study sentences.

    Every request follows the same path: tiered store, then (on a miss)
    the request coordinator running the fetch pipeline, whose result is
    cached before it is played or shown. Results that arrive after the UI
    moved on are cached but not rendered.

    Example:
        async with AssetEngine(load_config(), alert=print) as engine:
            await engine.play_text("こんにちは", card_button)
            await engine.show_image(sentence.image_request(), card_image)
            await engine.prefetch(next_sentence.image_request())
    """

    def __init__(
        self,
        config: TsumuConfig | None = None,
        *,
        audio_provider: AssetProvider | None = None,
        client: httpx.AsyncClient | None = None,
        stores: AssetStores | None = None,
        transport_factory: TransportFactory | None = None,
        alert: Alert | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration (defaults when omitted)
            audio_provider: Pre-built speech provider; otherwise the selected
                provider is created from the registry on first cache miss
            client: Shared HTTP client; one is created (and closed) if omitted
            stores: Pre-opened stores; otherwise opened at config.store.path
            transport_factory: Builds audio transports (pygame by default)
            alert: Called with a message when the primary audio control fails
            sleep: Backoff sleep used by the pipelines
        """
        self.config = config or TsumuConfig.defaults()
        self.state = EngineState(
            provider=audio_provider.name if audio_provider else self.config.audio.provider,
            voice=self.config.audio.voice,
        )

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(30.0), follow_redirects=True
        )
        self.stores = stores or open_stores(self.config)
        self._sleep = sleep

        self._audio_providers: dict[str, AssetProvider] = {}
        self._audio_pipelines: dict[str, FetchPipeline] = {}
        if audio_provider is not None:
            self._audio_providers[audio_provider.name] = audio_provider
        self._restore_selection(pinned=audio_provider is not None)
        self.image_pipeline = build_image_pipeline(self.client, self.config, sleep)

        self.coordinators = {
            AssetKind.AUDIO: RequestCoordinator(self.stores.audio),
            AssetKind.IMAGE: RequestCoordinator(self.stores.images),
        }
        self.playback = PlaybackStateMachine(
            self.state,
            transport_factory or PygameTransport,
            alert,
            self.config.playback,
        )

    async def __aenter__(self) -> "AssetEngine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop playback, abort in-flight fetches and close the HTTP client."""
        self.playback.stop()
        for coordinator in self.coordinators.values():
            coordinator.cancel_all()
        if self._owns_client:
            await self.client.aclose()

    # === SELECTION ===

    def select_voice(self, voice: str, *, remember: bool = True) -> None:
        """Select the voice used by ``play_text``.

        Args:
            voice: Voice selector for the current provider
            remember: Save it as this provider's voice for later sessions
        """
        self.state.voice = voice
        if remember:
            self._save_preference(f"voice:{self.state.provider}", voice)
        logger.debug(f"Selected voice {voice}")

    def select_provider(self, name: str, *, remember: bool = True) -> None:
        """Select the speech provider used by ``play_text``.

        Switches to the voice last remembered for that provider, or the
        configured voice if none was remembered.

        Raises:
            KeyError: If no provider is registered under ``name``
        """
        if name not in self._audio_providers:
            ProviderRegistry.get(name)
        self.state.provider = name
        self.state.voice = self._load_preference(f"voice:{name}") or self.config.audio.voice
        if remember:
            self._save_preference("provider", name)
        logger.debug(f"Selected speech provider {name}")

    def audio_request(self, text: str) -> AudioRequest:
        return AudioRequest(text=text, voice=self.state.voice, provider=self.state.provider)

    # === ENTRY POINTS ===

    async def ensure(
        self,
        request: AudioRequest | ImageRequest,
        *,
        control: Control | None = None,
        surface: ImageSurface | None = None,
    ) -> Any:
        """Play or show an asset, fetching and caching it if needed.

        Images without a surface are only warmed in the cache.
        """
        if request.kind is AssetKind.AUDIO:
            return await self.play(request, control)
        if surface is None:
            return await self.prefetch(request)
        return await self.show_image(request, surface)

    async def play(
        self, request: AudioRequest, control: Control | None = None
    ) -> PlaybackSession:
        """Handle a play click.

        Clicking the control that is playing pauses it, clicking again
        resumes; anything else stops the current audio and starts this key.

        Returns:
            The session the click applied to
        """
        action, session = self.playback.request(request.key, control)
        if action is not PlaybackAction.START:
            logger.debug(f"{action.value} '{request.key[:50]}'")
            return session

        try:
            payload = await self._obtain(request)
        except Cancelled:
            logger.debug(f"Fetch for '{request.key[:50]}' cancelled, ending session")
            self.playback.end(session)
            return session
        except AssetError as e:
            self.playback.fail(session, e)
            return session

        await self.playback.start(session, payload)
        return session

    async def play_text(
        self, text: str, control: Control | None = None
    ) -> PlaybackSession:
        """Play text with the selected provider and voice."""
        return await self.play(self.audio_request(text), control)

    async def show_image(self, request: ImageRequest, surface: ImageSurface) -> bool:
        """Show the picture for ``request`` on ``surface``.

        If the surface is asked to show something else before the picture
        arrives, the picture is still cached but not shown.

        Returns:
            True if the picture was displayed
        """
        ticket = self.state.claim(surface)
        store = self.stores.images

        payload = await store.get(request.key)
        if payload is None:
            if ticket.is_fresh():
                surface.show_loading()
            try:
                payload = await self._fetch(request)
            except Cancelled:
                return False
            except (AssetError, ValueError) as e:
                logger.warning(f"Image '{request.key}' unavailable: {e}")
                if ticket.is_fresh():
                    surface.show_failed()
                return False

        if not ticket.is_fresh():
            logger.debug(f"Image '{request.key}' arrived for a stale surface, cached only")
            return False

        try:
            data = decode_payload(payload)
        except DecodeError as e:
            logger.warning(f"Cached image '{request.key}' is unreadable: {e}")
            surface.show_failed()
            return False

        surface.show_image(data)
        return True

    async def prefetch(self, request: AudioRequest | ImageRequest) -> bool:
        """Warm the cache without rendering anything. Never raises.

        Returns:
            True if the asset is cached afterwards
        """
        try:
            await self._obtain(request)
        except (AssetError, ValueError) as e:
            logger.debug(f"Prefetch of '{request.key[:50]}' failed: {e}")
            return False
        return True

    async def prefetch_many(
        self, requests: Iterable[AudioRequest | ImageRequest]
    ) -> int:
        """Warm several assets concurrently.

        Returns:
            Number of assets now cached
        """
        results = await asyncio.gather(*(self.prefetch(r) for r in requests))
        return sum(results)

    def stop(self) -> None:
        """Stop any audio, e.g. when the user navigates to another page."""
        self.playback.stop()

    def release_surface(self, surface: ImageSurface) -> None:
        """Mark a surface as gone so late pictures are not shown on it."""
        self.state.release(surface)

    # === INVALIDATION ===

    async def forget(self, key: str, kind: AssetKind) -> None:
        """Drop an asset from both tiers and abort its in-flight fetch."""
        self.coordinators[kind].cancel(key)
        await self._store(kind).delete(key)
        logger.info(f"Forgot {kind.value} '{key[:50]}'")

    async def forget_sentence(
        self,
        sentence: Sentence,
        voices: Iterable[tuple[str, str]] | None = None,
    ) -> None:
        """Drop the picture and spoken audio of a deleted sentence.

        Args:
            sentence: The deleted sentence
            voices: (provider, voice) pairs whose audio should go; defaults
                to the current selection
        """
        await self.forget(sentence.id, AssetKind.IMAGE)
        for provider, voice in voices or [(self.state.provider, self.state.voice)]:
            await self.forget(
                audio_key(provider, voice, sentence.text.strip()), AssetKind.AUDIO
            )

    async def forget_story(self, story_id: str, page_count: int) -> None:
        """Drop the page backgrounds of a deleted story."""
        for page_index in range(page_count):
            await self.forget(story_page_key(story_id, page_index), AssetKind.IMAGE)

    @staticmethod
    def story_page_request(
        story_id: str, page_index: int, description: str
    ) -> ImageRequest:
        """Image request for a story reader page background."""
        return ImageRequest(
            subject_id=story_page_key(story_id, page_index),
            prompt_text=description,
        )

    # === INTERNALS ===

    def _store(self, kind: AssetKind) -> TieredStore:
        return self.stores.for_kind(kind)

    async def _obtain(self, request: AudioRequest | ImageRequest) -> str:
        payload = await self._store(request.kind).get(request.key)
        if payload is not None:
            return payload
        return await self._fetch(request)

    async def _fetch(self, request: AudioRequest | ImageRequest) -> str:
        pipeline = (
            self._audio_pipeline(request.provider)
            if request.kind is AssetKind.AUDIO
            else self.image_pipeline
        )
        return await self.coordinators[request.kind].request(
            request.key, lambda: pipeline.fetch(request)
        )

    def _audio_pipeline(self, name: str) -> FetchPipeline:
        """Pipeline for a speech provider, created on first use.

        Raises:
            ProviderAuthError: If the provider's API key is missing
            UnknownProviderError: If the provider is unknown
        """
        pipeline = self._audio_pipelines.get(name)
        if pipeline is None:
            provider = self._audio_providers.get(name)
            if provider is None:
                try:
                    provider = ProviderRegistry.create(name)
                except KeyError as e:
                    raise UnknownProviderError(f"Unknown speech provider '{name}'", e) from e
                self._audio_providers[name] = provider
            pipeline = build_audio_pipeline(provider, self.client, self.config, self._sleep)
            self._audio_pipelines[name] = pipeline
        return pipeline

    def _restore_selection(self, pinned: bool) -> None:
        """Apply the provider and voice saved by earlier sessions.

        Args:
            pinned: The provider was injected and must not be replaced
        """
        saved_provider = None if pinned else self._load_preference("provider")
        if saved_provider and saved_provider in ProviderRegistry.available():
            self.state.provider = saved_provider
        saved_voice = self._load_preference(f"voice:{self.state.provider}")
        if saved_voice:
            self.state.voice = saved_voice

    def _load_preference(self, name: str) -> str | None:
        try:
            return self.stores.database.get_preference(name)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not read saved {name}: {e}")
            return None

    def _save_preference(self, name: str, value: str) -> None:
        try:
            self.stores.database.set_preference(name, value)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not save {name} selection: {e}")
