"""Ordered provider fallback with per-attempt deadlines and retries."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..config import TsumuConfig
from ..errors import AllProvidersExhausted, DecodeError, NetworkError, ProviderError
from ..models import FetchAttempt
from ..payload import encode_payload
from ..providers import AssetProvider, PollinationsImageProvider

logger = logging.getLogger(__name__)

# Failures worth another attempt; anything else propagates untouched
TRANSIENT_ERRORS = (NetworkError, ProviderError, DecodeError)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class ProviderStage:
    """One provider in the fallback order.

    Attributes:
        provider: Provider that generates the asset
        timeout: Hard deadline per attempt in seconds, None for the client default
        retries: Extra attempts on this provider before moving on
        retry_backoff: Delay in seconds before each retry
    """

    provider: AssetProvider
    timeout: float | None = None
    retries: int = 1
    retry_backoff: float = 0.0


class FetchPipeline:
    """Produces a payload by walking provider stages in priority order.

    Each stage gets ``1 + retries`` attempts, each under its own deadline.
    When a stage is exhausted the pipeline waits ``advance_backoff`` and
    moves to the next one. Only when every stage is exhausted does it raise
    AllProvidersExhausted; individual failures are logged, never surfaced.

    Example:
        pipeline = FetchPipeline(
            [
                ProviderStage(PollinationsImageProvider("flux"), 45, 1, 3),
                ProviderStage(PollinationsImageProvider("turbo"), 45, 1, 5),
            ],
            client,
            advance_backoff=2,
        )
        payload = await pipeline.fetch(sentence.image_request())
    """

    def __init__(
        self,
        stages: Sequence[ProviderStage],
        client: httpx.AsyncClient,
        advance_backoff: float = 2.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not stages:
            raise ValueError("FetchPipeline needs at least one provider stage")
        self.stages = list(stages)
        self.client = client
        self.advance_backoff = advance_backoff
        self._sleep = sleep

    @property
    def provider_names(self) -> list[str]:
        return [stage.provider.label for stage in self.stages]

    async def fetch(self, descriptor: Any) -> str:
        """Fetch the asset for a descriptor.

        Args:
            descriptor: AudioRequest or ImageRequest

        Returns:
            Base64 payload ready for the store

        Raises:
            AllProvidersExhausted: If every stage and retry failed
        """
        attempts: list[FetchAttempt] = []

        for index, stage in enumerate(self.stages):
            if index > 0:
                logger.info(
                    f"Falling back to {stage.provider.label} for '{descriptor.key[:50]}' "
                    f"in {self.advance_backoff}s"
                )
                await self._sleep(self.advance_backoff)

            try:
                data = await self._run_stage(index, stage, descriptor, attempts)
            except TRANSIENT_ERRORS as e:
                logger.warning(
                    f"{stage.provider.label} exhausted for '{descriptor.key[:50]}': {e}"
                )
                continue

            logger.info(
                f"Generated '{descriptor.key[:50]}' with {stage.provider.label} "
                f"after {len(attempts)} attempt(s)"
            )
            return encode_payload(data)

        logger.error(
            f"All providers exhausted for '{descriptor.key[:50]}' "
            f"({len(attempts)} attempts: {', '.join(self.provider_names)})"
        )
        raise AllProvidersExhausted(descriptor.key, attempts)

    async def _run_stage(
        self,
        index: int,
        stage: ProviderStage,
        descriptor: Any,
        attempts: list[FetchAttempt],
    ) -> bytes:
        def _log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                f"{stage.provider.label} attempt {retry_state.attempt_number} failed "
                f"for '{descriptor.key[:50]}', retrying in {stage.retry_backoff}s: "
                f"{retry_state.outcome.exception()}"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(stage.retries + 1),
            wait=wait_fixed(stage.retry_backoff),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                retry_count = attempt.retry_state.attempt_number - 1
                return await self._attempt(index, retry_count, stage, descriptor, attempts)

        raise AssertionError("unreachable: tenacity reraises the last failure")

    async def _attempt(
        self,
        index: int,
        retry_count: int,
        stage: ProviderStage,
        descriptor: Any,
        attempts: list[FetchAttempt],
    ) -> bytes:
        logger.debug(
            f"Requesting '{descriptor.key[:50]}' from {stage.provider.label} "
            f"(stage {index}, retry {retry_count}, deadline {stage.timeout})"
        )
        try:
            if stage.timeout is None:
                data = await stage.provider.produce(descriptor, self.client)
            else:
                data = await asyncio.wait_for(
                    stage.provider.produce(descriptor, self.client), stage.timeout
                )
        except TimeoutError as e:
            error = NetworkError(
                f"{stage.provider.label} exceeded {stage.timeout}s deadline", e
            )
            attempts.append(self._record(index, retry_count, stage, descriptor, error))
            raise error from e
        except TRANSIENT_ERRORS as e:
            attempts.append(self._record(index, retry_count, stage, descriptor, e))
            raise

        attempts.append(self._record(index, retry_count, stage, descriptor, None))
        return data

    @staticmethod
    def _record(
        index: int,
        retry_count: int,
        stage: ProviderStage,
        descriptor: Any,
        error: Exception | None,
    ) -> FetchAttempt:
        return FetchAttempt(
            key=descriptor.key,
            provider_index=index,
            provider_name=stage.provider.label,
            retry_count=retry_count,
            deadline=stage.timeout,
            error=str(error) if error is not None else None,
        )


def build_audio_pipeline(
    provider: AssetProvider,
    client: httpx.AsyncClient,
    config: TsumuConfig,
    sleep: Sleep = asyncio.sleep,
) -> FetchPipeline:
    """Single user-selected speech provider, one retry."""
    return FetchPipeline(
        [
            ProviderStage(
                provider,
                timeout=config.audio.timeout,
                retries=1,
                retry_backoff=config.audio.retry_backoff,
            )
        ],
        client,
        sleep=sleep,
    )


def build_image_pipeline(
    client: httpx.AsyncClient,
    config: TsumuConfig,
    sleep: Sleep = asyncio.sleep,
) -> FetchPipeline:
    """Primary and fallback image providers with the configured backoffs."""
    images = config.images
    return FetchPipeline(
        [
            ProviderStage(
                PollinationsImageProvider("flux", images.width, images.height),
                timeout=images.timeout,
                retries=1,
                retry_backoff=images.primary_retry_backoff,
            ),
            ProviderStage(
                PollinationsImageProvider("turbo", images.width, images.height),
                timeout=images.timeout,
                retries=1,
                retry_backoff=images.fallback_retry_backoff,
            ),
        ],
        client,
        advance_backoff=images.advance_backoff,
        sleep=sleep,
    )
