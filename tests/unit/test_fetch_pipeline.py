"""Unit tests for the provider fallback pipeline."""

import asyncio
import sys
from pathlib import Path

import httpx
import pytest
import respx

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from test_helpers import ScriptedProvider, server_error
from tsumu.errors import AllProvidersExhausted, NetworkError, ProviderAuthError
from tsumu.fetch import FetchPipeline, ProviderStage, build_image_pipeline
from tsumu.models import AudioRequest, ImageRequest
from tsumu.payload import decode_payload
from tsumu.providers.pollinations import POLLINATIONS_URL

REQUEST = AudioRequest(text="こんにちは", voice="Aoede", provider="google")


class TestFetchPipeline:
    """Test stage ordering, retries and exhaustion."""

    def test_requires_a_stage(self) -> None:
        with pytest.raises(ValueError, match="at least one provider stage"):
            FetchPipeline([], client=None)

    @pytest.mark.asyncio
    async def test_first_success_is_encoded(self, no_sleep) -> None:
        provider = ScriptedProvider([b"mp3"])
        pipeline = FetchPipeline([ProviderStage(provider)], None, sleep=no_sleep)

        payload = await pipeline.fetch(REQUEST)

        assert decode_payload(payload) == b"mp3"
        assert len(provider.calls) == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retry_after_backoff_then_success(self, no_sleep) -> None:
        provider = ScriptedProvider([server_error(), b"mp3"])
        pipeline = FetchPipeline(
            [ProviderStage(provider, retries=1, retry_backoff=1.0)], None, sleep=no_sleep
        )

        assert decode_payload(await pipeline.fetch(REQUEST)) == b"mp3"
        assert len(provider.calls) == 2
        assert no_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_primary_fails_twice_then_fallback_succeeds(self, no_sleep) -> None:
        """Three attempts: primary, primary retry, fallback."""
        primary = ScriptedProvider([server_error()], name="primary")
        fallback = ScriptedProvider([b"jpeg"], name="fallback")
        pipeline = FetchPipeline(
            [
                ProviderStage(primary, timeout=45, retries=1, retry_backoff=3),
                ProviderStage(fallback, timeout=45, retries=1, retry_backoff=5),
            ],
            None,
            advance_backoff=2,
            sleep=no_sleep,
        )

        payload = await pipeline.fetch(ImageRequest("s1", "A cat"))

        assert decode_payload(payload) == b"jpeg"
        assert len(primary.calls) == 2
        assert len(fallback.calls) == 1
        assert no_sleep.delays == [3, 2]

    @pytest.mark.asyncio
    async def test_all_stages_exhausted_records_attempts(self, no_sleep) -> None:
        primary = ScriptedProvider([server_error()], name="primary")
        fallback = ScriptedProvider([NetworkError("down")], name="fallback")
        pipeline = FetchPipeline(
            [ProviderStage(primary, 45, 1, 3), ProviderStage(fallback, 45, 1, 5)],
            None,
            advance_backoff=2,
            sleep=no_sleep,
        )

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await pipeline.fetch(ImageRequest("s1", "A cat"))

        attempts = exc_info.value.attempts
        assert [(a.provider_name, a.retry_count) for a in attempts] == [
            ("primary", 0),
            ("primary", 1),
            ("fallback", 0),
            ("fallback", 1),
        ]
        assert all(a.error for a in attempts)
        assert all(a.deadline == 45 for a in attempts)
        assert no_sleep.delays == [3, 2, 5]

    @pytest.mark.asyncio
    async def test_auth_failure_is_retried_then_exhausted(self, no_sleep) -> None:
        provider = ScriptedProvider([ProviderAuthError("bad key", 401)])
        pipeline = FetchPipeline([ProviderStage(provider, retries=1)], None, sleep=no_sleep)

        with pytest.raises(AllProvidersExhausted, match="bad key"):
            await pipeline.fetch(REQUEST)
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_deadline_counts_as_network_failure(self, no_sleep) -> None:
        gate = asyncio.Event()  # never set: every attempt hangs
        slow = ScriptedProvider([b"late"], name="slow", gate=gate)
        fast = ScriptedProvider([b"jpeg"], name="fast")
        pipeline = FetchPipeline(
            [ProviderStage(slow, timeout=0.01, retries=0), ProviderStage(fast)],
            None,
            advance_backoff=0,
            sleep=no_sleep,
        )

        assert decode_payload(await pipeline.fetch(ImageRequest("s1", "A cat"))) == b"jpeg"
        assert len(slow.calls) == 1

    @pytest.mark.asyncio
    async def test_non_transient_error_propagates(self, no_sleep) -> None:
        provider = ScriptedProvider([ValueError("bad descriptor")])
        pipeline = FetchPipeline([ProviderStage(provider, retries=3)], None, sleep=no_sleep)

        with pytest.raises(ValueError, match="bad descriptor"):
            await pipeline.fetch(REQUEST)
        assert len(provider.calls) == 1


class TestImagePipeline:
    """Test the configured Pollinations primary/fallback pipeline over HTTP."""

    @pytest.mark.asyncio
    async def test_flux_then_turbo(self, config, no_sleep) -> None:
        jpeg = b"\xff\xd8\xff fake"

        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.params["model"] == "flux":
                return httpx.Response(500)
            return httpx.Response(200, content=jpeg, headers={"Content-Type": "image/jpeg"})

        with respx.mock:
            route = respx.get(url__startswith=POLLINATIONS_URL).mock(side_effect=respond)
            async with httpx.AsyncClient() as client:
                pipeline = build_image_pipeline(client, config, no_sleep)
                payload = await pipeline.fetch(ImageRequest("s1", "A cat"))

        assert decode_payload(payload) == jpeg
        models = [call.request.url.params["model"] for call in route.calls]
        assert models == ["flux", "flux", "turbo"]
        assert no_sleep.delays == [3.0, 2.0]
        assert pipeline.provider_names == ["pollinations/flux", "pollinations/turbo"]
