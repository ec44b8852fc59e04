"""Pytest configuration and fixtures for tsumu tests."""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from test_helpers import FAST_PLAYBACK, FakeTransport
from tsumu.config import TsumuConfig
from tsumu.store import open_stores


@pytest.fixture(autouse=True)
def reset_fake_transports() -> None:
    FakeTransport.instances.clear()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "cache" / "assets.db"


@pytest.fixture
def config(store_path: Path) -> TsumuConfig:
    """Default configuration with instant playback timings and a temp store."""
    defaults = TsumuConfig.defaults(store_path)
    return TsumuConfig(
        audio=defaults.audio,
        images=defaults.images,
        playback=FAST_PLAYBACK,
        store=defaults.store,
    )


@pytest.fixture
def stores(config: TsumuConfig):
    return open_stores(config)


@pytest.fixture
def no_sleep() -> Callable[[float], Any]:
    """Backoff sleep that records delays without waiting."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
