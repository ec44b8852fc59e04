"""Fetching generated assets from network providers.

This package provides the provider fallback pipeline and the coordinator
that deduplicates concurrent requests for the same key.
"""

from .coordinator import RequestCoordinator
from .pipeline import (
    FetchPipeline,
    ProviderStage,
    build_audio_pipeline,
    build_image_pipeline,
)

__all__ = [
    "FetchPipeline",
    "ProviderStage",
    "RequestCoordinator",
    "build_audio_pipeline",
    "build_image_pipeline",
]
