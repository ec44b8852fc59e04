"""Provider abstraction for generated assets.

This module provides a registry for the user-selectable speech providers.
Image providers are fixed (primary and fallback) and built by the fetch
pipeline factory.
"""

from typing import ClassVar

from .base import AssetProvider, HttpAssetProvider
from .elevenlabs import ElevenLabsProvider
from .google import GoogleTTSProvider
from .pollinations import PollinationsImageProvider

__all__ = [
    "AssetProvider",
    "HttpAssetProvider",
    "ElevenLabsProvider",
    "GoogleTTSProvider",
    "PollinationsImageProvider",
    "ProviderRegistry",
]


class ProviderRegistry:
    """Registry for managing speech providers.

    This class maintains a registry of available speech providers,
    allowing registration and retrieval by name.
    """

    _providers: ClassVar[dict[str, type[AssetProvider]]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type[AssetProvider]) -> None:
        """Register a speech provider.

        Args:
            name: Name to register the provider under
            provider_class: Provider class that implements AssetProvider
        """
        cls._providers[name] = provider_class

    @classmethod
    def get(cls, name: str) -> type[AssetProvider]:
        """Get a provider class by name.

        Args:
            name: Name of the provider to retrieve

        Returns:
            Provider class

        Raises:
            KeyError: If provider name not found
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "none"
            raise KeyError(
                f"Provider '{name}' not found. Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def create(cls, name: str) -> AssetProvider:
        """Instantiate a provider by name with its default credentials.

        Raises:
            KeyError: If provider name not found
            ProviderAuthError: If the provider's API key is missing
        """
        return cls.get(name)()

    @classmethod
    def available(cls) -> list[str]:
        return sorted(cls._providers)


# Register providers
ProviderRegistry.register("google", GoogleTTSProvider)
ProviderRegistry.register("elevenlabs", ElevenLabsProvider)
