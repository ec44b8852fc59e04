"""Abstract base classes for asset generation providers.

Every speech and image provider implements ``produce``, so the fetch
pipeline can treat them uniformly. Providers that talk to a plain HTTP
endpoint build on HttpAssetProvider and only describe the request and
the response body.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from ..errors import DecodeError, NetworkError, ProviderAuthError, ProviderError
from ..models import AssetKind


class AssetProvider(ABC):
    """Abstract base class for providers that generate asset bytes."""

    name: ClassVar[str]
    kind: ClassVar[AssetKind]

    @property
    def label(self) -> str:
        """Name used in logs and fetch attempt records."""
        return self.name

    @abstractmethod
    async def produce(self, descriptor: Any, client: httpx.AsyncClient) -> bytes:
        """Generate the asset bytes for a descriptor.

        Args:
            descriptor: AudioRequest or ImageRequest
            client: Shared async HTTP client

        Returns:
            Raw asset bytes

        Raises:
            NetworkError: If the provider could not be reached
            ProviderError: If the provider answered with a non-success status
            DecodeError: If the response body is unusable
        """
        pass


class HttpAssetProvider(AssetProvider):
    """Provider backed by a single HTTP request per asset.

    Subclasses describe how to build the request for a descriptor and how
    to turn the response into raw bytes. ``produce`` glues the two together
    and normalizes failures into the asset error taxonomy:

        httpx timeout / transport error -> NetworkError
        401 / 403                        -> ProviderAuthError
        other non-2xx                    -> ProviderError
        unusable body                    -> DecodeError
    """

    @abstractmethod
    def build_request(self, descriptor: Any) -> httpx.Request:
        """Build the HTTP request that generates the asset.

        Args:
            descriptor: AudioRequest or ImageRequest

        Returns:
            Unsent httpx request
        """
        pass

    @abstractmethod
    def decode(self, response: httpx.Response) -> bytes:
        """Extract asset bytes from a successful response.

        Raises:
            DecodeError: If the body is not a usable asset
        """
        pass

    async def produce(self, descriptor: Any, client: httpx.AsyncClient) -> bytes:
        request = self.build_request(descriptor)
        try:
            response = await client.send(request)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.label} timed out: {e}", e) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{self.label} unreachable: {e}", e) from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(
                f"{self.label} rejected credentials (HTTP {response.status_code})",
                response.status_code,
            )
        if response.status_code == 429:
            raise ProviderError(f"{self.label} rate limit exceeded", 429)
        if not response.is_success:
            raise ProviderError(
                f"{self.label} HTTP {response.status_code}", response.status_code
            )

        try:
            return self.decode(response)
        except DecodeError:
            raise
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"{self.label} returned an unreadable body: {e}", e) from e
