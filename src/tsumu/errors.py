"""Custom asset delivery exceptions."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import FetchAttempt


class AssetError(Exception):
    """Base exception for asset delivery errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class NetworkError(AssetError):
    """Exception raised when a provider could not be reached.

    This typically occurs when:
    - The request deadline expired
    - The connection was refused or reset
    - DNS resolution failed
    """

    pass


class ProviderError(AssetError):
    """Exception raised for non-success provider responses.

    This typically occurs when:
    - Provider server is unavailable (5xx errors)
    - Rate limits are exceeded (429 error)
    - Request format is invalid (4xx errors)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Exception raised when a provider API key is missing or rejected."""

    pass


class UnknownProviderError(AssetError):
    """Exception raised when no speech provider is registered under a name."""

    pass


class DecodeError(AssetError):
    """Exception raised when a payload cannot be turned into a playable or
    displayable form."""

    pass


class PlaybackError(AssetError):
    """Exception raised when the audio transport refuses to play or resume."""

    pass


class AllProvidersExhausted(AssetError):
    """Terminal fetch failure after every provider and retry was tried."""

    def __init__(self, key: str, attempts: list["FetchAttempt"]) -> None:
        last = attempts[-1].error if attempts else "no providers configured"
        super().__init__(
            f"All providers exhausted for '{key}' after {len(attempts)} attempts: {last}"
        )
        self.key = key
        self.attempts = attempts


class Cancelled(AssetError):
    """Raised to callers joined on a fetch that was explicitly cancelled.

    Not a real failure: the UI simply no longer wants the result.
    """

    pass
