"""Custom exceptions for platform dispatch."""

from __future__ import annotations

from collections.abc import Sequence

from adsync.visits.config import Platform
from adsync.visits.exceptions import AdSyncError, ConfigurationError

__all__ = [
    "AdSyncError",
    "AuthenticationError",
    "ConfigurationError",
    "DispatchError",
    "MissingConfigurationError",
    "TransportError",
]


class DispatchError(AdSyncError):
    """Base exception for dispatch errors."""

    pass


class MissingConfigurationError(DispatchError):
    """Raised when a platform is enabled but required settings are absent."""

    def __init__(self, platform: Platform, missing_fields: Sequence[str]):
        self.platform = platform
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"{platform.label} integration is enabled but missing required configuration: "
            f"{', '.join(self.missing_fields)}"
        )


class TransportError(DispatchError):
    """Raised when an HTTP call to a platform fails or returns garbage."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class AuthenticationError(DispatchError):
    """Raised when an access token cannot be obtained."""

    pass
