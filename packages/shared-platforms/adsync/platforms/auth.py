"""OAuth access tokens for the Google Ads API."""

from __future__ import annotations

import logging
from datetime import datetime

from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from adsync.platforms.config import GoogleAdsConfig
from adsync.platforms.exceptions import (
    AuthenticationError,
    MissingConfigurationError,
    TransportError,
)
from adsync.visits.config import Platform

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"

# Required OAuth client settings
REQUIRED_CREDENTIALS = (
    ("client_id", "Client ID"),
    ("client_secret", "Client Secret"),
    ("refresh_token", "Refresh Token"),
)


class GoogleAuthService:
    """Refresh-token based access tokens for Google Ads.

    The token is refreshed on demand and reused while still valid. google-auth
    treats a token as expired slightly before its real expiry, so a valid
    token always has time left for one request.

    Example:
        >>> auth = GoogleAuthService(site_config.google)
        >>> headers = {"Authorization": f"Bearer {auth.get_access_token()}"}
    """

    def __init__(self, config: GoogleAdsConfig, request: Request | None = None):
        self.config = config
        self._request = request
        self._credentials: Credentials | None = None

    @property
    def credentials(self) -> Credentials:
        """OAuth credentials built from the site's Google Ads settings.

        Raises:
            MissingConfigurationError: If client id, secret or refresh token is empty.
        """
        if self._credentials is None:
            missing = [label for attr, label in REQUIRED_CREDENTIALS if not getattr(self.config, attr)]
            if missing:
                raise MissingConfigurationError(Platform.GOOGLE, missing)
            self._credentials = Credentials(
                token=None,
                refresh_token=self.config.refresh_token,
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
                token_uri=TOKEN_URI,
            )
        return self._credentials

    @property
    def expires_at(self) -> datetime | None:
        return self._credentials.expiry if self._credentials else None

    def is_valid(self) -> bool:
        """Return True if a usable access token is cached."""
        return self._credentials is not None and bool(self._credentials.valid)

    def refresh(self) -> None:
        """Exchange the refresh token for a new access token.

        Raises:
            AuthenticationError: If Google rejects the refresh token.
            TransportError: If the token endpoint cannot be reached.
        """
        credentials = self.credentials
        try:
            credentials.refresh(self._request or Request())
        except google_exceptions.RefreshError as e:
            raise AuthenticationError(f"Failed to refresh Google Ads access token: {e}") from e
        except google_exceptions.TransportError as e:
            raise TransportError(
                f"Google OAuth connection failed: {e}", retryable=True
            ) from e
        logger.info(f"Refreshed Google Ads access token (expires {credentials.expiry})")

    def get_access_token(self) -> str:
        """Return a valid access token, refreshing it when needed."""
        if not self.is_valid():
            self.refresh()
        token = self.credentials.token
        if not token:
            raise AuthenticationError("Google OAuth refresh returned no access token")
        return token
