"""Google Ads enhanced conversions dispatcher."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from adsync.platforms.auth import GoogleAuthService
from adsync.platforms.base import BaseDispatcher, BatchOutcome
from adsync.platforms.config import CanonicalEvent, SiteConfig
from adsync.platforms.events import EventMapper
from adsync.platforms.exceptions import TransportError
from adsync.platforms.registry import get_registry
from adsync.visits.config import Platform
from adsync.visits.consent import ConsentResolver
from adsync.visits.schema import EnrichedVisit, ExpandedAction

logger = logging.getLogger(__name__)

GOOGLE_ADS_API_URL = "https://googleads.googleapis.com"

# uploadConversionAdjustments accepts at most 2000 adjustments per request
MAX_ADJUSTMENTS_PER_REQUEST = 2000


def format_local_time(timestamp: int, timezone: str) -> str:
    """Format a unix timestamp as ``YYYY-MM-DD HH:MM:SS+HH:MM`` in ``timezone``.

    Example:
        >>> format_local_time(1736935200, "Europe/Amsterdam")
        '2025-01-15 11:00:00+01:00'
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{timezone}', using UTC")
        tz = UTC
    return datetime.fromtimestamp(timestamp, tz).isoformat(sep=" ", timespec="seconds")


class GoogleAdsDispatcher(BaseDispatcher):
    """Uploads ENHANCEMENT conversion adjustments to Google Ads.

    Each action becomes an adjustment of the configured conversion action for
    its event type. Actions whose event type has no conversion action id are
    skipped. Without consent only coarse location (city, state, country) is
    sent as a user identifier.

    Required settings:
        - developer_token, client_id, client_secret, refresh_token, customer_id

    Optional settings:
        - login_customer_id: Manager account id used for access
    """

    platform = Platform.GOOGLE
    batch_size = MAX_ADJUSTMENTS_PER_REQUEST

    def __init__(
        self,
        consent: ConsentResolver | None = None,
        client: httpx.Client | None = None,
        auth: GoogleAuthService | None = None,
    ):
        super().__init__(consent=consent, client=client)
        self._auth = auth
        self._access_token: str | None = None

    def prepare(self, site: SiteConfig) -> None:
        if self._auth is None:
            self._auth = GoogleAuthService(site.google)
        self._access_token = self._auth.get_access_token()

    def build_event(
        self,
        visit: EnrichedVisit,
        action: ExpandedAction,
        event: CanonicalEvent,
        mapper: EventMapper,
        consented: bool,
        site: SiteConfig,
    ) -> dict[str, Any] | None:
        action_id = mapper.action_id_for(event)
        if not action_id:
            logger.info(f"No Google Ads conversion action configured for '{event.value}'")
            return None

        occurred_at = format_local_time(action.action.timestamp, site.timezone)
        adjustment: dict[str, Any] = {
            "conversionAction": f"customers/{site.google.customer_id}/conversionActions/{action_id}",
            "adjustmentType": "ENHANCEMENT",
            "adjustmentDateTime": occurred_at,
            "orderId": action.conversion_id,
            "userIdentifiers": self.user_identifiers(visit, consented),
        }
        if visit.fields.user_agent:
            adjustment["userAgent"] = visit.fields.user_agent
        if visit.fields.gclid:
            adjustment["gclidDateTimePair"] = {
                "gclid": visit.fields.gclid,
                "conversionDateTime": occurred_at,
            }
        return adjustment

    def user_identifiers(self, visit: EnrichedVisit, consented: bool) -> list[dict[str, Any]]:
        """Build ``userIdentifiers``; only location is sent without consent."""
        normalized = visit.normalized
        hashed = visit.hashed
        identifiers: list[dict[str, Any]] = []

        address: dict[str, Any] = {
            "city": normalized.city,
            "state": normalized.region,
            "countryCode": normalized.country_code.upper() if normalized.country_code else None,
        }

        if consented:
            if hashed.email:
                identifiers.append({"userIdentifierSource": "FIRST_PARTY", "hashedEmail": hashed.email})
            if hashed.phone:
                identifiers.append(
                    {"userIdentifierSource": "FIRST_PARTY", "hashedPhoneNumber": hashed.phone}
                )
            if visit.raw.visitor_id:
                identifiers.append(
                    {"userIdentifierSource": "FIRST_PARTY", "thirdPartyUserId": visit.raw.visitor_id}
                )
            address.update(
                {
                    "hashedFirstName": hashed.first_name,
                    "hashedLastName": hashed.last_name,
                    "postalCode": normalized.zip,
                    "hashedStreetAddress": hashed.street,
                }
            )

        address = {key: value for key, value in address.items() if value}
        if address:
            identifiers.append({"userIdentifierSource": "FIRST_PARTY", "addressInfo": address})
        return identifiers

    def submit(self, batch: list[dict[str, Any]], site: SiteConfig) -> BatchOutcome:
        config = site.google
        url = (
            f"{GOOGLE_ADS_API_URL}/{config.api_version}/customers/"
            f"{config.customer_id}:uploadConversionAdjustments"
        )
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "developer-token": config.developer_token or "",
        }
        if config.login_customer_id:
            headers["login-customer-id"] = config.login_customer_id.replace("-", "")

        body = self.post_json(
            url,
            {"conversionAdjustments": batch, "partialFailure": True, "validateOnly": False},
            headers=headers,
        )

        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            code = error.get("code") if isinstance(error, dict) else None
            raise TransportError(f"Google Ads API error: {message}", status_code=code)

        results = body.get("results")
        partial = body.get("partialFailureError")
        if isinstance(results, list) and results:
            succeeded = sum(1 for item in results if item)
        else:
            succeeded = 0 if partial else len(batch)
        failed = len(batch) - succeeded

        details = []
        if partial:
            details.append(
                {
                    "code": partial.get("code"),
                    "message": partial.get("message"),
                    "details": partial.get("details", []),
                }
            )
            logger.warning(
                f"Google Ads partial failure for site {site.site_id} "
                f"({failed} of {len(batch)} adjustments rejected): {partial.get('message')}"
            )
        return BatchOutcome(succeeded=succeeded, failed=failed, details=details)


# Registered on import of adsync.platforms.adapters
get_registry().register(Platform.GOOGLE, GoogleAdsDispatcher)
