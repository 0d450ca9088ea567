"""Meta Conversions API dispatcher."""

from __future__ import annotations

import logging
from typing import Any

from adsync.platforms.base import DEFAULT_CURRENCY, BaseDispatcher, BatchOutcome, parse_amount
from adsync.platforms.config import CanonicalEvent, SiteConfig
from adsync.platforms.events import EventMapper
from adsync.platforms.exceptions import TransportError
from adsync.platforms.registry import get_registry
from adsync.visits.config import Platform
from adsync.visits.schema import EnrichedVisit, ExpandedAction

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"

# Graph API accepts at most 1000 events per request
MAX_EVENTS_PER_REQUEST = 1000

# Placeholder the analytics API uses for unknown attributes
UNKNOWN = "unknown"


class MetaDispatcher(BaseDispatcher):
    """Sends conversions to the Meta (Facebook) Conversions API.

    Hashed PII (em, ph, fn, ln, zp, ge, db), the IP address and the click
    cookies (fbc, fbp) are only included with consent. Location (ct, st,
    country) and the user agent are always sent. Without consent the
    external_id is a pseudonymous id instead of the visitor id.

    Required settings:
        - pixel_id: Meta Pixel (dataset) id
        - access_token: Conversions API access token

    Example:
        >>> dispatcher = MetaDispatcher(consent=ConsentResolver())
        >>> result = dispatcher.dispatch(hashed_visits, site_config)
    """

    platform = Platform.META
    batch_size = MAX_EVENTS_PER_REQUEST

    def build_event(
        self,
        visit: EnrichedVisit,
        action: ExpandedAction,
        event: CanonicalEvent,
        mapper: EventMapper,
        consented: bool,
        site: SiteConfig,
    ) -> dict[str, Any] | None:
        payload: dict[str, Any] = {
            "event_name": mapper.event_name(event, Platform.META),
            "event_time": action.action.timestamp,
            "event_id": action.conversion_id,
            "action_source": "website",
            "user_data": self.user_data(visit, consented),
            "opt_out": False,
        }
        if action.action.url:
            payload["event_source_url"] = action.action.url

        custom_data = self.custom_data(action)
        if custom_data:
            payload["custom_data"] = custom_data
        return payload

    def user_data(self, visit: EnrichedVisit, consented: bool) -> dict[str, Any]:
        """Build the ``user_data`` block, gated by consent."""
        raw = visit.raw
        hashed = visit.hashed

        if consented and raw.visitor_id:
            external_id = raw.visitor_id
        else:
            external_id = self.consent.create_random_id(raw.visit_id)

        data: dict[str, Any] = {
            "client_user_agent": visit.fields.user_agent,
            "external_id": external_id,
            "ct": hashed.city,
            "st": hashed.region,
            "country": hashed.country_code,
        }
        if consented:
            data.update(
                {
                    "client_ip_address": raw.ip,
                    "em": hashed.email,
                    "ph": hashed.phone,
                    "fn": hashed.first_name,
                    "ln": hashed.last_name,
                    "zp": hashed.zip,
                    "ge": hashed.gender,
                    "db": hashed.birth_date,
                    "fbc": visit.fields.fbc,
                    "fbp": visit.fields.fbp,
                }
            )
        return {key: value for key, value in data.items() if value and value != UNKNOWN}

    def custom_data(self, action: ExpandedAction) -> dict[str, Any]:
        data: dict[str, Any] = {}
        value = parse_amount(action.value)
        if value is not None:
            data["value"] = value
            data["currency"] = (action.currency or DEFAULT_CURRENCY).upper()
        if action.action.product_ids:
            data["content_ids"] = list(action.action.product_ids)
            data["content_type"] = "product"
        return data

    def submit(self, batch: list[dict[str, Any]], site: SiteConfig) -> BatchOutcome:
        config = site.meta
        url = f"{GRAPH_API_URL}/{config.api_version}/{config.pixel_id}/events"
        payload: dict[str, Any] = {"data": batch, "access_token": config.access_token}
        if config.test_event_code:
            payload["test_event_code"] = config.test_event_code

        body = self.post_json(url, payload)

        received = body.get("events_received")
        if not isinstance(received, int):
            raise TransportError("Meta API response is missing events_received")

        succeeded = min(received, len(batch))
        failed = len(batch) - succeeded
        details = []
        if failed or body.get("messages"):
            details.append(
                {
                    "events_sent": len(batch),
                    "events_received": received,
                    "messages": body.get("messages", []),
                    "fbtrace_id": body.get("fbtrace_id"),
                }
            )
            logger.warning(
                f"Meta accepted {received} of {len(batch)} events for site {site.site_id}: "
                f"{body.get('messages', [])}"
            )
        return BatchOutcome(succeeded=succeeded, failed=failed, details=details)


# Registered on import of adsync.platforms.adapters
get_registry().register(Platform.META, MetaDispatcher)
