"""LinkedIn Conversions API dispatcher."""

from __future__ import annotations

import logging
from typing import Any

from adsync.platforms.base import DEFAULT_CURRENCY, BaseDispatcher, BatchOutcome, parse_amount
from adsync.platforms.config import CanonicalEvent, SiteConfig
from adsync.platforms.events import EventMapper
from adsync.platforms.registry import get_registry
from adsync.visits.config import Platform
from adsync.visits.schema import EnrichedVisit, ExpandedAction

logger = logging.getLogger(__name__)

LINKEDIN_CONVERSIONS_URL = "https://api.linkedin.com/rest/conversionEvents"

MAX_ELEMENTS_PER_REQUEST = 1000


class LinkedInDispatcher(BaseDispatcher):
    """Sends conversions to the LinkedIn Conversions API.

    LinkedIn needs at least one user id per event, and the only id available
    here is the hashed email. Events without consent or without an email
    are therefore counted as skipped.

    Required settings:
        - access_token: OAuth token with the rw_conversions scope
        - ad_account_id: ``urn:li:sponsoredAccount:<id>`` owning the conversion rules
    """

    platform = Platform.LINKEDIN
    batch_size = MAX_ELEMENTS_PER_REQUEST

    def build_event(
        self,
        visit: EnrichedVisit,
        action: ExpandedAction,
        event: CanonicalEvent,
        mapper: EventMapper,
        consented: bool,
        site: SiteConfig,
    ) -> dict[str, Any] | None:
        rule_id = mapper.rule_id_for(event)
        if not rule_id:
            logger.info(f"No LinkedIn conversion rule configured for '{event.value}'")
            return None
        if not consented or not visit.hashed.email:
            logger.debug(f"No consented LinkedIn user id for visit {visit.raw.visit_id}")
            return None

        element: dict[str, Any] = {
            "conversion": f"urn:lla:llaPartnerConversion:{rule_id}",
            "conversionHappenedAt": action.action.timestamp * 1000,
            "eventId": action.conversion_id,
            "user": {
                "userIds": [{"idType": "SHA256_EMAIL", "idValue": visit.hashed.email}],
            },
        }
        amount = parse_amount(action.value)
        if amount is not None:
            element["conversionValue"] = {
                "currencyCode": (action.currency or DEFAULT_CURRENCY).upper(),
                "amount": f"{amount:.2f}",
            }
        return element

    def submit(self, batch: list[dict[str, Any]], site: SiteConfig) -> BatchOutcome:
        config = site.linkedin
        headers = {
            "Authorization": f"Bearer {config.access_token}",
            "LinkedIn-Version": config.api_version,
            "X-Restli-Protocol-Version": "2.0.0",
            "X-RestLi-Method": "BATCH_CREATE",
        }
        body = self.post_json(LINKEDIN_CONVERSIONS_URL, {"elements": batch}, headers=headers)

        elements = body.get("elements")
        if not isinstance(elements, list) or not elements:
            return BatchOutcome(succeeded=len(batch))

        details = []
        for index, element in enumerate(elements):
            status = element.get("status", 201) if isinstance(element, dict) else None
            if isinstance(status, int) and status < 400:
                continue
            error = element.get("error", {}) if isinstance(element, dict) else {}
            details.append(
                {
                    "index": index,
                    "status": status,
                    "message": error.get("message") if isinstance(error, dict) else error,
                }
            )

        failed = len(details)
        if failed:
            logger.warning(
                f"LinkedIn rejected {failed} of {len(batch)} conversions for "
                f"{config.ad_account_id} (site {site.site_id})"
            )
        return BatchOutcome(succeeded=len(batch) - failed, failed=failed, details=details)


# Registered on import of adsync.platforms.adapters
get_registry().register(Platform.LINKEDIN, LinkedInDispatcher)
