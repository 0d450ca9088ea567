"""Maps site event categories to each platform's conversion vocabulary."""

from __future__ import annotations

import logging

from adsync.platforms.config import CanonicalEvent, EventConfig
from adsync.visits.config import Platform
from adsync.visits.schema import Action, ActionKind

logger = logging.getLogger(__name__)

STANDARD_EVENT_NAMES: dict[CanonicalEvent, dict[Platform, str]] = {
    CanonicalEvent.LEAD: {
        Platform.META: "Lead",
        Platform.GOOGLE: "generate_lead",
        Platform.LINKEDIN: "LEAD",
    },
    CanonicalEvent.REGISTRATION: {
        Platform.META: "CompleteRegistration",
        Platform.GOOGLE: "sign_up",
        Platform.LINKEDIN: "SIGN_UP",
    },
    CanonicalEvent.APPOINTMENT: {
        Platform.META: "Schedule",
        Platform.GOOGLE: "schedule",
        Platform.LINKEDIN: "BOOK_APPOINTMENT",
    },
    CanonicalEvent.APPLICATION: {
        Platform.META: "SubmitApplication",
        Platform.GOOGLE: "submit_application",
        Platform.LINKEDIN: "JOB_APPLY",
    },
    CanonicalEvent.PAGE_VIEW: {
        Platform.META: "ViewContent",
        Platform.GOOGLE: "page_view",
        Platform.LINKEDIN: "KEY_PAGE_VIEW",
    },
    CanonicalEvent.PURCHASE: {
        Platform.META: "Purchase",
        Platform.GOOGLE: "purchase",
        Platform.LINKEDIN: "PURCHASE",
    },
}

# Categories that are matched from custom events; page views and orders map directly
CATEGORY_EVENTS = (
    CanonicalEvent.LEAD,
    CanonicalEvent.REGISTRATION,
    CanonicalEvent.APPOINTMENT,
    CanonicalEvent.APPLICATION,
)


class EventMapper:
    """Resolves a site's event categories to platform event names and ids.

    Lookup goes category -> canonical event (exact match against the site's
    configured names) -> platform name from STANDARD_EVENT_NAMES.

    Example:
        >>> mapper = EventMapper(EventConfig(category_names={CanonicalEvent.LEAD: "Contact form"}))
        >>> mapper.standard_event_name("Contact form", Platform.META)
        'Lead'
        >>> mapper.standard_event_name("Newsletter", Platform.META) is None
        True
    """

    def __init__(self, config: EventConfig | None = None):
        self.config = config or EventConfig()
        self._by_category: dict[str, CanonicalEvent] = {}
        for event in CATEGORY_EVENTS:
            category = self.config.category_name(event)
            if category in self._by_category:
                logger.warning(
                    f"Event category '{category}' is configured for both "
                    f"{self._by_category[category].value} and {event.value}; "
                    f"keeping {self._by_category[category].value}"
                )
                continue
            self._by_category[category] = event

    def canonical_event(self, category: str | None) -> CanonicalEvent | None:
        if not category:
            return None
        return self._by_category.get(category)

    def canonical_event_for(self, action: Action) -> CanonicalEvent | None:
        """Canonical event for an action, or None (logged at info) when unmapped."""
        if action.kind is ActionKind.PAGE_VIEW:
            return CanonicalEvent.PAGE_VIEW
        if action.kind is ActionKind.ECOMMERCE_ORDER:
            return CanonicalEvent.PURCHASE

        event = self.canonical_event(action.category)
        if event is None:
            logger.info(f"Event category '{action.category}' is not mapped to a conversion event")
        return event

    def standard_event_name(self, category: str | None, platform: Platform) -> str | None:
        event = self.canonical_event(category)
        return STANDARD_EVENT_NAMES[event][platform] if event else None

    def event_name(self, event: CanonicalEvent, platform: Platform) -> str:
        return STANDARD_EVENT_NAMES[event][platform]

    def conversion_action_id(self, category: str | None) -> str | None:
        """Google Ads conversion action id for a site category."""
        event = self.canonical_event(category)
        return self.action_id_for(event) if event else None

    def action_id_for(self, event: CanonicalEvent) -> str | None:
        return self.config.conversion_action_ids.get(event)

    def conversion_rule_id(self, category: str | None) -> str | None:
        """LinkedIn conversion rule id for a site category."""
        event = self.canonical_event(category)
        return self.rule_id_for(event) if event else None

    def rule_id_for(self, event: CanonicalEvent) -> str | None:
        return self.config.conversion_rule_ids.get(event)
