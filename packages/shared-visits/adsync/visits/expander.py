"""Maps indexed custom dimensions onto semantic visit and action fields."""

from __future__ import annotations

import logging
from dataclasses import replace

from adsync.visits.config import (
    ACTION_FIELDS,
    VISIT_FIELDS,
    ConsentConfig,
    DimensionConfig,
    EventIdConfig,
    EventIdSource,
)
from adsync.visits.schema import (
    Action,
    ActionKind,
    ExpandedAction,
    ExpandedVisit,
    Visit,
    VisitFields,
)

logger = logging.getLogger(__name__)

# Semantic fields that fall back to the visit's own attributes when unmapped
LOCATION_FALLBACKS = {
    "city": "city",
    "region": "region",
    "country_code": "country_code",
    "user_agent": "user_agent",
}


class DimensionExpander:
    """Expands raw visits into ExpandedVisit records.

    Example:
        >>> expander = DimensionExpander()
        >>> expanded = expander.expand(
        ...     visits,
        ...     DimensionConfig(visit={"email": 3}),
        ...     ConsentConfig(cookie_dimension=5),
        ...     EventIdConfig(),
        ... )
        >>> expanded[0].fields.email
        'jane@example.com'
    """

    def expand(
        self,
        visits: list[Visit],
        dimension_config: DimensionConfig,
        consent_config: ConsentConfig,
        event_id_config: EventIdConfig,
    ) -> list[ExpandedVisit]:
        """Expand every visit.

        Any error falls back to unexpanded visits so dispatch can still run.

        Args:
            visits: Raw visits from the visit source.
            dimension_config: Field to dimension mapping for the site.
            consent_config: Consent settings (cookie dimension).
            event_id_config: Conversion identifier source for custom events.

        Returns:
            One ExpandedVisit per input visit, in order.
        """
        try:
            return [
                self.expand_visit(visit, dimension_config, consent_config, event_id_config)
                for visit in visits
            ]
        except Exception:
            logger.exception("Dimension expansion failed; continuing with unexpanded visits")
            return [ExpandedVisit.unexpanded(visit) for visit in visits]

    def expand_visit(
        self,
        visit: Visit,
        dimension_config: DimensionConfig,
        consent_config: ConsentConfig,
        event_id_config: EventIdConfig,
    ) -> ExpandedVisit:
        values: dict[str, str | None] = dict.fromkeys(VISIT_FIELDS)
        for name in VISIT_FIELDS:
            key = dimension_config.visit_dimension(name)
            if key:
                values[name] = visit.dimensions.get(key)

        for name, attribute in LOCATION_FALLBACKS.items():
            if values[name] is None:
                values[name] = getattr(visit, attribute)

        consent_cookie = None
        if consent_config.cookie_dimension:
            consent_cookie = visit.dimensions.get(f"dimension{consent_config.cookie_dimension}")

        actions = tuple(
            self._expand_action(visit, action, dimension_config, event_id_config)
            for action in visit.actions
        )

        return ExpandedVisit(
            visit=visit,
            fields=VisitFields(**values),
            consent_cookie=consent_cookie,
            actions=actions,
        )

    def _expand_action(
        self,
        visit: Visit,
        action: Action,
        dimension_config: DimensionConfig,
        event_id_config: EventIdConfig,
    ) -> ExpandedAction:
        values: dict[str, str | None] = dict.fromkeys(ACTION_FIELDS)
        for name in ACTION_FIELDS:
            key = dimension_config.action_dimension(name)
            if key:
                values[name] = action.dimensions.get(key)

        expanded = ExpandedAction(
            action=action,
            conversion_id=self._conversion_id(visit, action, event_id_config),
            **values,
        )
        if action.kind is ActionKind.ECOMMERCE_ORDER and expanded.value is None and action.revenue is not None:
            expanded = replace(expanded, value=str(action.revenue))
        return expanded

    def _conversion_id(
        self,
        visit: Visit,
        action: Action,
        event_id_config: EventIdConfig,
    ) -> str | None:
        if action.kind is ActionKind.PAGE_VIEW:
            return action.pageview_id
        if action.kind is ActionKind.ECOMMERCE_ORDER:
            return action.order_id

        if event_id_config.source is EventIdSource.EVENT_NAME:
            return action.event_name

        if not event_id_config.custom_dimension:
            logger.warning(
                f"Event id source is custom_dimension but no dimension is configured "
                f"(visit {visit.visit_id})"
            )
            return None
        key = f"dimension{event_id_config.custom_dimension}"
        conversion_id = action.dimensions.get(key)
        if conversion_id is None:
            logger.warning(f"Missing event id dimension {key} on action in visit {visit.visit_id}")
        return conversion_id
