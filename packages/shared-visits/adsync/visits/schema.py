"""
Visit data model - raw analytics records and the enrichment stages built on them.

A Visit is parsed once from the analytics query service and never modified.
Each pipeline stage produces a new typed value object instead of adding keys
to the raw record:

    Visit -> ExpandedVisit -> EnrichedVisit(normalized) -> EnrichedVisit(hashed)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DIMENSION_KEY = re.compile(r"^dimension\d+$")


class ActionKind(str, Enum):
    """Kind of tracked action within a visit."""

    PAGE_VIEW = "page_view"
    CUSTOM_EVENT = "custom_event"
    ECOMMERCE_ORDER = "ecommerce_order"

    @classmethod
    def from_analytics_type(cls, action_type: str | None) -> ActionKind | None:
        """Map an analytics action type to a kind, or None if not dispatchable."""
        return {
            "action": cls.PAGE_VIEW,
            "event": cls.CUSTOM_EVENT,
            "ecommerceOrder": cls.ECOMMERCE_ORDER,
        }.get(action_type or "")


def _to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _dimensions(data: dict[str, Any]) -> dict[str, str | None]:
    return {
        key: _to_str(value)
        for key, value in data.items()
        if DIMENSION_KEY.match(key)
    }


@dataclass(frozen=True)
class Action:
    """One tracked action within a visit."""

    kind: ActionKind
    timestamp: int
    url: str | None = None
    category: str | None = None
    event_name: str | None = None
    pageview_id: str | None = None
    order_id: str | None = None
    revenue: float | None = None
    product_ids: tuple[str, ...] = ()
    dimensions: dict[str, str | None] = field(default_factory=dict)

    @property
    def occurred_at(self) -> datetime:
        """Action time as a timezone-aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, UTC)

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_timestamp: int = 0) -> Action:
        """Create an Action from an analytics ``actionDetails`` entry.

        Raises:
            ValueError: If the action type is not one the pipeline dispatches.
        """
        kind = ActionKind.from_analytics_type(data.get("type"))
        if kind is None:
            raise ValueError(f"Unsupported action type: {data.get('type')!r}")

        revenue = data.get("revenue")
        try:
            revenue = float(revenue) if revenue not in (None, "") else None
        except (TypeError, ValueError):
            revenue = None

        product_ids = tuple(
            str(item["itemSKU"])
            for item in data.get("itemDetails") or []
            if isinstance(item, dict) and item.get("itemSKU")
        )

        return cls(
            kind=kind,
            timestamp=_to_int(data.get("timestamp")) or default_timestamp,
            url=_to_str(data.get("url")),
            category=_to_str(data.get("eventCategory")),
            event_name=_to_str(data.get("eventName")),
            pageview_id=_to_str(data.get("idpageview")),
            order_id=_to_str(data.get("orderId")),
            revenue=revenue,
            product_ids=product_ids,
            dimensions=_dimensions(data),
        )


@dataclass(frozen=True)
class Visit:
    """
    One analytics session as returned by the analytics query service.

    Example:
        visit = Visit.from_dict({
            "idVisit": 42,
            "visitorId": "a1b2c3d4e5f6a7b8",
            "lastActionTimestamp": 1736935200,
            "actionDetails": [{"type": "action", "idpageview": "xYz1", "timestamp": 1736935200}],
        })
    """

    visit_id: str
    visitor_id: str | None = None
    user_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    city: str | None = None
    region: str | None = None
    country_code: str | None = None
    first_action_timestamp: int | None = None
    last_action_timestamp: int | None = None
    actions: tuple[Action, ...] = ()
    dimensions: dict[str, str | None] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def activity_timestamp(self) -> int | None:
        """Timestamp used for time-window filtering."""
        return self.last_action_timestamp or self.first_action_timestamp

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Visit:
        """Create a Visit from an analytics record.

        Args:
            data: Raw visit dictionary with nested ``actionDetails``.

        Returns:
            Visit instance. Actions of unsupported types are skipped.

        Raises:
            ValueError: If the record has no visit id.
        """
        visit_id = _to_str(data.get("idVisit"))
        if visit_id is None:
            raise ValueError("Missing required field: idVisit")

        first_ts = _to_int(data.get("firstActionTimestamp"))
        actions = []
        for raw_action in data.get("actionDetails") or []:
            try:
                actions.append(Action.from_dict(raw_action, default_timestamp=first_ts or 0))
            except ValueError as e:
                logger.debug(f"Skipping action in visit {visit_id}: {e}")

        return cls(
            visit_id=visit_id,
            visitor_id=_to_str(data.get("visitorId")),
            user_id=_to_str(data.get("userId")),
            ip=_to_str(data.get("visitIp")),
            user_agent=_to_str(data.get("userAgent")),
            city=_to_str(data.get("city")),
            region=_to_str(data.get("regionCode")) or _to_str(data.get("region")),
            country_code=_to_str(data.get("countryCode")),
            first_action_timestamp=first_ts,
            last_action_timestamp=_to_int(data.get("lastActionTimestamp")),
            actions=tuple(actions),
            dimensions=_dimensions(data),
            raw=data,
        )


@dataclass(frozen=True)
class VisitFields:
    """Visit-scope semantic fields, every one present and None when unmapped."""

    email: str | None = None
    name: str | None = None
    phone: str | None = None
    birth_date: str | None = None
    gender: str | None = None
    address: str | None = None
    city: str | None = None
    region: str | None = None
    zip: str | None = None
    country_code: str | None = None
    user_agent: str | None = None
    fbc: str | None = None
    fbp: str | None = None
    gclid: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ExpandedAction:
    """An action with its resolved conversion identifier and action-scope fields."""

    action: Action
    conversion_id: str | None = None
    value: str | None = None
    currency: str | None = None

    @property
    def is_dispatchable(self) -> bool:
        return self.conversion_id is not None


@dataclass(frozen=True)
class ExpandedVisit:
    """A visit with custom dimensions mapped to semantic fields."""

    visit: Visit
    fields: VisitFields = field(default_factory=VisitFields)
    consent_cookie: str | None = None
    actions: tuple[ExpandedAction, ...] = ()

    @classmethod
    def unexpanded(cls, visit: Visit) -> ExpandedVisit:
        """Wrap a visit without applying any dimension mapping."""
        return cls(
            visit=visit,
            actions=tuple(ExpandedAction(action=action) for action in visit.actions),
        )


@dataclass(frozen=True)
class NormalizedFields:
    """Hash-ready canonical forms of the PII fields."""

    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    street: str | None = None
    city: str | None = None
    region: str | None = None
    zip: str | None = None
    country_code: str | None = None
    gender: str | None = None
    birth_date: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class HashedFields:
    """One-way digests of the normalized fields, same field names."""

    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    street: str | None = None
    city: str | None = None
    region: str | None = None
    zip: str | None = None
    country_code: str | None = None
    gender: str | None = None
    birth_date: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class EnrichedVisit:
    """An expanded visit composed with its normalized and hashed fields."""

    visit: ExpandedVisit
    normalized: NormalizedFields = field(default_factory=NormalizedFields)
    hashed: HashedFields = field(default_factory=HashedFields)

    @property
    def raw(self) -> Visit:
        return self.visit.visit

    @property
    def fields(self) -> VisitFields:
        return self.visit.fields

    @property
    def actions(self) -> tuple[ExpandedAction, ...]:
        return self.visit.actions
