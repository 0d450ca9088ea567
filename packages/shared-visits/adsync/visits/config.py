"""Per-site configuration for dimension expansion and consent."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from adsync.visits.exceptions import ConfigurationError

# Semantic fields a site can map onto visit-scope custom dimensions
VISIT_FIELDS = (
    "email",
    "name",
    "phone",
    "birth_date",
    "gender",
    "address",
    "city",
    "region",
    "zip",
    "country_code",
    "user_agent",
    "fbc",
    "fbp",
    "gclid",
)

# Semantic fields a site can map onto action-scope custom dimensions
ACTION_FIELDS = ("value", "currency")

DEFAULT_PHONE_COUNTRY_CODE = "31"


class Platform(str, Enum):
    """Supported advertising platforms."""

    META = "meta"
    GOOGLE = "google"
    LINKEDIN = "linkedin"

    @property
    def label(self) -> str:
        """Human-readable platform name used in log messages."""
        return {
            Platform.META: "Meta",
            Platform.GOOGLE: "Google Ads",
            Platform.LINKEDIN: "LinkedIn",
        }[self]


class EventIdSource(str, Enum):
    """Where a custom event's conversion identifier is read from."""

    EVENT_NAME = "event_name"
    CUSTOM_DIMENSION = "custom_dimension"


def _validate_index(name: str, index: int | None) -> None:
    if index is None:
        return
    if isinstance(index, bool) or not isinstance(index, int) or index < 1:
        raise ConfigurationError(
            f"Dimension index for '{name}' must be a positive integer, got {index!r}"
        )


@dataclass(frozen=True)
class DimensionConfig:
    """Semantic field to custom-dimension index mapping for one site.

    Example:
        >>> config = DimensionConfig(visit={"email": 3, "phone": 4})
        >>> config.visit_dimension("email")
        'dimension3'
    """

    visit: dict[str, int] = field(default_factory=dict)
    action: dict[str, int] = field(default_factory=dict)
    phone_country_code: str = DEFAULT_PHONE_COUNTRY_CODE

    def __post_init__(self) -> None:
        for scope, known, mapping in (
            ("visit", VISIT_FIELDS, self.visit),
            ("action", ACTION_FIELDS, self.action),
        ):
            for name, index in mapping.items():
                if name not in known:
                    raise ConfigurationError(f"Unknown {scope} field: '{name}'")
                _validate_index(name, index)
        if not self.phone_country_code.isdigit():
            raise ConfigurationError(
                f"Phone country code must be digits only, got '{self.phone_country_code}'"
            )

    def visit_dimension(self, name: str) -> str | None:
        """Return the raw dimension key for a visit field, or None if unmapped."""
        index = self.visit.get(name)
        return f"dimension{index}" if index else None

    def action_dimension(self, name: str) -> str | None:
        """Return the raw dimension key for an action field, or None if unmapped."""
        index = self.action.get(name)
        return f"dimension{index}" if index else None


@dataclass(frozen=True)
class ConsentConfig:
    """Consent service names per platform and the cookie's dimension slot."""

    services: dict[Platform, str] = field(default_factory=dict)
    cookie_dimension: int | None = None

    def __post_init__(self) -> None:
        _validate_index("consent_cookie", self.cookie_dimension)

    def service_for(self, platform: Platform) -> str | None:
        return self.services.get(platform) or None


@dataclass(frozen=True)
class EventIdConfig:
    """How custom events obtain their conversion identifier."""

    source: EventIdSource = EventIdSource.EVENT_NAME
    custom_dimension: int | None = None

    def __post_init__(self) -> None:
        _validate_index("event_id", self.custom_dimension)
