"""Configuration models for platform dispatch.

One SiteConfig is built per site at the start of a run and passed to every
stage. Raw settings from the settings provider are validated once, here.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from adsync.visits.config import (
    ACTION_FIELDS,
    DEFAULT_PHONE_COUNTRY_CODE,
    VISIT_FIELDS,
    ConsentConfig,
    DimensionConfig,
    EventIdConfig,
    EventIdSource,
    Platform,
)
from adsync.visits.exceptions import ConfigurationError

DEFAULT_META_API_VERSION = "v22.0"
DEFAULT_GOOGLE_ADS_API_VERSION = "v19"
DEFAULT_LINKEDIN_API_VERSION = "202404"

LINKEDIN_ACCOUNT_URN = re.compile(r"^urn:li:sponsoredAccount:\d+$")


class CanonicalEvent(str, Enum):
    """Platform-neutral conversion event types."""

    LEAD = "lead"
    REGISTRATION = "registration"
    APPOINTMENT = "appointment"
    APPLICATION = "application"
    PAGE_VIEW = "page_view"
    PURCHASE = "purchase"


@dataclass(frozen=True)
class PlatformConfig:
    """Common behaviour for per-platform settings."""

    # (attribute, label) pairs that must be non-empty to dispatch
    required: ClassVar[tuple[tuple[str, str], ...]] = ()

    def missing_fields(self) -> list[str]:
        """Return labels of required settings that are empty."""
        return [label for attr, label in self.required if not getattr(self, attr)]

    @property
    def is_configured(self) -> bool:
        return not self.missing_fields()


@dataclass(frozen=True)
class MetaConfig(PlatformConfig):
    """Meta Conversions API settings."""

    required: ClassVar[tuple[tuple[str, str], ...]] = (
        ("pixel_id", "Pixel ID"),
        ("access_token", "Access Token"),
    )

    pixel_id: str | None = None
    access_token: str | None = field(default=None, repr=False)
    test_event_code: str | None = None
    api_version: str = DEFAULT_META_API_VERSION
    sync_enabled: bool = False


@dataclass(frozen=True)
class GoogleAdsConfig(PlatformConfig):
    """Google Ads API settings (customer ids without hyphens)."""

    required: ClassVar[tuple[tuple[str, str], ...]] = (
        ("developer_token", "Developer Token"),
        ("client_id", "Client ID"),
        ("client_secret", "Client Secret"),
        ("refresh_token", "Refresh Token"),
        ("customer_id", "Customer ID"),
    )

    developer_token: str | None = field(default=None, repr=False)
    client_id: str | None = None
    client_secret: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    customer_id: str | None = None
    login_customer_id: str | None = None
    api_version: str = DEFAULT_GOOGLE_ADS_API_VERSION
    sync_enabled: bool = False


@dataclass(frozen=True)
class LinkedInConfig(PlatformConfig):
    """LinkedIn Conversions API settings."""

    required: ClassVar[tuple[tuple[str, str], ...]] = (
        ("access_token", "Access Token"),
        ("ad_account_id", "Ad Account ID"),
    )

    access_token: str | None = field(default=None, repr=False)
    ad_account_id: str | None = None  # urn:li:sponsoredAccount:<n>
    api_version: str = DEFAULT_LINKEDIN_API_VERSION
    sync_enabled: bool = False


@dataclass(frozen=True)
class EventConfig:
    """Site event categories and platform conversion targets.

    ``category_names`` maps each canonical event to the site's own category
    string. A canonical event with no entry uses its own value.
    """

    category_names: dict[CanonicalEvent, str] = field(default_factory=dict)
    conversion_action_ids: dict[CanonicalEvent, str] = field(default_factory=dict)
    conversion_rule_ids: dict[CanonicalEvent, str] = field(default_factory=dict)

    def category_name(self, event: CanonicalEvent) -> str:
        return self.category_names.get(event) or event.value


@dataclass(frozen=True)
class SiteConfig:
    """Everything the pipeline needs to process one site.

    Example:
        config = SiteConfig.from_settings(1, {
            "meta_sync_visits": "1",
            "meta_pixel_id": "123456789",
            "meta_access_token": "EAAB...",
            "visit_dimension_email": "3",
            "consent_cookie_dimension": "5",
            "consent_service_meta": "conversion-api",
        })
    """

    site_id: int
    timezone: str = "UTC"
    dimensions: DimensionConfig = field(default_factory=DimensionConfig)
    consent: ConsentConfig = field(default_factory=ConsentConfig)
    event_ids: EventIdConfig = field(default_factory=EventIdConfig)
    events: EventConfig = field(default_factory=EventConfig)
    meta: MetaConfig = field(default_factory=MetaConfig)
    google: GoogleAdsConfig = field(default_factory=GoogleAdsConfig)
    linkedin: LinkedInConfig = field(default_factory=LinkedInConfig)

    def platform_config(self, platform: Platform) -> PlatformConfig:
        return {
            Platform.META: self.meta,
            Platform.GOOGLE: self.google,
            Platform.LINKEDIN: self.linkedin,
        }[platform]

    @property
    def enabled_platforms(self) -> list[Platform]:
        """Platforms whose sync flag is set, in dispatch order."""
        return [p for p in Platform if self.platform_config(p).sync_enabled]

    @property
    def is_enabled(self) -> bool:
        return bool(self.enabled_platforms)

    @classmethod
    def from_settings(
        cls,
        site_id: int,
        settings: Mapping[str, Any],
        timezone: str = "UTC",
    ) -> SiteConfig:
        """Build a SiteConfig from the settings provider's key/value bag.

        Raises:
            ConfigurationError: If a setting is present but invalid.
        """
        try:
            parsed = SiteSettings.model_validate(dict(settings))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings for site {site_id}: {e}") from e
        return parsed.to_site_config(site_id, timezone)


class SiteSettings(BaseModel):
    """Validated view of the raw per-site settings.

    Fixed keys are declared fields. Keyed families are read from the extra
    values: ``visit_dimension_<field>``, ``action_dimension_<field>``,
    ``consent_service_<platform>``, ``event_category_<event>``,
    ``google_conversion_action_<event>`` and ``linkedin_conversion_rule_<event>``.
    """

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    meta_pixel_id: str | None = None
    meta_access_token: str | None = None
    meta_test_event_code: str | None = None
    meta_graph_api_version: str | None = None
    meta_sync_visits: bool = False

    google_ads_developer_token: str | None = None
    google_ads_client_id: str | None = None
    google_ads_client_secret: str | None = None
    google_ads_refresh_token: str | None = None
    google_ads_customer_id: str | None = None
    google_ads_login_customer_id: str | None = None
    google_ads_api_version: str | None = None
    google_sync_visits: bool = False

    linkedin_access_token: str | None = None
    linkedin_ad_account_id: str | None = None
    linkedin_api_version: str | None = None
    linkedin_sync_visits: bool = False

    phone_country_code: str | None = None
    consent_cookie_dimension: int | None = None
    event_id_source: EventIdSource = EventIdSource.EVENT_NAME
    event_id_custom_dimension: int | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        # Settings stores may hand back ids as numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("meta_sync_visits", "google_sync_visits", "linkedin_sync_visits", mode="before")
    @classmethod
    def _unset_flag_is_false(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return False
        return value

    @field_validator("event_id_source", mode="before")
    @classmethod
    def _default_event_id_source(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return EventIdSource.EVENT_NAME
        return value

    @field_validator("meta_pixel_id")
    @classmethod
    def _pixel_id_digits(cls, value: str | None) -> str | None:
        if value is not None and not value.isdigit():
            raise ValueError("Meta Pixel ID must contain only digits")
        return value

    @field_validator("google_ads_customer_id", "google_ads_login_customer_id")
    @classmethod
    def _customer_id_digits(cls, value: str | None) -> str | None:
        if value is None:
            return None
        digits = value.replace("-", "")
        if not digits.isdigit():
            raise ValueError("Google Ads customer ids must be digits (hyphens allowed)")
        return digits

    @field_validator("linkedin_ad_account_id")
    @classmethod
    def _account_urn(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if value.isdigit():
            value = f"urn:li:sponsoredAccount:{value}"
        if not LINKEDIN_ACCOUNT_URN.match(value):
            raise ValueError("LinkedIn Ad Account ID must look like urn:li:sponsoredAccount:123")
        return value

    @field_validator("phone_country_code")
    @classmethod
    def _country_code_digits(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.lstrip("+")
        if not value.isdigit():
            raise ValueError("Phone country code must be digits")
        return value

    def _family(self, prefix: str, names: tuple[str, ...] | list[str]) -> dict[str, str]:
        extra = self.model_extra or {}
        values = {}
        for name in names:
            raw = extra.get(f"{prefix}{name}")
            if raw is None or str(raw).strip() == "":
                continue
            values[name] = str(raw).strip()
        return values

    def _indices(self, prefix: str, names: tuple[str, ...]) -> dict[str, int]:
        indices = {}
        for name, raw in self._family(prefix, names).items():
            try:
                indices[name] = int(raw)
            except ValueError as e:
                raise ConfigurationError(f"{prefix}{name} must be an integer, got '{raw}'") from e
        return indices

    def _events(self, prefix: str) -> dict[CanonicalEvent, str]:
        names = [event.value for event in CanonicalEvent]
        return {CanonicalEvent(name): value for name, value in self._family(prefix, names).items()}

    def to_site_config(self, site_id: int, timezone: str = "UTC") -> SiteConfig:
        """Convert validated settings into the typed SiteConfig aggregate."""
        services = {
            Platform(name): value
            for name, value in self._family("consent_service_", [p.value for p in Platform]).items()
        }
        return SiteConfig(
            site_id=site_id,
            timezone=timezone,
            dimensions=DimensionConfig(
                visit=self._indices("visit_dimension_", VISIT_FIELDS),
                action=self._indices("action_dimension_", ACTION_FIELDS),
                phone_country_code=self.phone_country_code or DEFAULT_PHONE_COUNTRY_CODE,
            ),
            consent=ConsentConfig(
                services=services,
                cookie_dimension=self.consent_cookie_dimension,
            ),
            event_ids=EventIdConfig(
                source=self.event_id_source,
                custom_dimension=self.event_id_custom_dimension,
            ),
            events=EventConfig(
                category_names=self._events("event_category_"),
                conversion_action_ids=self._events("google_conversion_action_"),
                conversion_rule_ids=self._events("linkedin_conversion_rule_"),
            ),
            meta=MetaConfig(
                pixel_id=self.meta_pixel_id,
                access_token=self.meta_access_token,
                test_event_code=self.meta_test_event_code,
                api_version=self.meta_graph_api_version or DEFAULT_META_API_VERSION,
                sync_enabled=self.meta_sync_visits,
            ),
            google=GoogleAdsConfig(
                developer_token=self.google_ads_developer_token,
                client_id=self.google_ads_client_id,
                client_secret=self.google_ads_client_secret,
                refresh_token=self.google_ads_refresh_token,
                customer_id=self.google_ads_customer_id,
                login_customer_id=self.google_ads_login_customer_id,
                api_version=self.google_ads_api_version or DEFAULT_GOOGLE_ADS_API_VERSION,
                sync_enabled=self.google_sync_visits,
            ),
            linkedin=LinkedInConfig(
                access_token=self.linkedin_access_token,
                ad_account_id=self.linkedin_ad_account_id,
                api_version=self.linkedin_api_version or DEFAULT_LINKEDIN_API_VERSION,
                sync_enabled=self.linkedin_sync_visits,
            ),
        )
