"""
adsync Platforms - conversion dispatch to advertising APIs.

Provides:
- Typed per-site configuration built from raw settings
- Event category to platform vocabulary mapping
- Dispatchers for Meta, Google Ads and LinkedIn with partial-failure handling
- Google Ads OAuth token refresh

Usage:
    from adsync.platforms import SiteConfig, get_registry
    from adsync.visits import ConsentResolver, Platform

    site = SiteConfig.from_settings(1, settings)
    dispatcher = get_registry().create(Platform.META, consent=ConsentResolver())
    result = dispatcher.dispatch(hashed_visits, site)
"""

from adsync.platforms.adapters import GoogleAdsDispatcher, LinkedInDispatcher, MetaDispatcher
from adsync.platforms.auth import GoogleAuthService
from adsync.platforms.base import (
    BaseDispatcher,
    BatchOutcome,
    DispatchResult,
    DispatchStatus,
)
from adsync.platforms.config import (
    CanonicalEvent,
    EventConfig,
    GoogleAdsConfig,
    LinkedInConfig,
    MetaConfig,
    PlatformConfig,
    SiteConfig,
    SiteSettings,
)
from adsync.platforms.events import STANDARD_EVENT_NAMES, EventMapper
from adsync.platforms.exceptions import (
    AuthenticationError,
    DispatchError,
    MissingConfigurationError,
    TransportError,
)
from adsync.platforms.registry import DispatcherRegistry, get_registry

__all__ = [
    # Configuration
    "SiteConfig",
    "SiteSettings",
    "PlatformConfig",
    "MetaConfig",
    "GoogleAdsConfig",
    "LinkedInConfig",
    "EventConfig",
    "CanonicalEvent",
    # Event mapping
    "EventMapper",
    "STANDARD_EVENT_NAMES",
    # Dispatch
    "BaseDispatcher",
    "BatchOutcome",
    "DispatchResult",
    "DispatchStatus",
    "MetaDispatcher",
    "GoogleAdsDispatcher",
    "LinkedInDispatcher",
    "DispatcherRegistry",
    "get_registry",
    # Auth
    "GoogleAuthService",
    # Exceptions
    "DispatchError",
    "MissingConfigurationError",
    "TransportError",
    "AuthenticationError",
]
