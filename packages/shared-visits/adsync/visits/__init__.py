"""
adsync Visits - retrieval and privacy enrichment of analytics visits.

Provides:
- Paginated visit retrieval for a site and time window
- Custom dimension to semantic field expansion
- Consent cookie parsing and per-platform consent decisions
- PII normalization and one-way hashing

Usage:
    from adsync.visits import (
        DimensionExpander,
        FieldHasher,
        FieldNormalizer,
        LiveApiClient,
        VisitSource,
    )

    source = VisitSource(LiveApiClient("https://analytics.example.com", token_auth="..."))
    visits = source.fetch_visits(site_id=1, start=start, end=end)

    expanded = DimensionExpander().expand(visits, dimensions, consent, event_ids)
    enriched = FieldHasher().hash_all(FieldNormalizer("31").normalize_all(expanded))
"""

from adsync.visits.config import (
    ACTION_FIELDS,
    VISIT_FIELDS,
    ConsentConfig,
    DimensionConfig,
    EventIdConfig,
    EventIdSource,
    Platform,
)
from adsync.visits.consent import ConsentResolver, parse_cookie, user_id_is_logged_in
from adsync.visits.exceptions import AdSyncError, ConfigurationError, VisitSourceError
from adsync.visits.expander import DimensionExpander
from adsync.visits.hasher import FieldHasher
from adsync.visits.normalizer import (
    ACCENT_TABLE,
    FieldNormalizer,
    format_address,
    format_birth_date,
    format_email,
    format_gender,
    format_name,
    format_phone,
)
from adsync.visits.schema import (
    Action,
    ActionKind,
    EnrichedVisit,
    ExpandedAction,
    ExpandedVisit,
    HashedFields,
    NormalizedFields,
    Visit,
    VisitFields,
)
from adsync.visits.source import LiveApiClient, VisitSource

__all__ = [
    # Schema
    "Visit",
    "Action",
    "ActionKind",
    "VisitFields",
    "ExpandedVisit",
    "ExpandedAction",
    "NormalizedFields",
    "HashedFields",
    "EnrichedVisit",
    # Configuration
    "Platform",
    "DimensionConfig",
    "ConsentConfig",
    "EventIdConfig",
    "EventIdSource",
    "VISIT_FIELDS",
    "ACTION_FIELDS",
    # Retrieval
    "VisitSource",
    "LiveApiClient",
    # Enrichment
    "DimensionExpander",
    "ConsentResolver",
    "parse_cookie",
    "user_id_is_logged_in",
    "FieldNormalizer",
    "FieldHasher",
    "ACCENT_TABLE",
    "format_email",
    "format_phone",
    "format_name",
    "format_address",
    "format_gender",
    "format_birth_date",
    # Exceptions
    "AdSyncError",
    "ConfigurationError",
    "VisitSourceError",
]
