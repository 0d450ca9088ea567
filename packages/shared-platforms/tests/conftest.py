"""Pytest fixtures for shared-platforms tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest
from adsync.platforms.config import SiteConfig
from adsync.platforms.registry import DispatcherRegistry
from adsync.visits import (
    ConsentResolver,
    DimensionExpander,
    EnrichedVisit,
    FieldHasher,
    FieldNormalizer,
    Visit,
)


@pytest.fixture
def site_settings() -> dict[str, Any]:
    """Raw settings with every platform enabled and fully configured."""
    return {
        "meta_sync_visits": "1",
        "meta_pixel_id": "123456789",
        "meta_access_token": "EAAtesttoken",
        "google_sync_visits": "1",
        "google_ads_developer_token": "dev-token",
        "google_ads_client_id": "client.apps.googleusercontent.com",
        "google_ads_client_secret": "client-secret",
        "google_ads_refresh_token": "1//refresh-token",
        "google_ads_customer_id": "123-456-7890",
        "google_ads_login_customer_id": "111-222-3333",
        "linkedin_sync_visits": "1",
        "linkedin_access_token": "li-token",
        "linkedin_ad_account_id": "5123456",
        "visit_dimension_email": "1",
        "visit_dimension_name": "2",
        "visit_dimension_phone": "3",
        "action_dimension_value": "6",
        "action_dimension_currency": "7",
        "consent_cookie_dimension": "4",
        "consent_service_meta": "conversion-api",
        "consent_service_google": "google-ads",
        "consent_service_linkedin": "linkedin-insight",
        "google_conversion_action_lead": "987654",
        "google_conversion_action_page_view": "987650",
        "linkedin_conversion_rule_lead": "112233",
    }


@pytest.fixture
def site_config(site_settings) -> SiteConfig:
    return SiteConfig.from_settings(1, site_settings, timezone="Europe/Amsterdam")


@pytest.fixture
def consent() -> ConsentResolver:
    return ConsentResolver(salt="test-salt")


@pytest.fixture
def hashed_visits(site_config, consented_visit_data, declined_visit_data) -> list[EnrichedVisit]:
    """The sample visits run through expansion, normalization and hashing."""
    visits = [Visit.from_dict(consented_visit_data), Visit.from_dict(declined_visit_data)]
    expanded = DimensionExpander().expand(
        visits, site_config.dimensions, site_config.consent, site_config.event_ids
    )
    normalized = FieldNormalizer(site_config.dimensions.phone_country_code).normalize_all(expanded)
    return FieldHasher().hash_all(normalized)


@pytest.fixture
def http_client() -> Callable[..., MagicMock]:
    """Factory for a mock httpx client whose POSTs return the given JSON bodies."""

    def factory(*bodies: dict[str, Any]) -> MagicMock:
        responses = []
        for body in bodies:
            response = MagicMock()
            response.status_code = 200
            response.json.return_value = body
            responses.append(response)
        client = MagicMock()
        client.post.side_effect = responses
        return client

    return factory


@pytest.fixture
def fresh_registry():
    """Provide a clean registry, restoring the global one afterwards."""
    original = DispatcherRegistry._instance
    DispatcherRegistry._instance = None
    registry = DispatcherRegistry()
    yield registry
    DispatcherRegistry._instance = original
