"""Pytest fixtures for shared-pipeline tests."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from adsync.platforms import DispatchResult, DispatchStatus, SiteConfig
from adsync.visits import Platform, Visit

SITE_SETTINGS = {
    "meta_sync_visits": "1",
    "meta_pixel_id": "123456789",
    "meta_access_token": "EAAtesttoken",
    "google_sync_visits": "1",
    "google_ads_developer_token": "dev-token",
    "google_ads_client_id": "client.apps.googleusercontent.com",
    "google_ads_client_secret": "client-secret",
    "google_ads_refresh_token": "1//refresh-token",
    "google_ads_customer_id": "1234567890",
    "linkedin_sync_visits": "1",
    "linkedin_access_token": "li-token",
    "linkedin_ad_account_id": "urn:li:sponsoredAccount:5123456",
    "visit_dimension_email": "1",
    "visit_dimension_name": "2",
    "visit_dimension_phone": "3",
    "consent_cookie_dimension": "4",
    "consent_service_meta": "conversion-api",
    "consent_service_google": "google-ads",
    "consent_service_linkedin": "linkedin-insight",
    "google_conversion_action_lead": "987654",
    "linkedin_conversion_rule_lead": "112233",
}


@pytest.fixture
def site_settings():
    return dict(SITE_SETTINGS)


@pytest.fixture
def site_config(site_settings) -> SiteConfig:
    return SiteConfig.from_settings(1, site_settings)


@pytest.fixture
def visits(consented_visit_data, declined_visit_data) -> list[Visit]:
    return [Visit.from_dict(consented_visit_data), Visit.from_dict(declined_visit_data)]


@pytest.fixture
def visit_source(visits) -> MagicMock:
    source = MagicMock()
    source.fetch_visits.return_value = visits
    return source


def make_dispatcher(platform: Platform, succeeded: int = 0, **result_fields) -> MagicMock:
    """Mock dispatcher returning a DispatchResult for ``platform``."""
    dispatcher = MagicMock()
    dispatcher.dispatch.return_value = DispatchResult(
        platform=platform,
        site_id=1,
        started_at=datetime.now(UTC),
        completed_at=datetime.now(UTC),
        succeeded=succeeded,
        status=result_fields.pop("status", DispatchStatus.COMPLETED),
        **result_fields,
    )
    return dispatcher


@pytest.fixture
def dispatcher_factory():
    return make_dispatcher
