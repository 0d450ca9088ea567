"""Shared pytest fixtures for adsync packages."""

from datetime import UTC, datetime

import pytest

from adsync.visits import ConsentConfig, DimensionConfig, EventIdConfig, Platform

# 2025-01-15 10:00:00 UTC
WINDOW_START_TS = 1736935200


@pytest.fixture
def window():
    """One-hour sync window, 10:00 to 11:00 UTC on 2025-01-15."""
    return (
        datetime(2025, 1, 15, 10, 0, tzinfo=UTC),
        datetime(2025, 1, 15, 11, 0, tzinfo=UTC),
    )


@pytest.fixture
def consented_visit_data():
    """Raw analytics visit of a consenting visitor who submitted a lead form."""
    return {
        "idVisit": 1001,
        "visitorId": "a1b2c3d4e5f6a7b8",
        "userId": None,
        "visitIp": "203.0.113.7",
        "userAgent": "Mozilla/5.0 (X11; Linux x86_64)",
        "city": "Amsterdam",
        "regionCode": "NH",
        "countryCode": "nl",
        "firstActionTimestamp": WINDOW_START_TS + 60,
        "lastActionTimestamp": WINDOW_START_TS + 600,
        "dimension1": " Jane@Example.com ",
        "dimension2": "Jane de Vries",
        "dimension3": "06-12345678",
        "dimension4": '{"conversion-api": true, "google-ads": true, "linkedin-insight": true}',
        "actionDetails": [
            {
                "type": "action",
                "url": "https://example.com/contact",
                "idpageview": "pv0001",
                "timestamp": WINDOW_START_TS + 60,
            },
            {
                "type": "event",
                "url": "https://example.com/contact",
                "eventCategory": "lead",
                "eventName": "contact-form",
                "timestamp": WINDOW_START_TS + 300,
                "dimension6": "49.95",
                "dimension7": "EUR",
            },
            {
                "type": "goal",
                "timestamp": WINDOW_START_TS + 301,
            },
        ],
    }


@pytest.fixture
def declined_visit_data():
    """Raw analytics visit of a visitor who declined conversion tracking."""
    return {
        "idVisit": 1002,
        "visitorId": "ffeeddccbbaa9988",
        "visitIp": "198.51.100.23",
        "userAgent": "Mozilla/5.0 (Macintosh)",
        "city": "Utrecht",
        "regionCode": "UT",
        "countryCode": "nl",
        "firstActionTimestamp": WINDOW_START_TS + 900,
        "lastActionTimestamp": WINDOW_START_TS + 1200,
        "dimension1": "bob@example.com",
        "dimension2": "Bob Jansen",
        "dimension3": "+31 6 87654321",
        "dimension4": '{"conversion-api": false, "google-ads": false, "linkedin-insight": false}',
        "actionDetails": [
            {
                "type": "event",
                "url": "https://example.com/apply",
                "eventCategory": "application",
                "eventName": "job-apply",
                "timestamp": WINDOW_START_TS + 1000,
            },
        ],
    }


@pytest.fixture
def dimension_config():
    """Field mapping matching the sample visits."""
    return DimensionConfig(
        visit={"email": 1, "name": 2, "phone": 3},
        action={"value": 6, "currency": 7},
    )


@pytest.fixture
def consent_config():
    """Consent services matching the sample visits' cookies."""
    return ConsentConfig(
        services={
            Platform.META: "conversion-api",
            Platform.GOOGLE: "google-ads",
            Platform.LINKEDIN: "linkedin-insight",
        },
        cookie_dimension=4,
    )


@pytest.fixture
def event_id_config():
    return EventIdConfig()
