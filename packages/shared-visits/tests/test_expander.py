"""Tests for DimensionExpander."""

from __future__ import annotations

import logging
from unittest.mock import patch

from adsync.visits.config import (
    VISIT_FIELDS,
    ConsentConfig,
    DimensionConfig,
    EventIdConfig,
    EventIdSource,
)
from adsync.visits.expander import DimensionExpander
from adsync.visits.schema import ActionKind, ExpandedVisit, Visit


def expand_one(visit_data, dimension_config, consent_config, event_id_config) -> ExpandedVisit:
    visit = Visit.from_dict(visit_data)
    return DimensionExpander().expand([visit], dimension_config, consent_config, event_id_config)[0]


class TestDimensionExpander:
    """Tests for dimension to field expansion."""

    def test_mapped_fields(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        """Test mapped dimensions populate the semantic fields."""
        expanded = expand_one(consented_visit_data, dimension_config, consent_config, event_id_config)

        assert expanded.fields.email == "Jane@Example.com"
        assert expanded.fields.name == "Jane de Vries"
        assert expanded.fields.phone == "06-12345678"

    def test_unmapped_fields_are_none(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        """Test every semantic field exists and unmapped ones are None."""
        expanded = expand_one(consented_visit_data, dimension_config, consent_config, event_id_config)
        fields = expanded.fields.to_dict()

        assert set(fields) == set(VISIT_FIELDS)
        assert fields["gender"] is None
        assert fields["birth_date"] is None
        assert fields["gclid"] is None

    def test_location_fallback(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        """Test unmapped location fields fall back to the visit attributes."""
        expanded = expand_one(consented_visit_data, dimension_config, consent_config, event_id_config)

        assert expanded.fields.city == "Amsterdam"
        assert expanded.fields.region == "NH"
        assert expanded.fields.country_code == "nl"
        assert expanded.fields.user_agent == "Mozilla/5.0 (X11; Linux x86_64)"

    def test_mapped_location_wins(self, consented_visit_data, consent_config, event_id_config):
        consented_visit_data["dimension9"] = "Haarlem"
        config = DimensionConfig(visit={"city": 9})

        expanded = expand_one(consented_visit_data, config, consent_config, event_id_config)

        assert expanded.fields.city == "Haarlem"

    def test_mapped_dimension_missing_on_visit(self, consented_visit_data, consent_config, event_id_config):
        config = DimensionConfig(visit={"gclid": 12})

        expanded = expand_one(consented_visit_data, config, consent_config, event_id_config)

        assert expanded.fields.gclid is None

    def test_consent_cookie(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        expanded = expand_one(consented_visit_data, dimension_config, consent_config, event_id_config)
        assert expanded.consent_cookie.startswith('{"conversion-api": true')

    def test_no_cookie_dimension(self, consented_visit_data, dimension_config, event_id_config):
        expanded = expand_one(consented_visit_data, dimension_config, ConsentConfig(), event_id_config)
        assert expanded.consent_cookie is None

    def test_action_fields(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        """Test action-scope value and currency are read from action dimensions."""
        expanded = expand_one(consented_visit_data, dimension_config, consent_config, event_id_config)
        event = expanded.actions[1]

        assert event.action.kind is ActionKind.CUSTOM_EVENT
        assert event.value == "49.95"
        assert event.currency == "EUR"
        assert expanded.actions[0].value is None

    def test_conversion_ids(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        """Test page views use the page view id and events the event name."""
        expanded = expand_one(consented_visit_data, dimension_config, consent_config, event_id_config)

        assert [a.conversion_id for a in expanded.actions] == ["pv0001", "contact-form"]

    def test_conversion_id_from_custom_dimension(self, consented_visit_data, dimension_config, consent_config):
        consented_visit_data["actionDetails"][1]["dimension8"] = "evt-778"
        config = EventIdConfig(source=EventIdSource.CUSTOM_DIMENSION, custom_dimension=8)

        expanded = expand_one(consented_visit_data, dimension_config, consent_config, config)

        assert expanded.actions[1].conversion_id == "evt-778"

    def test_custom_dimension_missing(self, consented_visit_data, dimension_config, consent_config, caplog):
        """Test a missing event id dimension leaves the action undispatchable."""
        config = EventIdConfig(source=EventIdSource.CUSTOM_DIMENSION, custom_dimension=8)

        with caplog.at_level(logging.WARNING):
            expanded = expand_one(consented_visit_data, dimension_config, consent_config, config)

        assert not expanded.actions[1].is_dispatchable
        assert "dimension8" in caplog.text

    def test_custom_dimension_unconfigured(self, consented_visit_data, dimension_config, consent_config, caplog):
        config = EventIdConfig(source=EventIdSource.CUSTOM_DIMENSION)

        with caplog.at_level(logging.WARNING):
            expanded = expand_one(consented_visit_data, dimension_config, consent_config, config)

        assert expanded.actions[1].conversion_id is None
        assert "no dimension is configured" in caplog.text

    def test_order_value_defaults_to_revenue(self, dimension_config, consent_config, event_id_config):
        """Test an order without a value dimension uses its revenue."""
        visit_data = {
            "idVisit": 5,
            "actionDetails": [
                {"type": "ecommerceOrder", "orderId": "ORD-1", "revenue": 89.9, "timestamp": 1},
            ],
        }

        expanded = expand_one(visit_data, dimension_config, consent_config, event_id_config)

        assert expanded.actions[0].conversion_id == "ORD-1"
        assert expanded.actions[0].value == "89.9"

    def test_failure_returns_unexpanded(self, consented_visit_data, declined_visit_data, dimension_config, consent_config, event_id_config, caplog):
        """Test an expansion error falls back to unexpanded visits."""
        visits = [Visit.from_dict(consented_visit_data), Visit.from_dict(declined_visit_data)]
        expander = DimensionExpander()

        with patch.object(expander, "expand_visit", side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.ERROR):
                expanded = expander.expand(visits, dimension_config, consent_config, event_id_config)

        assert [e.visit for e in expanded] == visits
        assert all(e.fields.email is None for e in expanded)
        assert "Dimension expansion failed" in caplog.text

    def test_raw_visit_unchanged(self, consented_visit_data, dimension_config, consent_config, event_id_config):
        visit = Visit.from_dict(consented_visit_data)
        before = dict(visit.dimensions)

        DimensionExpander().expand([visit], dimension_config, consent_config, event_id_config)

        assert visit.dimensions == before
