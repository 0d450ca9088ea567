"""Tests for VisitSource and LiveApiClient."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from unittest.mock import MagicMock

import httpx
import pytest
from adsync.visits.exceptions import VisitSourceError
from adsync.visits.source import LiveApiClient, VisitSource

BASE_TS = 1736935200  # 2025-01-15 10:00:00 UTC


def make_record(visit_id: int, ts: int = BASE_TS + 60) -> dict:
    return {
        "idVisit": visit_id,
        "firstActionTimestamp": ts,
        "lastActionTimestamp": ts,
        "actionDetails": [],
    }


class PagedClient:
    """Analytics client serving records page by page."""

    def __init__(self, records: list[dict]):
        self.records = records
        self.calls: list[dict] = []

    def get_visits(self, site_id, start, end, limit, offset, segment=None):
        self.calls.append({"limit": limit, "offset": offset, "segment": segment})
        return self.records[offset : offset + limit]


class TestVisitSource:
    """Tests for VisitSource pagination and filtering."""

    def test_fetch_single_page(self, window):
        """Test a window smaller than one page needs two calls."""
        client = PagedClient([make_record(i) for i in range(3)])
        source = VisitSource(client, page_size=10)

        visits = source.fetch_visits(1, *window)

        assert [v.visit_id for v in visits] == ["0", "1", "2"]
        assert [c["offset"] for c in client.calls] == [0, 3]

    def test_fetch_multiple_pages(self, window):
        """Test pages are requested until an empty batch."""
        client = PagedClient([make_record(i) for i in range(25)])
        source = VisitSource(client, page_size=10)

        visits = source.fetch_visits(1, *window)

        assert len(visits) == 25
        assert [c["offset"] for c in client.calls] == [0, 10, 20, 25]

    def test_safety_cap(self, window, caplog):
        """Test fetching stops at max_visits with a warning."""
        client = PagedClient([make_record(i) for i in range(100)])
        source = VisitSource(client, page_size=10, max_visits=25)

        with caplog.at_level(logging.WARNING):
            visits = source.fetch_visits(1, *window)

        assert len(visits) == 25
        assert [c["limit"] for c in client.calls] == [10, 10, 5]
        assert "safety cap of 25" in caplog.text

    def test_window_filter(self, window):
        """Test visits outside [start, end) are dropped."""
        end_ts = int(window[1].timestamp())
        client = PagedClient(
            [
                make_record(1, BASE_TS - 1),
                make_record(2, BASE_TS),
                make_record(3, end_ts - 1),
                make_record(4, end_ts),
                {"idVisit": 5},
            ]
        )
        source = VisitSource(client)

        visits = source.fetch_visits(1, *window)

        assert [v.visit_id for v in visits] == ["2", "3"]

    def test_malformed_records_skipped(self, window, caplog):
        client = PagedClient([{"visitorId": "no-id"}, make_record(7)])
        source = VisitSource(client)

        with caplog.at_level(logging.WARNING):
            visits = source.fetch_visits(1, *window)

        assert [v.visit_id for v in visits] == ["7"]
        assert "Skipping malformed visit record" in caplog.text

    def test_batch_error_stops_pagination(self, window, caplog):
        """Test a failing batch ends the fetch with what was retrieved."""
        client = MagicMock()
        client.get_visits.side_effect = [
            [make_record(1), make_record(2)],
            VisitSourceError("connection reset"),
        ]
        source = VisitSource(client, page_size=2)

        with caplog.at_level(logging.ERROR):
            visits = source.fetch_visits(1, *window)

        assert len(visits) == 2
        assert client.get_visits.call_count == 2
        assert "connection reset" in caplog.text

    def test_fetch_by_server_hour(self):
        """Test segment is sent and visits before the hour are dropped."""
        day_start = int(datetime(2025, 1, 15, tzinfo=UTC).timestamp())
        client = PagedClient(
            [
                make_record(1, day_start + 13 * 3600),
                make_record(2, day_start + 14 * 3600),
                make_record(3, day_start + 20 * 3600),
            ]
        )
        source = VisitSource(client)

        visits = source.fetch_visits_by_server_hour(1, date(2025, 1, 15), 14)

        assert [v.visit_id for v in visits] == ["2", "3"]
        assert client.calls[0]["segment"] == "visitStartServerHour>=14"

    def test_fetch_by_server_hour_rejects_bad_hour(self):
        source = VisitSource(PagedClient([]))
        with pytest.raises(ValueError):
            source.fetch_visits_by_server_hour(1, date(2025, 1, 15), 24)

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            VisitSource(PagedClient([]), page_size=0)


class TestLiveApiClient:
    """Tests for LiveApiClient."""

    def test_get_visits_request(self, window):
        """Test query parameters and token are sent correctly."""
        mock_response = MagicMock()
        mock_response.json.return_value = [make_record(1)]
        mock_http = MagicMock()
        mock_http.post.return_value = mock_response

        client = LiveApiClient("https://analytics.example.com/", token_auth="secret")
        client._client = mock_http

        page = client.get_visits(3, *window, limit=100, offset=200, segment="visitStartServerHour>=4")

        assert page == [make_record(1)]
        args, kwargs = mock_http.post.call_args
        assert args == ("/index.php",)
        assert kwargs["data"] == {"token_auth": "secret"}
        params = kwargs["params"]
        assert params["method"] == "Live.getLastVisitsDetails"
        assert params["idSite"] == 3
        assert params["date"] == "2025-01-15,2025-01-15"
        assert params["filter_limit"] == 100
        assert params["filter_offset"] == 200
        assert params["segment"] == "visitStartServerHour>=4"

    def test_api_error_payload(self, window):
        mock_response = MagicMock()
        mock_response.json.return_value = {"result": "error", "message": "token invalid"}
        mock_http = MagicMock()
        mock_http.post.return_value = mock_response

        client = LiveApiClient("https://analytics.example.com", token_auth="bad")
        client._client = mock_http

        with pytest.raises(VisitSourceError, match="token invalid"):
            client.get_visits(1, *window, limit=10, offset=0)

    def test_http_error(self, window):
        mock_http = MagicMock()
        mock_http.post.side_effect = httpx.ConnectError("refused")

        client = LiveApiClient("https://analytics.example.com", token_auth="t")
        client._client = mock_http

        with pytest.raises(VisitSourceError, match="refused"):
            client.get_visits(1, *window, limit=10, offset=0)

    def test_close(self):
        mock_http = MagicMock()
        client = LiveApiClient("https://analytics.example.com", token_auth="t")
        client._client = mock_http

        client.close()

        mock_http.close.assert_called_once()
        assert client._client is None
