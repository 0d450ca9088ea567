"""Paginated retrieval of visits from the analytics query service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Protocol

import httpx

from adsync.visits.exceptions import VisitSourceError
from adsync.visits.schema import Visit

logger = logging.getLogger(__name__)

# Records requested per page from the analytics API
DEFAULT_PAGE_SIZE = 1000

# Hard stop for one site/window to bound memory and run time
DEFAULT_MAX_VISITS = 50_000

# HTTP timeouts (in seconds)
API_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class AnalyticsClient(Protocol):
    """Anything that can return one page of raw visit records."""

    def get_visits(
        self,
        site_id: int,
        start: datetime,
        end: datetime,
        limit: int,
        offset: int,
        segment: str | None = None,
    ) -> list[dict[str, Any]]: ...


class LiveApiClient:
    """Client for the analytics reporting API (``Live.getLastVisitsDetails``).

    The API's date filter is day-granular, so callers must still filter the
    returned visits to their exact window.

    Example:
        >>> client = LiveApiClient("https://analytics.example.com", token_auth="abc123")
        >>> page = client.get_visits(1, start, end, limit=1000, offset=0)
    """

    def __init__(
        self,
        base_url: str,
        token_auth: str,
        timeout: httpx.Timeout = API_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_auth = token_auth
        self._timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(base_url=self.base_url, timeout=self._timeout)
        return self._client

    def get_visits(
        self,
        site_id: int,
        start: datetime,
        end: datetime,
        limit: int,
        offset: int,
        segment: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch one page of visits.

        Raises:
            VisitSourceError: On HTTP failure or an API error payload.
        """
        params: dict[str, Any] = {
            "module": "API",
            "method": "Live.getLastVisitsDetails",
            "idSite": site_id,
            "period": "range",
            "date": f"{start:%Y-%m-%d},{end:%Y-%m-%d}",
            "format": "JSON",
            "filter_limit": limit,
            "filter_offset": offset,
        }
        if segment:
            params["segment"] = segment

        try:
            response = self.client.post(
                "/index.php",
                params=params,
                data={"token_auth": self._token_auth},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise VisitSourceError(f"Failed to fetch visits for site {site_id}: {e}") from e

        if isinstance(payload, dict) and payload.get("result") == "error":
            raise VisitSourceError(
                f"Analytics API error for site {site_id}: {payload.get('message', 'unknown error')}"
            )
        if not isinstance(payload, list):
            raise VisitSourceError(f"Unexpected analytics response for site {site_id}")
        return payload

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None


class VisitSource:
    """Pages through the analytics API and filters visits to a time window."""

    def __init__(
        self,
        client: AnalyticsClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_visits: int = DEFAULT_MAX_VISITS,
    ):
        if page_size < 1 or max_visits < 1:
            raise ValueError("page_size and max_visits must be positive")
        self.client = client
        self.page_size = page_size
        self.max_visits = max_visits

    def fetch_visits(self, site_id: int, start: datetime, end: datetime) -> list[Visit]:
        """Fetch visits whose last action falls in ``[start, end)``.

        Args:
            site_id: Analytics site id.
            start: Window start (inclusive), timezone-aware.
            end: Window end (exclusive), timezone-aware.

        Returns:
            Visits in the window, at most ``max_visits`` records.
        """
        start_ts, end_ts = int(start.timestamp()), int(end.timestamp())

        def in_window(visit: Visit) -> bool:
            ts = visit.activity_timestamp
            return ts is not None and start_ts <= ts < end_ts

        visits = self._paginate(site_id, start, end, in_window)
        logger.info(
            f"Fetched {len(visits)} visits for site {site_id} "
            f"between {start.isoformat()} and {end.isoformat()}"
        )
        return visits

    def fetch_visits_by_server_hour(
        self,
        site_id: int,
        day: date,
        first_hour: int,
    ) -> list[Visit]:
        """Fetch visits of ``day`` that started at or after ``first_hour`` (server time)."""
        if not 0 <= first_hour <= 23:
            raise ValueError(f"first_hour must be between 0 and 23, got {first_hour}")

        start = datetime.combine(day, time(0), tzinfo=UTC)
        end = start + timedelta(days=1)
        threshold = int((start + timedelta(hours=first_hour)).timestamp())

        def after_hour(visit: Visit) -> bool:
            ts = visit.first_action_timestamp
            return ts is not None and ts >= threshold

        return self._paginate(
            site_id,
            start,
            end,
            after_hour,
            segment=f"visitStartServerHour>={first_hour}",
        )

    def _paginate(
        self,
        site_id: int,
        start: datetime,
        end: datetime,
        keep: Callable[[Visit], bool],
        segment: str | None = None,
    ) -> list[Visit]:
        visits: list[Visit] = []
        fetched = 0

        while True:
            if fetched >= self.max_visits:
                logger.warning(
                    f"Reached safety cap of {self.max_visits} visits for site {site_id}; "
                    f"remaining visits in the window are not processed"
                )
                break

            limit = min(self.page_size, self.max_visits - fetched)
            batch = self._fetch_batch(site_id, start, end, limit, fetched, segment)
            if not batch:
                break
            fetched += len(batch)

            for record in batch:
                try:
                    visit = Visit.from_dict(record)
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning(f"Skipping malformed visit record for site {site_id}: {e}")
                    continue
                if keep(visit):
                    visits.append(visit)

        return visits

    def _fetch_batch(
        self,
        site_id: int,
        start: datetime,
        end: datetime,
        limit: int,
        offset: int,
        segment: str | None,
    ) -> list[dict[str, Any]]:
        try:
            return self.client.get_visits(site_id, start, end, limit, offset, segment=segment)
        except Exception as e:
            logger.error(f"Error fetching visit batch for site {site_id} at offset {offset}: {e}")
            return []
