"""Base dispatcher abstract class."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

from adsync.platforms.config import CanonicalEvent, SiteConfig
from adsync.platforms.events import EventMapper
from adsync.platforms.exceptions import (
    DispatchError,
    MissingConfigurationError,
    TransportError,
)
from adsync.visits.config import Platform
from adsync.visits.consent import ConsentResolver, user_id_is_logged_in
from adsync.visits.schema import EnrichedVisit, ExpandedAction

logger = logging.getLogger(__name__)

# HTTP timeouts (in seconds)
API_TIMEOUT = httpx.Timeout(30.0, connect=10.0)  # 30s read, 10s connect

# Default number of events per bulk request
DEFAULT_BATCH_SIZE = 1000

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

DEFAULT_CURRENCY = "USD"


class DispatchStatus(str, Enum):
    """Outcome of dispatching one site's events to one platform."""

    COMPLETED = "completed"
    PARTIAL = "partial"  # Batch accepted, some events rejected
    SKIPPED = "skipped"  # Platform not configured
    FAILED = "failed"


@dataclass
class DispatchResult:
    """Result of dispatching conversion events to one platform."""

    platform: Platform
    site_id: int
    started_at: datetime
    completed_at: datetime | None = None
    status: DispatchStatus = DispatchStatus.COMPLETED

    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    partial_failures: list[dict[str, Any]] = field(default_factory=list)

    missing_fields: list[str] = field(default_factory=list)
    error: str | None = None
    retryable: bool = False

    @property
    def is_success(self) -> bool:
        return self.status in (DispatchStatus.COMPLETED, DispatchStatus.PARTIAL)

    @property
    def duration_seconds(self) -> float | None:
        """Return dispatch duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


@dataclass
class BatchOutcome:
    """What a platform reported for one submitted batch."""

    succeeded: int = 0
    failed: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)


def _chunks(items: list[dict[str, Any]], size: int) -> Iterator[list[dict[str, Any]]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def parse_amount(value: Any) -> float | None:
    """Parse a conversion value; None when missing or not numeric."""
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return response.reason_phrase


class BaseDispatcher(ABC):
    """Abstract base class for platform dispatchers.

    Subclasses must implement:
    - build_event(): Build one platform payload for an action
    - submit(): Send one batch and report what the platform accepted

    Subclasses must set the class attribute:
    - platform: The Platform enum value for this dispatcher

    Can be used as a context manager:
        with MetaDispatcher(consent) as dispatcher:
            result = dispatcher.dispatch(visits, site_config)
    """

    platform: Platform
    batch_size: int = DEFAULT_BATCH_SIZE

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Validate that subclasses define platform."""
        super().__init_subclass__(**kwargs)
        if ABC in cls.__bases__:
            return
        if not hasattr(cls, "platform") or cls.platform is None:
            raise TypeError(f"{cls.__name__} must define a 'platform' class attribute")

    def __init__(
        self,
        consent: ConsentResolver | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize dispatcher.

        Args:
            consent: Consent resolver for this run. Its salt keys pseudonymous ids.
            client: HTTP client to use. Created lazily when omitted.
        """
        self.consent = consent or ConsentResolver()
        self._client = client
        self._owns_client = client is None

    def __enter__(self) -> BaseDispatcher:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=API_TIMEOUT)
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    @abstractmethod
    def build_event(
        self,
        visit: EnrichedVisit,
        action: ExpandedAction,
        event: CanonicalEvent,
        mapper: EventMapper,
        consented: bool,
        site: SiteConfig,
    ) -> dict[str, Any] | None:
        """Build the platform payload for one action.

        Returns:
            The event payload, or None if the action cannot be sent to this platform.
        """
        pass  # pragma: no cover

    @abstractmethod
    def submit(self, batch: list[dict[str, Any]], site: SiteConfig) -> BatchOutcome:
        """Submit one batch of events.

        Raises:
            TransportError: On HTTP failure or a top-level API error.
        """
        pass  # pragma: no cover

    def prepare(self, site: SiteConfig) -> None:  # noqa: B027
        """Hook run once per dispatch before the first batch is submitted (e.g. token refresh)."""
        pass

    def dispatch(self, visits: list[EnrichedVisit], site: SiteConfig) -> DispatchResult:
        """Build and submit conversion events for all visits of a site.

        Missing configuration is reported as a SKIPPED result and transport
        failures as a FAILED result; neither raises.

        Args:
            visits: Hashed visits for the site.
            site: Site configuration.

        Returns:
            DispatchResult with per-event counts.
        """
        result = DispatchResult(
            platform=self.platform,
            site_id=site.site_id,
            started_at=datetime.now(UTC),
        )

        missing = site.platform_config(self.platform).missing_fields()
        if missing:
            return self._skip(result, MissingConfigurationError(self.platform, missing))

        events = self._build_events(visits, site, result)
        if not events:
            logger.info(f"No {self.platform.label} events to send for site {site.site_id}")
            result.completed_at = datetime.now(UTC)
            return result

        try:
            self.prepare(site)
        except MissingConfigurationError as e:
            return self._skip(result, e)
        except DispatchError as e:
            return self._fail(result, e, unsent=len(events))

        sent = 0
        for batch in _chunks(events, self.batch_size):
            try:
                outcome = self.submit(batch, site)
            except TransportError as e:
                return self._fail(result, e, unsent=len(events) - sent)
            sent += len(batch)
            result.succeeded += outcome.succeeded
            result.failed += outcome.failed
            if outcome.details:
                result.partial_failures.extend(outcome.details)

        if result.failed or result.partial_failures:
            result.status = DispatchStatus.PARTIAL
        result.completed_at = datetime.now(UTC)
        logger.info(
            f"{self.platform.label} dispatch for site {site.site_id}: "
            f"{result.succeeded} succeeded, {result.failed} failed, {result.skipped} skipped"
        )
        return result

    def _build_events(
        self,
        visits: list[EnrichedVisit],
        site: SiteConfig,
        result: DispatchResult,
    ) -> list[dict[str, Any]]:
        mapper = EventMapper(site.events)
        events: list[dict[str, Any]] = []

        for visit in visits:
            consented = self.consent.resolve(
                visit.visit.consent_cookie,
                self.platform,
                site.consent,
                user_id_is_logged_in(visit.raw.user_id),
            )
            for action in visit.actions:
                if not action.is_dispatchable:
                    logger.warning(
                        f"Dropping {action.action.kind.value} action without conversion id "
                        f"(visit {visit.raw.visit_id})"
                    )
                    result.skipped += 1
                    continue

                event = mapper.canonical_event_for(action.action)
                payload = None
                if event is not None:
                    payload = self.build_event(visit, action, event, mapper, consented, site)
                if payload is None:
                    result.skipped += 1
                    continue
                events.append(payload)

        return events

    def _skip(self, result: DispatchResult, error: MissingConfigurationError) -> DispatchResult:
        logger.warning(str(error))
        result.status = DispatchStatus.SKIPPED
        result.missing_fields = error.missing_fields
        result.error = str(error)
        result.completed_at = datetime.now(UTC)
        return result

    def _fail(self, result: DispatchResult, error: DispatchError, unsent: int) -> DispatchResult:
        logger.error(f"{self.platform.label} dispatch failed for site {result.site_id}: {error}")
        result.status = DispatchStatus.FAILED
        result.failed += unsent
        result.error = str(error)
        result.retryable = getattr(error, "retryable", False)
        result.completed_at = datetime.now(UTC)
        return result

    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST a JSON payload and return the decoded JSON body.

        Raises:
            TransportError: On timeout, connection failure, non-2xx status,
                or a body that is not a JSON object.
        """
        try:
            response = self.client.post(url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(
                f"{self.platform.label} API error ({status}): {_error_message(e.response)}",
                status_code=status,
                retryable=status in RETRYABLE_STATUS_CODES,
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(
                f"{self.platform.label} API connection timed out: {e}", retryable=True
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"{self.platform.label} API connection failed: {e}", retryable=True
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{self.platform.label} API returned malformed JSON",
                status_code=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise TransportError(
                f"{self.platform.label} API returned unexpected payload",
                status_code=response.status_code,
            )
        return body
