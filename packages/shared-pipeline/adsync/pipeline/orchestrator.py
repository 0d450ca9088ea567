"""Per-site conversion sync orchestrator.

Runs one site through the pipeline for one time window:
fetch visits, expand dimensions, normalize and hash PII, then dispatch to
every enabled platform. A failure on one platform never stops the others.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from adsync.platforms import (
    BaseDispatcher,
    DispatcherRegistry,
    DispatchResult,
    DispatchStatus,
    MissingConfigurationError,
    SiteConfig,
    TransportError,
    get_registry,
)
from adsync.visits import (
    ConsentResolver,
    DimensionExpander,
    EnrichedVisit,
    FieldHasher,
    FieldNormalizer,
    Platform,
    VisitSource,
)

logger = logging.getLogger(__name__)

# Error text that suggests the whole run is worth retrying later
RETRYABLE_PATTERN = re.compile(
    r"rate.?limit|too many requests|connection|timed? ?out",
    re.IGNORECASE,
)


def is_retryable_message(message: str | None) -> bool:
    """Return True if an error message looks like rate limiting or connectivity."""
    return bool(message) and RETRYABLE_PATTERN.search(message) is not None


class SiteStatus(str, Enum):
    """Status of one site's sync."""

    PENDING = "pending"
    FETCHING = "fetching"
    EXPANDING = "expanding"
    NORMALIZING = "normalizing"
    HASHING = "hashing"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"
    SKIPPED = "skipped"  # No platform enabled
    FAILED = "failed"


@dataclass
class SiteResult:
    """Result of syncing one site."""

    site_id: int
    status: SiteStatus = SiteStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    visits_fetched: int = 0
    dispatch_results: dict[Platform, DispatchResult] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    should_retry: bool = False

    @property
    def is_success(self) -> bool:
        """Return True if the site finished; platform issues are in ``errors``."""
        return self.status in (SiteStatus.COMPLETED, SiteStatus.SKIPPED)

    @property
    def events_sent(self) -> int:
        return sum(r.succeeded for r in self.dispatch_results.values())

    @property
    def events_failed(self) -> int:
        return sum(r.failed for r in self.dispatch_results.values())

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class SiteOrchestrator:
    """Sequences the pipeline stages for one site.

    Dispatchers come from the registry (a Platform to class map) unless a
    ``dispatchers`` mapping is given.

    Example:
        >>> orchestrator = SiteOrchestrator(VisitSource(LiveApiClient(url, token)))
        >>> result = orchestrator.run(site_config, start, end)
        >>> result.events_sent
    """

    def __init__(
        self,
        visit_source: VisitSource,
        expander: DimensionExpander | None = None,
        hasher: FieldHasher | None = None,
        registry: DispatcherRegistry | None = None,
        dispatchers: Mapping[Platform, BaseDispatcher] | None = None,
    ):
        self.visit_source = visit_source
        self.expander = expander or DimensionExpander()
        self.hasher = hasher or FieldHasher()
        self.registry = registry or get_registry()
        self.dispatchers = dict(dispatchers or {})

    def run(
        self,
        site: SiteConfig,
        start: datetime,
        end: datetime,
        consent: ConsentResolver | None = None,
    ) -> SiteResult:
        """Sync one site for the window ``[start, end)``.

        Args:
            site: Site configuration, built fresh for this run.
            start: Window start (inclusive).
            end: Window end (exclusive).
            consent: Run-scoped consent resolver. A new one is created if omitted.

        Returns:
            SiteResult. Stage failures are recorded, never raised.
        """
        result = SiteResult(site_id=site.site_id, started_at=datetime.now(UTC))
        consent = consent or ConsentResolver()

        if not site.is_enabled:
            logger.info(f"No platform enabled for site {site.site_id}; skipping")
            result.status = SiteStatus.SKIPPED
            result.completed_at = datetime.now(UTC)
            return result

        try:
            result.status = SiteStatus.FETCHING
            visits = self.visit_source.fetch_visits(site.site_id, start, end)
            result.visits_fetched = len(visits)
            if not visits:
                logger.info(f"No visits for site {site.site_id} in window")
                result.status = SiteStatus.COMPLETED
                result.completed_at = datetime.now(UTC)
                return result

            result.status = SiteStatus.EXPANDING
            expanded = self.expander.expand(visits, site.dimensions, site.consent, site.event_ids)

            result.status = SiteStatus.NORMALIZING
            normalized = FieldNormalizer(site.dimensions.phone_country_code).normalize_all(expanded)

            result.status = SiteStatus.HASHING
            hashed = self.hasher.hash_all(normalized)

            result.status = SiteStatus.DISPATCHING
            for platform in site.enabled_platforms:
                self._dispatch(platform, hashed, site, consent, result)

            result.status = SiteStatus.COMPLETED
            logger.info(
                f"Site {site.site_id} synced: {result.visits_fetched} visits, "
                f"{result.events_sent} events sent"
            )
        except Exception as e:
            failed_stage = result.status.value
            result.status = SiteStatus.FAILED
            result.errors.append(f"{failed_stage}: {e}")
            if is_retryable_message(str(e)):
                result.should_retry = True
            logger.exception(f"Sync failed for site {site.site_id} while {failed_stage}")

        result.completed_at = datetime.now(UTC)
        return result

    def _dispatch(
        self,
        platform: Platform,
        visits: list[EnrichedVisit],
        site: SiteConfig,
        consent: ConsentResolver,
        result: SiteResult,
    ) -> None:
        dispatcher = self.dispatchers.get(platform)
        owned = dispatcher is None

        try:
            if dispatcher is None:
                dispatcher = self.registry.create(platform, consent=consent)
            outcome = dispatcher.dispatch(visits, site)
        except MissingConfigurationError as e:
            logger.warning(str(e))
            result.errors.append(str(e))
            return
        except TransportError as e:
            logger.error(f"{platform.label} transport error for site {site.site_id}: {e}")
            result.errors.append(f"{platform.label}: {e}")
            if e.retryable or is_retryable_message(str(e)):
                result.should_retry = True
            return
        except Exception as e:
            logger.exception(f"{platform.label} dispatch failed for site {site.site_id}")
            result.errors.append(f"{platform.label}: {e}")
            if is_retryable_message(str(e)):
                result.should_retry = True
            return
        finally:
            if owned and dispatcher is not None:
                dispatcher.close()

        result.dispatch_results[platform] = outcome
        if outcome.status is DispatchStatus.SKIPPED:
            result.errors.append(outcome.error or f"{platform.label}: not configured")
        elif outcome.status is DispatchStatus.FAILED:
            result.errors.append(f"{platform.label}: {outcome.error}")
            if outcome.retryable or is_retryable_message(outcome.error):
                result.should_retry = True
