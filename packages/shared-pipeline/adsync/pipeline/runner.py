"""Scheduled conversion sync across all sites."""

from __future__ import annotations

import logging
import os
import time
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from adsync.pipeline.orchestrator import (
    SiteOrchestrator,
    SiteResult,
    SiteStatus,
    is_retryable_message,
)
from adsync.platforms import SiteConfig
from adsync.visits import ConsentResolver, FieldHasher, VisitSource
from adsync.visits.source import AnalyticsClient

logger = logging.getLogger(__name__)

# Wall-clock bound for one scheduled run (in seconds)
MAX_EXECUTION_SECONDS = 600


class SettingsProvider(Protocol):
    """Read-only access to per-site key/value settings."""

    def get_site_settings(self, site_id: int) -> Mapping[str, Any]: ...


@dataclass
class Site:
    """A site to sync."""

    site_id: int
    name: str = ""
    timezone: str = "UTC"


@dataclass
class RunConfig:
    """Run-level configuration."""

    max_execution_seconds: float = MAX_EXECUTION_SECONDS
    page_size: int = 1000
    max_visits: int = 50_000
    hash_algorithm: str = "sha256"

    @classmethod
    def from_env(cls) -> RunConfig:
        """Load configuration from environment variables."""
        return cls(
            max_execution_seconds=float(
                os.getenv("ADSYNC_MAX_EXECUTION_SECONDS", str(MAX_EXECUTION_SECONDS))
            ),
            page_size=int(os.getenv("ADSYNC_PAGE_SIZE", "1000")),
            max_visits=int(os.getenv("ADSYNC_MAX_VISITS", "50000")),
            hash_algorithm=os.getenv("ADSYNC_HASH_ALGORITHM", "sha256"),
        )


@dataclass
class RunResult:
    """Result of one scheduled run over all sites."""

    run_id: str
    window_start: datetime
    window_end: datetime
    started_at: datetime
    completed_at: datetime | None = None
    site_results: list[SiteResult] = field(default_factory=list)
    aborted_site_ids: list[int] = field(default_factory=list)
    should_retry: bool = False

    @property
    def is_success(self) -> bool:
        """Return True if every site finished and none was aborted."""
        return not self.aborted_site_ids and all(r.is_success for r in self.site_results)

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def summary(self) -> dict[str, int]:
        """Counts for the caller's report."""
        return {
            "sites_processed": sum(1 for r in self.site_results if r.status is SiteStatus.COMPLETED),
            "sites_skipped": sum(1 for r in self.site_results if r.status is SiteStatus.SKIPPED),
            "sites_failed": sum(1 for r in self.site_results if r.status is SiteStatus.FAILED),
            "sites_aborted": len(self.aborted_site_ids),
            "visits_fetched": sum(r.visits_fetched for r in self.site_results),
            "events_sent": sum(r.events_sent for r in self.site_results),
            "events_failed": sum(r.events_failed for r in self.site_results),
        }


def previous_hour_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the last full hour before the current one.

    Visits are still open during the current hour, and the hour before it may
    still receive late actions, so the window lags by one hour.

    Example:
        >>> previous_hour_window(datetime(2025, 1, 15, 10, 25, tzinfo=UTC))
        (datetime.datetime(2025, 1, 15, 8, 0, tzinfo=datetime.timezone.utc), datetime.datetime(2025, 1, 15, 9, 0, tzinfo=datetime.timezone.utc))
    """
    now = now or datetime.now(UTC)
    end = now.replace(minute=0, second=0, microsecond=0) - timedelta(hours=1)
    return end - timedelta(hours=1), end


class SyncRunner:
    """Runs the orchestrator over every site, one site at a time.

    Each site's settings are loaded fresh. The elapsed time is checked before
    each site; once ``max_execution_seconds`` is exceeded the remaining sites
    are aborted and the site in progress is allowed to finish.

    Example:
        >>> runner = SyncRunner.from_config(settings_provider, LiveApiClient(url, token))
        >>> result = runner.run([Site(1, "Main site", "Europe/Amsterdam")])
        >>> result.should_retry
        False
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        orchestrator: SiteOrchestrator,
        config: RunConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings_provider = settings_provider
        self.orchestrator = orchestrator
        self.config = config or RunConfig()
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        settings_provider: SettingsProvider,
        analytics_client: AnalyticsClient,
        config: RunConfig | None = None,
    ) -> SyncRunner:
        """Wire a runner with the default pipeline stages."""
        config = config or RunConfig.from_env()
        orchestrator = SiteOrchestrator(
            visit_source=VisitSource(
                analytics_client,
                page_size=config.page_size,
                max_visits=config.max_visits,
            ),
            hasher=FieldHasher(config.hash_algorithm),
        )
        return cls(settings_provider, orchestrator, config)

    def run(
        self,
        sites: Iterable[Site],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> RunResult:
        """Sync every site for one window.

        Args:
            sites: Sites to process, in order.
            start: Window start. Defaults to the previous full hour.
            end: Window end.

        Returns:
            RunResult; ``should_retry`` is set if any failure looked transient.
        """
        if start is None or end is None:
            start, end = previous_hour_window()

        sites = list(sites)
        result = RunResult(
            run_id=uuid.uuid4().hex[:8],
            window_start=start,
            window_end=end,
            started_at=datetime.now(UTC),
        )
        consent = ConsentResolver()
        began = self._clock()
        logger.info(
            f"Run {result.run_id}: syncing {len(sites)} sites for "
            f"{start.isoformat()} - {end.isoformat()}"
        )

        for index, site in enumerate(sites):
            elapsed = self._clock() - began
            if elapsed > self.config.max_execution_seconds:
                result.aborted_site_ids = [s.site_id for s in sites[index:]]
                logger.warning(
                    f"Run {result.run_id} exceeded {self.config.max_execution_seconds:.0f}s "
                    f"after {elapsed:.0f}s; aborting {len(result.aborted_site_ids)} remaining sites"
                )
                break

            site_result = self._run_site(site, start, end, consent)
            result.site_results.append(site_result)
            if site_result.should_retry:
                result.should_retry = True

        result.completed_at = datetime.now(UTC)
        logger.info(f"Run {result.run_id} finished: {result.summary()}")
        return result

    def _run_site(
        self,
        site: Site,
        start: datetime,
        end: datetime,
        consent: ConsentResolver,
    ) -> SiteResult:
        try:
            settings = self.settings_provider.get_site_settings(site.site_id)
            site_config = SiteConfig.from_settings(site.site_id, settings, timezone=site.timezone)
            return self.orchestrator.run(site_config, start, end, consent=consent)
        except Exception as e:
            logger.exception(f"Error processing site {site.site_id}")
            now = datetime.now(UTC)
            return SiteResult(
                site_id=site.site_id,
                status=SiteStatus.FAILED,
                started_at=now,
                completed_at=now,
                errors=[str(e)],
                should_retry=is_retryable_message(str(e)),
            )
