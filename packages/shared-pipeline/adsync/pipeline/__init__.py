"""
adsync Pipeline - scheduled conversion sync.

Provides:
- Per-site orchestration: fetch, expand, normalize, hash, dispatch
- Per-platform failure isolation with retry detection
- A time-bounded runner over all sites

Usage:
    from adsync.pipeline import Site, SyncRunner
    from adsync.visits import LiveApiClient

    runner = SyncRunner.from_config(settings_provider, LiveApiClient(url, token))
    result = runner.run([Site(1, "Main site", "Europe/Amsterdam")])
    print(result.summary())
"""

from adsync.pipeline.orchestrator import (
    SiteOrchestrator,
    SiteResult,
    SiteStatus,
    is_retryable_message,
)
from adsync.pipeline.runner import (
    RunConfig,
    RunResult,
    SettingsProvider,
    Site,
    SyncRunner,
    previous_hour_window,
)

__all__ = [
    # Orchestration
    "SiteOrchestrator",
    "SiteResult",
    "SiteStatus",
    "is_retryable_message",
    # Scheduled runs
    "SyncRunner",
    "RunConfig",
    "RunResult",
    "Site",
    "SettingsProvider",
    "previous_hour_window",
]
