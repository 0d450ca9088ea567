"""Custom exceptions shared by adsync packages."""

from __future__ import annotations


class AdSyncError(Exception):
    """Base exception for adsync errors."""

    pass


class ConfigurationError(AdSyncError):
    """Raised when site settings are present but invalid."""

    pass


class VisitSourceError(AdSyncError):
    """Raised when the analytics query service cannot be read."""

    pass
