"""Platform dispatcher implementations.

Importing this package registers every dispatcher with the global registry.
"""

from adsync.platforms.adapters.google import GoogleAdsDispatcher
from adsync.platforms.adapters.linkedin import LinkedInDispatcher
from adsync.platforms.adapters.meta import MetaDispatcher

__all__ = [
    "GoogleAdsDispatcher",
    "LinkedInDispatcher",
    "MetaDispatcher",
]
