"""Platform to dispatcher class lookup shared by every run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from adsync.visits.config import Platform

if TYPE_CHECKING:
    from adsync.platforms.base import BaseDispatcher

logger = logging.getLogger(__name__)


class DispatcherRegistry:
    """Process-wide map from ``Platform`` to its dispatcher class.

    Each adapter module registers its class on import, so importing
    ``adsync.platforms.adapters`` fills the registry for all platforms.
    """

    _instance: DispatcherRegistry | None = None
    _dispatchers: dict[Platform, type[BaseDispatcher]]

    def __new__(cls) -> DispatcherRegistry:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._dispatchers = {}
        return cls._instance

    def register(self, platform: Platform, dispatcher_class: type[BaseDispatcher]) -> None:
        if dispatcher_class.platform is not platform:
            raise ValueError(
                f"{dispatcher_class.__name__} dispatches to {dispatcher_class.platform.value}, "
                f"not {platform.value}"
            )
        replaced = self._dispatchers.get(platform)
        if replaced is not None and replaced is not dispatcher_class:
            logger.info(f"Replacing {replaced.__name__} with {dispatcher_class.__name__} for {platform.label}")
        self._dispatchers[platform] = dispatcher_class
        logger.debug(f"Registered {dispatcher_class.__name__} for {platform.value}")

    def unregister(self, platform: Platform) -> None:
        self._dispatchers.pop(platform, None)

    def get(self, platform: Platform) -> type[BaseDispatcher] | None:
        return self._dispatchers.get(platform)

    def create(self, platform: Platform, **kwargs: Any) -> BaseDispatcher:
        """Instantiate the dispatcher for ``platform``; kwargs go to its constructor.

        Raises:
            ValueError: If nothing is registered for the platform.
        """
        dispatcher_class = self.get(platform)
        if dispatcher_class is None:
            raise ValueError(f"No dispatcher registered for platform: {platform.value}")
        return dispatcher_class(**kwargs)

    def list_available(self) -> list[Platform]:
        return list(self._dispatchers)

    def is_registered(self, platform: Platform) -> bool:
        return platform in self._dispatchers


_registry = DispatcherRegistry()


def get_registry() -> DispatcherRegistry:
    return _registry
