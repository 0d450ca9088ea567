"""Tests for adsync.platforms.registry."""

from __future__ import annotations

import pytest
from adsync.platforms.adapters import GoogleAdsDispatcher, LinkedInDispatcher, MetaDispatcher
from adsync.platforms.registry import DispatcherRegistry, get_registry
from adsync.visits.config import Platform
from adsync.visits.consent import ConsentResolver


class TestDispatcherRegistry:
    """Tests for DispatcherRegistry singleton."""

    def test_singleton_pattern(self, fresh_registry) -> None:
        """Test registry is a singleton."""
        assert DispatcherRegistry() is fresh_registry

    def test_register_dispatcher(self, fresh_registry) -> None:
        fresh_registry.register(Platform.META, MetaDispatcher)

        assert fresh_registry.is_registered(Platform.META)
        assert fresh_registry.get(Platform.META) is MetaDispatcher

    def test_register_rejects_wrong_platform(self, fresh_registry) -> None:
        with pytest.raises(ValueError, match="dispatches to meta, not linkedin"):
            fresh_registry.register(Platform.LINKEDIN, MetaDispatcher)

        assert not fresh_registry.is_registered(Platform.LINKEDIN)

    def test_unregister_dispatcher(self, fresh_registry) -> None:
        fresh_registry.register(Platform.META, MetaDispatcher)
        fresh_registry.unregister(Platform.META)

        assert not fresh_registry.is_registered(Platform.META)

    def test_unregister_nonexistent(self, fresh_registry) -> None:
        """Test unregistering a non-existent platform doesn't raise."""
        fresh_registry.unregister(Platform.LINKEDIN)

    def test_get_unregistered_returns_none(self, fresh_registry) -> None:
        assert fresh_registry.get(Platform.GOOGLE) is None

    def test_create_dispatcher(self, fresh_registry) -> None:
        """Test creating a dispatcher passes constructor arguments."""
        consent = ConsentResolver()
        fresh_registry.register(Platform.LINKEDIN, LinkedInDispatcher)

        dispatcher = fresh_registry.create(Platform.LINKEDIN, consent=consent)

        assert isinstance(dispatcher, LinkedInDispatcher)
        assert dispatcher.consent is consent

    def test_create_unregistered_raises(self, fresh_registry) -> None:
        with pytest.raises(ValueError, match="No dispatcher registered"):
            fresh_registry.create(Platform.GOOGLE)

    def test_list_available(self, fresh_registry) -> None:
        fresh_registry.register(Platform.META, MetaDispatcher)
        fresh_registry.register(Platform.GOOGLE, GoogleAdsDispatcher)

        assert fresh_registry.list_available() == [Platform.META, Platform.GOOGLE]


class TestGlobalRegistry:
    def test_adapters_auto_register(self) -> None:
        """Test every platform has a dispatcher once adapters are imported."""
        registry = get_registry()

        assert registry.get(Platform.META) is MetaDispatcher
        assert registry.get(Platform.GOOGLE) is GoogleAdsDispatcher
        assert registry.get(Platform.LINKEDIN) is LinkedInDispatcher
