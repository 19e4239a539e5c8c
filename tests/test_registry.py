"""
Tests for ProviderRegistry
"""

import pytest

from solar_c2c.core.domain import DatumStreamConfiguration, IntegrationConfiguration
from solar_c2c.core.errors import ConfigurationNotFoundError, UnknownProviderError
from solar_c2c.providers import EnphaseProvider, MockProvider, ProviderRegistry


class TestProviderRegistry:
    """Test cases for ProviderRegistry"""

    def test_default_has_all_providers(self, integration_store, transport):
        registry = ProviderRegistry.default(integration_store, transport)
        assert registry.provider_ids == ["alsoenergy", "enphase", "fronius", "mock", "solaredge"]

    def test_dispatch_by_provider_id(self, integration_store, transport):
        registry = ProviderRegistry.default(integration_store, transport)
        config = IntegrationConfiguration(1, 2, "enphase", {})

        provider = registry.for_integration(config)

        assert isinstance(provider, EnphaseProvider)
        assert provider.integration_store is integration_store

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError):
            ProviderRegistry().get("sunny")

    def test_for_datum_stream(self, integration_store, mock_integration):
        integration_store.save(mock_integration)
        registry = ProviderRegistry.default(integration_store)

        provider = registry.for_datum_stream(DatumStreamConfiguration(1, 9, mock_integration.config_id))

        assert isinstance(provider, MockProvider)

    def test_for_datum_stream_missing_integration(self, integration_store):
        registry = ProviderRegistry.default(integration_store)
        with pytest.raises(ConfigurationNotFoundError):
            registry.for_datum_stream(DatumStreamConfiguration(1, 9, 404))

    def test_register_replaces(self, integration_store):
        registry = ProviderRegistry()
        first = MockProvider(integration_store)
        second = MockProvider(integration_store)
        registry.register(first)
        registry.register(second)
        assert registry.get("mock") is second
