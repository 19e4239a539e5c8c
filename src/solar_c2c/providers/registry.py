"""
Provider registry

Maps provider identifiers to provider instances so callers can dispatch an
operation on a configuration by its ``provider_id``.

Usage:
    registry = ProviderRegistry.default(integrations, control_store=controls)
    result = registry.for_integration(config).validate(config)
"""

import logging
from typing import Dict, Iterable, List, Optional, Type

from ..core.domain import DatumStreamConfiguration, IntegrationConfiguration
from ..core.errors import ConfigurationNotFoundError, UnknownProviderError
from .alsoenergy import AlsoEnergyProvider
from .base import CloudProvider
from .enphase import EnphaseProvider
from .fronius import FroniusProvider
from .mock import MockProvider
from .solaredge import SolarEdgeProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: List[Type[CloudProvider]] = [
    AlsoEnergyProvider,
    EnphaseProvider,
    FroniusProvider,
    MockProvider,
    SolarEdgeProvider,
]


class ProviderRegistry:
    """Dispatch table of providers keyed by provider id"""

    def __init__(self, providers: Optional[Iterable[CloudProvider]] = None, integration_store=None):
        self.integration_store = integration_store
        self._providers: Dict[str, CloudProvider] = {}
        for provider in providers or []:
            self.register(provider)

    @classmethod
    def default(cls, integration_store, transport=None, authorization_manager=None,
                control_store=None, event_appender=None, clock=None) -> "ProviderRegistry":
        """Registry holding every built-in provider sharing the given collaborators"""
        providers = [provider_class(integration_store, transport, authorization_manager,
                                    control_store, event_appender, clock)
                     for provider_class in PROVIDER_CLASSES]
        return cls(providers, integration_store)

    def register(self, provider: CloudProvider) -> None:
        if provider.provider_id in self._providers:
            logger.warning(f"Replacing provider {provider.provider_id}")
        self._providers[provider.provider_id] = provider

    @property
    def provider_ids(self) -> List[str]:
        return sorted(self._providers)

    def get(self, provider_id: str) -> CloudProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise UnknownProviderError(provider_id)
        return provider

    def for_integration(self, config: IntegrationConfiguration) -> CloudProvider:
        return self.get(config.provider_id)

    def for_datum_stream(self, datum_stream: DatumStreamConfiguration) -> CloudProvider:
        """Provider of the integration the stream draws from"""
        integration = self.integration_store.get(datum_stream.integration_key) \
            if self.integration_store is not None else None
        if integration is None:
            raise ConfigurationNotFoundError("Integration", datum_stream.integration_key)
        return self.for_integration(integration)
