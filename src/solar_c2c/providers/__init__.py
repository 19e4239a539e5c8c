"""
Cloud provider adapters

Each provider implements the CloudProvider interface for one vendor API:
- AlsoEnergyProvider: AlsoEnergy PowerTrack (OAuth)
- EnphaseProvider: Enphase Energy API v4 (OAuth plus API key)
- FroniusProvider: Fronius Solar.web Query API (access key headers)
- SolarEdgeProvider: SolarEdge Monitoring API v1 (API key header)
- MockProvider: simulated production data and control writes
"""

from .base import CloudProvider
from .alsoenergy import AlsoEnergyProvider
from .enphase import EnphaseProvider
from .fronius import FroniusProvider
from .mock import MockProvider
from .solaredge import SolarEdgeProvider
from .registry import ProviderRegistry

__all__ = [
    "CloudProvider",
    "AlsoEnergyProvider",
    "EnphaseProvider",
    "FroniusProvider",
    "MockProvider",
    "SolarEdgeProvider",
    "ProviderRegistry",
]
