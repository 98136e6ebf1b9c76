"""
vmdhcp Services Layer

Address resolution and the three per-call helpers it composes.
"""

from .address_resolution import AddressResolutionLoop, ResolutionResult
from .nic_observation import NicObservationFetcher
from .gateway_topology import GatewayTopologyResolver
from .lease_lookup import LeaseLookup, LeaseCache

__all__ = [
    "AddressResolutionLoop",
    "ResolutionResult",
    "NicObservationFetcher",
    "GatewayTopologyResolver",
    "LeaseLookup",
    "LeaseCache",
]
