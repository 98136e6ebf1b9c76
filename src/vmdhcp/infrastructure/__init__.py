"""
vmdhcp Infrastructure Layer

Collaborator interfaces and their libvirt implementations. The libvirt
modules are imported explicitly by callers that need them, so the interfaces
stay importable without libvirt-python.
"""

from .providers.base_provider import (
    NetworkConfigReader,
    RoutedNetworkTopology,
    GatewayLeaseSource
)

__all__ = ["NetworkConfigReader", "RoutedNetworkTopology", "GatewayLeaseSource"]
