"""
Infrastructure Providers

Collaborator interfaces (base_provider) and libvirt-backed implementations
(libvirt_connection_manager, libvirt_network_sources).
"""

from .base_provider import NetworkConfigReader, RoutedNetworkTopology, GatewayLeaseSource

__all__ = ["NetworkConfigReader", "RoutedNetworkTopology", "GatewayLeaseSource"]
