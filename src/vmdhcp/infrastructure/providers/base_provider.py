"""
Base Network Source Interfaces

This module defines the collaborator interfaces consumed by address
resolution, so the polling logic stays independent of the virtualization
platform that backs them.

Each source signals an expected negative outcome by raising NotFoundError;
any other exception is treated as an infrastructure failure.
"""

from typing import List, Protocol

from ...domain.entities.network import NicObservation, GatewayRef, DhcpLease


class NetworkConfigReader(Protocol):
    """Reads the current network configuration of a VM"""

    def read_nics(self, vm_name: str) -> List[NicObservation]:
        """Return every NIC of the VM; IPs may be empty or stale"""
        ...


class RoutedNetworkTopology(Protocol):
    """Resolves which gateway, if any, routes a network"""

    def gateway_for_network(self, network_name: str) -> GatewayRef:
        """Return the routing gateway, raise NotFoundError if not gateway-routed"""
        ...


class GatewayLeaseSource(Protocol):
    """Fetches the DHCP lease table of a gateway"""

    def all_leases(self, gateway: GatewayRef) -> List[DhcpLease]:
        """Return all lease records, raise NotFoundError if there is no lease table"""
        ...
