"""
VM IP Address Management - libvirt backed entry points

Wires the libvirt collaborators into the address resolution loop and
exposes lease queries against a virtual network's DHCP server.

Usage:
    manager = VMIPManager()
    addresses, timed_out = manager.wait_for_dhcp_ips("my-vm", [0, 1], 120)

    # Lease queries
    leases = manager.get_all_dhcp_leases("default")
    lease = manager.get_active_dhcp_lease_by_mac("default", "52:54:00:12:34:56")
"""

import threading
from typing import Dict, List, Optional, Sequence

from vmdhcp.config.settings import VMDhcpSettings
from vmdhcp.core.unified_logger import get_logger
from vmdhcp.domain.entities.network import DhcpLease
from vmdhcp.infrastructure.providers.libvirt_connection_manager import get_connection_manager
from vmdhcp.infrastructure.providers.libvirt_network_sources import (
    LibvirtNetworkConfigReader,
    LibvirtGatewayTopology,
    LibvirtLeaseSource
)
from vmdhcp.services.address_resolution import AddressResolutionLoop, ResolutionResult
from vmdhcp.services.lease_lookup import LeaseLookup


class VMIPManager:
    """
    DHCP address discovery for libvirt domains.

    Every call builds its own resolution state; a manager can be shared
    between threads resolving different VMs.
    """

    def __init__(self, settings: Optional[VMDhcpSettings] = None, logger=None):
        """
        Initialize VM IP Manager.

        Args:
            settings: vmdhcp settings (libvirt URI, tick interval, wait floor)
            logger: Optional logger instance
        """
        self.settings = settings or VMDhcpSettings()
        self.logger = logger or get_logger(__name__, "vm_ip_manager")

        self.connection_manager = get_connection_manager(self.settings.libvirt_uri)
        self.reader = LibvirtNetworkConfigReader(self.connection_manager)
        self.topology = LibvirtGatewayTopology(self.connection_manager)
        self.lease_source = LibvirtLeaseSource(self.connection_manager)

        self._stats_lock = threading.Lock()
        self.stats: Dict[str, int] = {
            'resolutions': 0,
            'complete': 0,
            'timed_out': 0,
            'cancelled': 0,
        }

        self.logger.info(f"VMIPManager initialized with URI: {self.settings.libvirt_uri}")

    def wait_for_dhcp_ips(
        self,
        vm_name: str,
        nic_indexes: Sequence[int],
        max_wait_seconds: Optional[int] = None,
        use_lease_fallback: Optional[bool] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> ResolutionResult:
        """
        Wait for DHCP addresses of the given NICs.

        Args:
            vm_name: libvirt domain name
            nic_indexes: NIC indexes (position of <interface> in the domain XML)
            max_wait_seconds: wait budget, settings default when None
            use_lease_fallback: consult network lease tables, settings default when None
            cancel_event: optional cancellation signal

        Returns:
            ResolutionResult aligned to nic_indexes
        """
        if max_wait_seconds is None:
            max_wait_seconds = self.settings.default_max_wait_seconds
        if use_lease_fallback is None:
            use_lease_fallback = self.settings.use_lease_fallback

        loop = AddressResolutionLoop(
            vm_name,
            self.reader,
            topology=self.topology,
            lease_source=self.lease_source,
            settings=self.settings
        )
        result = loop.resolve(nic_indexes, max_wait_seconds, use_lease_fallback, cancel_event)

        self._record(result)
        return result

    def get_all_dhcp_leases(self, network_name: str) -> List[DhcpLease]:
        """
        All leases of the DHCP server on a gateway routed network.

        Raises:
            NotFoundError: network is not gateway routed
        """
        gateway = self.topology.gateway_for_network(network_name)
        return LeaseLookup(self.lease_source).all_leases(gateway)

    def get_active_dhcp_lease_by_mac(self, network_name: str, mac: str) -> DhcpLease:
        """
        Active lease for a MAC address on a gateway routed network.

        Raises:
            NotFoundError: network is not gateway routed, or no active lease
        """
        gateway = self.topology.gateway_for_network(network_name)
        return LeaseLookup(self.lease_source).active_lease_for_mac(gateway, mac)

    def get_statistics(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)

    def _record(self, result: ResolutionResult) -> None:
        with self._stats_lock:
            self.stats['resolutions'] += 1
            if result.cancelled:
                self.stats['cancelled'] += 1
            elif result.timed_out:
                self.stats['timed_out'] += 1
            else:
                self.stats['complete'] += 1


def wait_for_dhcp_ips(
    vm_name: str,
    nic_indexes: Sequence[int],
    max_wait_seconds: int,
    use_lease_fallback: bool = False,
    uri: str = "qemu:///system"
) -> ResolutionResult:
    """Quick helper: resolve NIC addresses with default settings"""
    settings = VMDhcpSettings(libvirt_uri=uri)
    return VMIPManager(settings).wait_for_dhcp_ips(
        vm_name, nic_indexes, max_wait_seconds, use_lease_fallback
    )
