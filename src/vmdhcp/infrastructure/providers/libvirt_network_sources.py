"""
LibVirt Network Sources

libvirt-backed implementations of the three collaborators used by address
resolution:

- LibvirtNetworkConfigReader: NICs from the domain XML, guest reported
  addresses from the QEMU guest agent
- LibvirtGatewayTopology: a virtual network counts as gateway-routed when it
  forwards traffic (nat/route/open) and serves DHCP
- LibvirtLeaseSource: lease table of a virtual network's built-in DHCP server

Usage:
    manager = get_connection_manager("qemu:///system")
    reader = LibvirtNetworkConfigReader(manager)
    nics = reader.read_nics("my-vm")
"""

import time
import ipaddress
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Callable, Dict, List, Optional

import libvirt

from vmdhcp.core.unified_logger import get_logger
from vmdhcp.core.exceptions import NotFoundError
from vmdhcp.domain.entities.network import (
    NicObservation,
    GatewayRef,
    DhcpLease,
    LeaseBindingState,
    normalize_mac
)
from .libvirt_connection_manager import LibvirtConnectionManager, translate_libvirt_error

logger = get_logger(__name__, "libvirt_network_sources")

# Forward modes where the network's own dnsmasq acts as gateway and DHCP server
ROUTED_FORWARD_MODES = ("nat", "route", "open")

# Guest agent errors that only mean "nothing reported yet"
AGENT_UNAVAILABLE_ERROR_CODES = (
    libvirt.VIR_ERR_AGENT_UNRESPONSIVE,
    libvirt.VIR_ERR_AGENT_UNSYNCED,
    libvirt.VIR_ERR_OPERATION_INVALID,
    libvirt.VIR_ERR_OPERATION_UNSUPPORTED,
    libvirt.VIR_ERR_ARGUMENT_UNSUPPORTED,
)


def _first_usable_ipv4(addrs: List[Dict]) -> str:
    """Pick the first IPv4 address that is neither loopback nor link-local"""
    for addr_info in addrs or []:
        if addr_info.get('type') != libvirt.VIR_IP_ADDR_TYPE_IPV4:
            continue
        addr = addr_info.get('addr')
        try:
            parsed = ipaddress.ip_address(addr)
        except ValueError:
            continue
        if parsed.is_loopback or parsed.is_link_local:
            continue
        return addr
    return ""


class LibvirtNetworkConfigReader:
    """Network configuration reader backed by libvirt and the QEMU guest agent"""

    def __init__(self, connection_manager: LibvirtConnectionManager):
        self.connection_manager = connection_manager

    def read_nics(self, vm_name: str) -> List[NicObservation]:
        """
        Read the NICs of a domain.

        The NIC index is the position of the <interface> element in the
        domain XML. IP addresses come from the guest agent and are empty
        when the agent is missing or has not reported yet.

        Raises:
            NotFoundError: domain does not exist
            CollaboratorError: any other libvirt failure
        """
        with self.connection_manager.connection() as conn:
            try:
                domain = conn.lookupByName(vm_name)
                xml_desc = domain.XMLDesc(0)
            except libvirt.libvirtError as e:
                raise translate_libvirt_error(
                    e, "read network configuration", vm_name=vm_name
                ) from e

            agent_ips = self._agent_ips_by_mac(domain, vm_name)

        root = ET.fromstring(xml_desc)
        nics = []
        for index, interface_elem in enumerate(root.findall('./devices/interface')):
            mac_elem = interface_elem.find('mac')
            mac_address = normalize_mac(mac_elem.get('address') if mac_elem is not None else None)

            network = None
            source_elem = interface_elem.find('source')
            if interface_elem.get('type') == 'network' and source_elem is not None:
                network = source_elem.get('network')

            link_elem = interface_elem.find('link')
            is_connected = link_elem is None or link_elem.get('state', 'up') != 'down'

            nics.append(NicObservation(
                index=index,
                network=network,
                ip_address=agent_ips.get(mac_address, ""),
                mac_address=mac_address,
                is_connected=is_connected
            ))

        logger.debug(f"Read {len(nics)} NICs for {vm_name}, agent reported {len(agent_ips)}")
        return nics

    def _agent_ips_by_mac(self, domain: libvirt.virDomain, vm_name: str) -> Dict[str, str]:
        """Map MAC address to the guest agent reported IPv4 address"""
        try:
            if not domain.isActive():
                return {}
            interfaces = domain.interfaceAddresses(
                libvirt.VIR_DOMAIN_INTERFACE_ADDRESSES_SRC_AGENT, 0
            )
        except libvirt.libvirtError as e:
            if e.get_error_code() in AGENT_UNAVAILABLE_ERROR_CODES:
                logger.debug(f"Guest agent of {vm_name} did not report addresses: {e}")
                return {}
            raise translate_libvirt_error(e, "query guest agent addresses", vm_name=vm_name) from e

        result = {}
        for interface_name, interface_info in (interfaces or {}).items():
            mac = normalize_mac(interface_info.get('hwaddr'))
            ip_addr = _first_usable_ipv4(interface_info.get('addrs'))
            if mac and ip_addr and mac not in result:
                result[mac] = ip_addr
        return result


class LibvirtGatewayTopology:
    """Routed-network topology resolver for libvirt virtual networks"""

    def __init__(self, connection_manager: LibvirtConnectionManager):
        self.connection_manager = connection_manager

    def gateway_for_network(self, network_name: str) -> GatewayRef:
        """
        Find the gateway of a virtual network.

        Raises:
            NotFoundError: network missing, isolated, or without DHCP
            CollaboratorError: any other libvirt failure
        """
        with self.connection_manager.connection() as conn:
            try:
                network = conn.networkLookupByName(network_name)
                xml_desc = network.XMLDesc(0)
            except libvirt.libvirtError as e:
                raise translate_libvirt_error(
                    e, "look up network topology", network=network_name
                ) from e

        root = ET.fromstring(xml_desc)

        forward_elem = root.find('forward')
        # <forward/> without a mode attribute means NAT
        mode = forward_elem.get('mode', 'nat') if forward_elem is not None else None
        if mode not in ROUTED_FORWARD_MODES:
            raise NotFoundError(
                f"network {network_name} is not routed through a gateway (forward mode: {mode})",
                operation="look up network topology",
                network=network_name
            )

        dhcp_address = None
        for ip_elem in root.findall('ip'):
            if ip_elem.find('dhcp') is not None:
                dhcp_address = ip_elem.get('address')
                break

        if dhcp_address is None:
            raise NotFoundError(
                f"network {network_name} has no DHCP service on its gateway",
                operation="look up network topology",
                network=network_name
            )

        bridge_elem = root.find('bridge')
        return GatewayRef(
            name=root.findtext('name') or network_name,
            bridge=bridge_elem.get('name') if bridge_elem is not None else None,
            address=dhcp_address
        )


class LibvirtLeaseSource:
    """Gateway DHCP lease fetcher for libvirt virtual networks"""

    def __init__(
        self,
        connection_manager: LibvirtConnectionManager,
        clock: Callable[[], float] = time.time
    ):
        self.connection_manager = connection_manager
        self.clock = clock

    def all_leases(self, gateway: GatewayRef) -> List[DhcpLease]:
        """
        Fetch every lease known to the network's DHCP server.

        Raises:
            NotFoundError: network no longer exists
            CollaboratorError: any other libvirt failure
        """
        with self.connection_manager.connection() as conn:
            try:
                network = conn.networkLookupByName(gateway.name)
                raw_leases = network.DHCPLeases()
            except libvirt.libvirtError as e:
                raise translate_libvirt_error(
                    e, "fetch DHCP leases", gateway=gateway.name
                ) from e

        now = self.clock()
        leases = []
        for raw in raw_leases or []:
            lease = self._to_lease(raw, now)
            if lease is not None:
                leases.append(lease)

        logger.debug(f"Fetched {len(leases)} DHCP leases from {gateway.name}")
        return leases

    @staticmethod
    def _to_lease(raw: Dict, now: float) -> Optional[DhcpLease]:
        ip_addr = raw.get('ipaddr')
        mac = raw.get('mac')
        if not ip_addr or not mac:
            return None

        expiry = raw.get('expirytime') or 0
        if expiry == 0 or expiry > now:
            state = LeaseBindingState.ACTIVE
        else:
            state = LeaseBindingState.EXPIRED

        return DhcpLease(
            mac_address=mac,
            ip_address=ip_addr,
            binding_state=state,
            hostname=raw.get('hostname') or None,
            client_id=raw.get('clientid') or None,
            expiry_time=datetime.fromtimestamp(expiry) if expiry else None
        )
