"""
NIC Tracking Record

Per-call state for one requested NIC index. The address resolution loop owns
one record per requested index for the duration of a single call.
"""
from dataclasses import dataclass
from typing import List, Optional

from .network import GatewayRef, normalize_mac


class ResolutionSource:
    """Which tier produced a resolved address"""
    GUEST_AGENT = "guest_agent"
    DHCP_LEASE = "dhcp_lease"


@dataclass
class NicTrackingRecord:
    """Tracking state for one NIC index"""
    nic_index: int
    resolved_ip: str = ""
    mac_address: str = ""
    gateway: Optional[GatewayRef] = None
    gateway_checked: bool = False
    source: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.resolved_ip)

    @property
    def can_use_lease(self) -> bool:
        """A lease can only be correlated through a known gateway and MAC"""
        return not self.is_resolved and self.gateway is not None and bool(self.mac_address)

    def resolve(self, ip_address: str, source: str) -> bool:
        """
        Record an address for this NIC.

        The first non-empty address wins; later calls never overwrite it.

        Returns:
            True if this call set the address
        """
        if self.is_resolved or not ip_address:
            return False
        self.resolved_ip = ip_address
        self.source = source
        return True

    def update_mac(self, mac_address: str) -> None:
        """Refresh the MAC while the NIC is still unresolved"""
        mac = normalize_mac(mac_address)
        if mac and not self.is_resolved:
            self.mac_address = mac

    def set_gateway(self, gateway: Optional[GatewayRef]) -> None:
        """Store the topology lookup result; only the first call counts"""
        if self.gateway_checked:
            return
        self.gateway = gateway
        self.gateway_checked = True


def build_records(nic_indexes: List[int]) -> List[NicTrackingRecord]:
    """One record per requested index, in input order"""
    return [NicTrackingRecord(nic_index=index) for index in nic_indexes]


def all_resolved(records: List[NicTrackingRecord]) -> bool:
    return all(record.is_resolved for record in records)


def addresses_of(records: List[NicTrackingRecord]) -> List[str]:
    """Resolved addresses aligned to record order, empty string for unresolved"""
    return [record.resolved_ip for record in records]
