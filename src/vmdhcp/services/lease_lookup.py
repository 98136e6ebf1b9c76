"""
Lease lookup service - active DHCP lease by MAC address, backed by a
call-scoped cache of gateway lease tables
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from vmdhcp.core.unified_logger import get_logger
from vmdhcp.core.exceptions import NotFoundError, AddressResolutionError
from vmdhcp.domain.entities.network import GatewayRef, DhcpLease
from vmdhcp.infrastructure.providers.base_provider import GatewayLeaseSource


logger = get_logger(__name__, "lease_lookup")


@dataclass
class CachedLeases:
    """Lease table of one gateway and the tick it was fetched in"""
    leases: List[DhcpLease]
    tick: int


class LeaseCache:
    """
    Gateway name -> most recently fetched lease table.

    Entries are replaced by newer fetches; a table is only served within
    the tick it was fetched in.
    """

    def __init__(self):
        self._entries: Dict[str, CachedLeases] = {}

    def __contains__(self, gateway_name: str) -> bool:
        return gateway_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_fresh(self, gateway_name: str, tick: int) -> Optional[List[DhcpLease]]:
        """Lease table if it was fetched during the given tick"""
        entry = self._entries.get(gateway_name)
        if entry is not None and entry.tick == tick:
            return entry.leases
        return None

    def store(self, gateway_name: str, leases: List[DhcpLease], tick: int) -> None:
        self._entries[gateway_name] = CachedLeases(leases=leases, tick=tick)


class LeaseLookup:
    """
    Finds active leases for MAC addresses.

    Each gateway's lease table is fetched at most once per tick. Call
    begin_tick() at the start of every polling pass to allow a refresh.
    """

    def __init__(
        self,
        source: GatewayLeaseSource,
        vm_name: Optional[str] = None,
        cache: Optional[LeaseCache] = None
    ):
        self.source = source
        self.vm_name = vm_name
        self.cache = cache if cache is not None else LeaseCache()
        self._tick = 0

    def begin_tick(self) -> None:
        self._tick += 1

    def all_leases(self, gateway: GatewayRef) -> List[DhcpLease]:
        """
        Lease table of a gateway, fetched on first use within the tick.

        A gateway without a lease table yields an empty list. Any other
        fetch failure is fatal for the call.

        Raises:
            AddressResolutionError: the lease table could not be fetched
        """
        fresh = self.cache.get_fresh(gateway.name, self._tick)
        if fresh is not None:
            return fresh

        try:
            leases = self.source.all_leases(gateway)
        except NotFoundError:
            logger.debug(f"Gateway {gateway.name} has no DHCP lease table")
            leases = []
        except Exception as e:
            raise AddressResolutionError(
                f"unable to get DHCP leases for gateway {gateway.name}: {e}",
                operation="fetch DHCP leases",
                vm_name=self.vm_name,
                gateway=gateway.name
            ) from e

        self.cache.store(gateway.name, leases, self._tick)
        return leases

    def active_lease_for_mac(self, gateway: GatewayRef, mac: str) -> DhcpLease:
        """
        Active lease whose MAC matches.

        Raises:
            NotFoundError: no active lease for the MAC on this gateway
            AddressResolutionError: the lease table could not be fetched
        """
        for lease in self.all_leases(gateway):
            if lease.is_active and lease.matches(mac):
                logger.debug(f"Active lease on {gateway.name} for {mac}: {lease.ip_address}")
                return lease

        raise NotFoundError(
            f"no active DHCP lease for {mac} on gateway {gateway.name}",
            operation="find active DHCP lease",
            gateway=gateway.name,
            mac=mac
        )
