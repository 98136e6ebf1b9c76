"""
Address Resolution Service

Waits for DHCP-assigned addresses of one or more NICs of a VM.

Two sources are polled on every tick:

1. Guest agent reported addresses from the VM's network configuration.
   Preferred: they reflect the address actually configured inside the guest.
2. Optionally, active leases in the DHCP lease table of the gateway that
   routes the NIC's network, correlated by MAC address.

The call ends when every requested NIC has an address or when the wait
budget runs out. Running out of time is not an error: the partial result
is returned with timed_out set.

Usage:
    loop = AddressResolutionLoop("my-vm", reader, topology, lease_source)
    result = loop.resolve([0, 1], max_wait_seconds=120, use_lease_fallback=True)
    addresses, timed_out = result
"""

import time
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Union

from vmdhcp.config.settings import VMDhcpSettings
from vmdhcp.core.unified_logger import get_logger, LoggingContext
from vmdhcp.core.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    AddressResolutionError
)
from vmdhcp.domain.entities.nic_tracking import (
    NicTrackingRecord,
    ResolutionSource,
    build_records,
    all_resolved,
    addresses_of
)
from vmdhcp.infrastructure.providers.base_provider import (
    NetworkConfigReader,
    RoutedNetworkTopology,
    GatewayLeaseSource
)
from .nic_observation import NicObservationFetcher
from .gateway_topology import GatewayTopologyResolver
from .lease_lookup import LeaseLookup


logger = get_logger(__name__, "address_resolution")

# sleeper(seconds, cancel_event) -> True when cancelled while waiting
Sleeper = Callable[[float, threading.Event], bool]


def _event_sleeper(seconds: float, cancel_event: threading.Event) -> bool:
    return cancel_event.wait(seconds)


@dataclass
class ResolutionResult:
    """
    Outcome of one resolution call.

    timed_out is False only when every requested NIC resolved. A cancelled
    call ends incomplete, so it reports timed_out=True as well as cancelled.
    """
    addresses: List[str]
    timed_out: bool
    cancelled: bool = False
    records: List[NicTrackingRecord] = field(default_factory=list, repr=False)

    def __iter__(self) -> Iterator[Union[List[str], bool]]:
        # Allows `addresses, timed_out = result`
        yield self.addresses
        yield self.timed_out

    @property
    def resolved_count(self) -> int:
        return sum(1 for address in self.addresses if address)

    @property
    def is_complete(self) -> bool:
        return all(self.addresses)


class AddressResolutionLoop:
    """
    Bounded polling loop that resolves NIC addresses of a single VM.

    Instances hold no per-call state; concurrent calls may share one loop.
    """

    def __init__(
        self,
        vm_name: str,
        reader: NetworkConfigReader,
        topology: Optional[RoutedNetworkTopology] = None,
        lease_source: Optional[GatewayLeaseSource] = None,
        settings: Optional[VMDhcpSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Sleeper = _event_sleeper
    ):
        """
        Args:
            vm_name: VM whose NICs are resolved
            reader: network configuration reader
            topology: routed-network topology resolver, needed for lease fallback
            lease_source: gateway lease table fetcher, needed for lease fallback
            settings: tick interval and optional wait floor
            clock: monotonic clock in seconds
            sleeper: blocking wait, returns True when cancelled
        """
        self.vm_name = vm_name
        self.reader = reader
        self.topology = topology
        self.lease_source = lease_source
        self.settings = settings or VMDhcpSettings()
        self.clock = clock
        self.sleeper = sleeper

    @property
    def tick_interval(self) -> float:
        return self.settings.tick_interval_seconds

    def resolve(
        self,
        nic_indexes: Sequence[int],
        max_wait_seconds: int,
        use_lease_fallback: bool = False,
        cancel_event: Optional[threading.Event] = None
    ) -> ResolutionResult:
        """
        Wait until every requested NIC has an address or the budget runs out.

        Args:
            nic_indexes: NIC indexes to resolve; the result is aligned to this order
            max_wait_seconds: upper bound on wall-clock time
            use_lease_fallback: also consult gateway DHCP lease tables
            cancel_event: optional event that stops the wait early

        Returns:
            ResolutionResult with an empty string for every unresolved NIC

        Raises:
            InvalidArgumentError: malformed input, raised before any I/O
            AddressResolutionError: a collaborator failed
        """
        indexes = self._validate(nic_indexes, max_wait_seconds, use_lease_fallback)
        max_wait = self.settings.effective_max_wait(max_wait_seconds, use_lease_fallback)
        cancel_event = cancel_event or threading.Event()
        records = build_records(indexes)

        with LoggingContext(vm_name=self.vm_name):
            logger.info(
                f"VM '{self.vm_name}' attempting to look up IP addresses for DHCP NICs {indexes}",
                max_wait_seconds=max_wait,
                use_lease_fallback=use_lease_fallback
            )

            fetcher = NicObservationFetcher(self.reader, self.vm_name)
            lease_lookup = None
            if use_lease_fallback:
                self._resolve_gateways(records, indexes, fetcher)
                lease_lookup = LeaseLookup(self.lease_source, vm_name=self.vm_name)

            return self._poll(records, indexes, fetcher, lease_lookup, max_wait, cancel_event)

    def _validate(
        self,
        nic_indexes: Sequence[int],
        max_wait_seconds: int,
        use_lease_fallback: bool
    ) -> List[int]:
        if nic_indexes is None or len(nic_indexes) == 0:
            raise InvalidArgumentError(
                "at least one NIC index must be specified", operation="validate NIC indexes"
            )

        indexes = list(nic_indexes)
        for position, index in enumerate(indexes):
            if isinstance(index, bool) or not isinstance(index, int):
                raise InvalidArgumentError(
                    f"NIC index at position {position} must be an integer, got {index!r}",
                    operation="validate NIC indexes"
                )
            if index < 0:
                raise InvalidArgumentError(
                    f"NIC index {index} at position {position} cannot be negative",
                    operation="validate NIC indexes"
                )

        if isinstance(max_wait_seconds, bool) or not isinstance(max_wait_seconds, int) \
                or max_wait_seconds <= 0:
            raise InvalidArgumentError(
                f"max wait must be a positive number of seconds, got {max_wait_seconds!r}",
                operation="validate wait budget"
            )

        if use_lease_fallback and (self.topology is None or self.lease_source is None):
            raise InvalidArgumentError(
                "lease fallback requires a topology resolver and a lease source",
                operation="validate lease fallback"
            )

        return indexes

    def _resolve_gateways(
        self,
        records: List[NicTrackingRecord],
        indexes: List[int],
        fetcher: NicObservationFetcher
    ) -> None:
        """One-time topology step; failures other than "not found" are fatal"""
        try:
            network_names = fetcher.network_names(indexes)
        except Exception as e:
            raise AddressResolutionError(
                f"unable to validate if NICs of VM {self.vm_name} are attached to gateway: {e}",
                operation="read NIC networks",
                vm_name=self.vm_name
            ) from e

        resolver = GatewayTopologyResolver(self.topology, self.vm_name)
        resolver.resolve_for_records(records, network_names)

        routed = [record.nic_index for record in records if record.gateway is not None]
        logger.debug(f"NICs attached to gateway routed networks: {routed}")

    def _poll(
        self,
        records: List[NicTrackingRecord],
        indexes: List[int],
        fetcher: NicObservationFetcher,
        lease_lookup: Optional[LeaseLookup],
        max_wait: int,
        cancel_event: threading.Event
    ) -> ResolutionResult:
        start = self.clock()
        deadline = start + max_wait
        next_tick = start + self.tick_interval
        tick = 0

        while True:
            if next_tick > deadline:
                if self._wait_until(deadline, cancel_event):
                    return self._cancelled(records)
                return self._timed_out(records, indexes, max_wait)

            if self._wait_until(next_tick, cancel_event):
                return self._cancelled(records)

            tick += 1
            if self._run_tick(tick, records, indexes, fetcher, lease_lookup):
                return ResolutionResult(addresses=addresses_of(records), timed_out=False, records=records)

            now = self.clock()
            if now >= deadline:
                return self._timed_out(records, indexes, max_wait)

            # Ticks missed during a slow pass are skipped, not queued
            next_tick += self.tick_interval
            while next_tick <= now:
                next_tick += self.tick_interval

    def _wait_until(self, target: float, cancel_event: threading.Event) -> bool:
        """Block until target; True when cancelled"""
        remaining = target - self.clock()
        if remaining > 0:
            return self.sleeper(remaining, cancel_event)
        return cancel_event.is_set()

    def _run_tick(
        self,
        tick: int,
        records: List[NicTrackingRecord],
        indexes: List[int],
        fetcher: NicObservationFetcher,
        lease_lookup: Optional[LeaseLookup]
    ) -> bool:
        """One polling pass; True when every NIC is resolved"""
        logger.debug(f"Tick {tick}: checking guest reported addresses for NICs {indexes}")

        try:
            observed = fetcher.observe(indexes)
        except Exception as e:
            raise AddressResolutionError(
                f"could not check IP addresses assigned to VM {self.vm_name}: {e}",
                operation="observe NICs",
                vm_name=self.vm_name
            ) from e

        for record in records:
            if record.is_resolved:
                continue
            nic = observed.get(record.nic_index)
            if nic is None:
                continue
            record.update_mac(nic.mac_address)
            record.resolve(nic.ip_address, ResolutionSource.GUEST_AGENT)

        if all_resolved(records):
            logger.info(f"VM '{self.vm_name}' NICs {indexes} all reported their IPs using guest agent")
            return True

        if lease_lookup is None:
            return False

        lease_lookup.begin_tick()
        for record in records:
            if not record.can_use_lease:
                continue
            try:
                lease = lease_lookup.active_lease_for_mac(record.gateway, record.mac_address)
            except NotFoundError:
                continue
            if record.resolve(lease.ip_address, ResolutionSource.DHCP_LEASE):
                logger.debug(
                    f"NIC {record.nic_index} resolved from DHCP lease on {record.gateway.name}: "
                    f"{lease.ip_address}"
                )

        if all_resolved(records):
            logger.info(f"VM '{self.vm_name}' NICs {indexes} all reported their IPs after lease check")
            return True

        logger.debug(f"Tick {tick}: NICs {indexes} did not all report their IPs using DHCP leases")
        return False

    def _timed_out(
        self,
        records: List[NicTrackingRecord],
        indexes: List[int],
        max_wait: int
    ) -> ResolutionResult:
        addresses = addresses_of(records)
        logger.warning(
            f"VM '{self.vm_name}' NICs {indexes} did not all report IP addresses after "
            f"{max_wait} seconds. IPs: '{', '.join(addresses)}'"
        )
        return ResolutionResult(addresses=addresses, timed_out=True, records=records)

    def _cancelled(self, records: List[NicTrackingRecord]) -> ResolutionResult:
        logger.info(f"Address resolution for VM '{self.vm_name}' cancelled")
        return ResolutionResult(
            addresses=addresses_of(records), timed_out=True, cancelled=True, records=records
        )
