"""
NIC observation service - reads guest reported IP/MAC pairs for tracked NICs
"""
from typing import Dict, Iterable, Optional

from vmdhcp.core.unified_logger import get_logger
from vmdhcp.domain.entities.network import NicObservation
from vmdhcp.infrastructure.providers.base_provider import NetworkConfigReader


logger = get_logger(__name__, "nic_observation")


class NicObservationFetcher:
    """Extracts the tracked NICs from one network configuration read"""

    def __init__(self, reader: NetworkConfigReader, vm_name: str):
        self.reader = reader
        self.vm_name = vm_name

    def observe(self, tracked_indexes: Iterable[int]) -> Dict[int, NicObservation]:
        """
        Read the current network configuration once.

        Indexes the VM does not have are left out of the result; callers
        treat a missing entry like an entry without an address.
        """
        wanted = set(tracked_indexes)
        observed: Dict[int, NicObservation] = {}

        for nic in self.reader.read_nics(self.vm_name):
            if nic.index in wanted and nic.index not in observed:
                observed[nic.index] = nic

        missing = wanted - observed.keys()
        if missing:
            logger.debug(f"VM {self.vm_name} has no NICs with indexes {sorted(missing)}")

        return observed

    def network_names(self, tracked_indexes: Iterable[int]) -> Dict[int, Optional[str]]:
        """Network attached to each tracked NIC that exists on the VM"""
        return {index: nic.network for index, nic in self.observe(tracked_indexes).items()}
