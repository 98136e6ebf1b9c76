"""
Gateway topology service - determines once per call which tracked NICs sit on
a gateway-routed network
"""
from typing import Dict, List, Optional

from vmdhcp.core.unified_logger import get_logger
from vmdhcp.core.exceptions import NotFoundError, AddressResolutionError
from vmdhcp.domain.entities.network import GatewayRef
from vmdhcp.domain.entities.nic_tracking import NicTrackingRecord
from vmdhcp.infrastructure.providers.base_provider import RoutedNetworkTopology


logger = get_logger(__name__, "gateway_topology")


class GatewayTopologyResolver:
    """Resolves and caches the gateway of each tracked NIC's network"""

    def __init__(self, topology: RoutedNetworkTopology, vm_name: str):
        self.topology = topology
        self.vm_name = vm_name
        # network name -> gateway (None when not routed), scoped to this resolver
        self._by_network: Dict[str, Optional[GatewayRef]] = {}

    def resolve_gateway_for_network(self, network_name: str) -> GatewayRef:
        """
        Look up the gateway routing a network.

        Raises:
            NotFoundError: the network is not attached to a gateway
        """
        return self.topology.gateway_for_network(network_name)

    def resolve_for_records(
        self,
        records: List[NicTrackingRecord],
        network_names: Dict[int, Optional[str]]
    ) -> None:
        """
        Store the gateway (or its absence) in every record that has not been
        checked yet.

        Args:
            records: tracking records of the current call
            network_names: NIC index -> attached network, as read at call start

        Raises:
            AddressResolutionError: topology lookup failed for a reason other
                than "not found"
        """
        for record in records:
            if record.gateway_checked:
                continue

            if record.nic_index not in network_names:
                logger.warning(
                    f"VM {self.vm_name} has no NIC with index {record.nic_index}, "
                    f"treating it as not routed"
                )
                record.set_gateway(None)
                continue

            network = network_names[record.nic_index]
            if not network:
                logger.debug(
                    f"VM {self.vm_name} NIC {record.nic_index} is not attached to a named network"
                )
                record.set_gateway(None)
                continue

            record.set_gateway(self._gateway_for(network, record.nic_index))

    def _gateway_for(self, network: str, nic_index: int) -> Optional[GatewayRef]:
        if network in self._by_network:
            return self._by_network[network]

        try:
            gateway = self.resolve_gateway_for_network(network)
            logger.debug(
                f"VM {self.vm_name} NIC {nic_index} is attached to gateway routed network "
                f"{network} (gateway {gateway.name})"
            )
        except NotFoundError:
            logger.debug(
                f"VM {self.vm_name} NIC {nic_index} is not attached to gateway routed network"
            )
            gateway = None
        except Exception as e:
            raise AddressResolutionError(
                f"could not validate if NIC {nic_index} uses routed network attached to gateway: {e}",
                operation="resolve gateway topology",
                vm_name=self.vm_name,
                nic_index=nic_index,
                network=network
            ) from e

        self._by_network[network] = gateway
        return gateway
