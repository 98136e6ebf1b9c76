"""
Unit tests for NicObservationFetcher and GatewayTopologyResolver
"""

from unittest.mock import patch

import pytest

from vmdhcp.core.exceptions import AddressResolutionError, NotFoundError
from vmdhcp.domain.entities.network import GatewayRef
from vmdhcp.domain.entities.nic_tracking import build_records
from vmdhcp.services.gateway_topology import GatewayTopologyResolver
from vmdhcp.services.nic_observation import NicObservationFetcher

from conftest import FakeReader, FakeTopology, nic


class TestNicObservationFetcher:
    """Extraction of tracked NICs from a configuration read"""

    def test_observe_filters_tracked_indexes(self):
        reader = FakeReader([nic(0, "10.0.0.5"), nic(1, "10.0.0.6"), nic(2, "")])
        fetcher = NicObservationFetcher(reader, "vm-1")

        observed = fetcher.observe([0, 2])

        assert sorted(observed) == [0, 2]
        assert observed[0].ip_address == "10.0.0.5"
        assert reader.calls == 1
        assert reader.vm_names == ["vm-1"]

    def test_absent_index_is_not_an_error(self):
        fetcher = NicObservationFetcher(FakeReader([nic(0, "10.0.0.5")]), "vm-1")

        observed = fetcher.observe([0, 3])

        assert 3 not in observed

    def test_first_duplicate_entry_wins(self):
        reader = FakeReader([nic(0, "10.0.0.5"), nic(0, "10.0.0.6")])
        fetcher = NicObservationFetcher(reader, "vm-1")

        assert fetcher.observe([0])[0].ip_address == "10.0.0.5"

    def test_network_names(self):
        reader = FakeReader([nic(0, network="routed"), nic(1, network=None)])
        fetcher = NicObservationFetcher(reader, "vm-1")

        assert fetcher.network_names([0, 1, 5]) == {0: "routed", 1: None}

    def test_reader_errors_propagate(self):
        def script(call):
            raise RuntimeError("boom")

        fetcher = NicObservationFetcher(FakeReader(script), "vm-1")

        with pytest.raises(RuntimeError):
            fetcher.observe([0])


class TestGatewayTopologyResolver:
    """One-time gateway resolution for tracked NICs"""

    def test_resolve_gateway_for_network(self, gateway):
        resolver = GatewayTopologyResolver(FakeTopology({"routed": gateway}), "vm-1")

        assert resolver.resolve_gateway_for_network("routed") == gateway

    def test_not_found_is_distinguished(self):
        resolver = GatewayTopologyResolver(FakeTopology({}), "vm-1")

        with pytest.raises(NotFoundError):
            resolver.resolve_gateway_for_network("isolated")

    def test_records_get_gateway_or_none(self, gateway):
        topology = FakeTopology({"routed": gateway})
        resolver = GatewayTopologyResolver(topology, "vm-1")
        records = build_records([0, 1, 2])

        resolver.resolve_for_records(records, {0: "routed", 1: "isolated", 2: None})

        assert records[0].gateway == gateway
        assert records[1].gateway is None
        assert records[2].gateway is None
        assert all(record.gateway_checked for record in records)
        assert topology.calls == ["routed", "isolated"]

    def test_network_looked_up_once_for_many_nics(self, gateway):
        topology = FakeTopology({"routed": gateway})
        resolver = GatewayTopologyResolver(topology, "vm-1")
        records = build_records([0, 1, 2])

        resolver.resolve_for_records(records, {0: "routed", 1: "routed", 2: "routed"})

        assert topology.calls == ["routed"]

    def test_checked_records_are_not_resolved_again(self, gateway):
        topology = FakeTopology({"routed": gateway})
        resolver = GatewayTopologyResolver(topology, "vm-1")
        records = build_records([0])
        records[0].set_gateway(None)

        resolver.resolve_for_records(records, {0: "routed"})

        assert records[0].gateway is None
        assert topology.calls == []

    def test_other_errors_are_fatal(self):
        topology = FakeTopology({"routed": ConnectionError("unreachable")})
        resolver = GatewayTopologyResolver(topology, "vm-1")
        records = build_records([7])

        with pytest.raises(AddressResolutionError) as exc_info:
            resolver.resolve_for_records(records, {7: "routed"})

        assert exc_info.value.nic_index == 7
        assert exc_info.value.context["network"] == "routed"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert records[0].gateway_checked is False

    def test_unknown_nic_index_warns_and_is_not_routed(self, gateway):
        topology = FakeTopology({"routed": gateway})
        resolver = GatewayTopologyResolver(topology, "vm-1")
        records = build_records([0, 9])

        with patch('vmdhcp.services.gateway_topology.logger') as mock_logger:
            resolver.resolve_for_records(records, {0: "routed"})

        assert records[0].gateway == gateway
        assert records[1].gateway is None
        assert records[1].gateway_checked
        mock_logger.warning.assert_called_once()
        assert "no NIC with index 9" in mock_logger.warning.call_args[0][0]
        assert topology.calls == ["routed"]
