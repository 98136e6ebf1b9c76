"""
Test CLI commands
"""

from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from vmdhcp.cli.main import cli, EXIT_ERROR, EXIT_INCOMPLETE
from vmdhcp.core.exceptions import AddressResolutionError, CollaboratorError, NotFoundError
from vmdhcp.domain.entities.nic_tracking import NicTrackingRecord, ResolutionSource
from vmdhcp.services.address_resolution import ResolutionResult

from conftest import lease


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def manager():
    with patch('vmdhcp.cli.main.get_manager_lazy') as mock_get:
        mgr = Mock()
        mock_get.return_value = mgr
        yield mgr


def resolved_result(*addresses, timed_out=False):
    records = []
    for index, address in enumerate(addresses):
        record = NicTrackingRecord(nic_index=index, mac_address=f"52:54:00:00:00:0{index}")
        record.resolve(address, ResolutionSource.GUEST_AGENT)
        records.append(record)
    return ResolutionResult(addresses=list(addresses), timed_out=timed_out, records=records)


class TestCLIBasics:
    """Group options"""

    def test_version(self, runner):
        result = runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert "vmdhcp v0.1.0" in result.output

    def test_help_without_command(self, runner):
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "wait" in result.output
        assert "leases" in result.output

    def test_connect_uri_passed_to_settings(self, runner, manager):
        manager.wait_for_dhcp_ips.return_value = resolved_result("10.0.0.5")

        with patch('vmdhcp.cli.main.get_manager_lazy', return_value=manager) as mock_get:
            result = runner.invoke(cli, ['--connect', 'test:///default', 'wait', 'vm-1'])

        assert result.exit_code == 0
        assert mock_get.call_args[0][0].libvirt_uri == "test:///default"


class TestWaitCommand:
    """vmdhcp wait"""

    def test_all_resolved(self, runner, manager):
        manager.wait_for_dhcp_ips.return_value = resolved_result("10.0.0.5", "10.0.0.6")

        result = runner.invoke(cli, ['wait', 'vm-1', '-n', '0', '-n', '1', '--max-wait', '60'])

        assert result.exit_code == 0
        assert "10.0.0.5" in result.output
        assert "All NICs resolved" in result.output
        manager.wait_for_dhcp_ips.assert_called_once_with(
            'vm-1', [0, 1], max_wait_seconds=60, use_lease_fallback=None
        )

    def test_default_nic_and_lease_fallback_flag(self, runner, manager):
        manager.wait_for_dhcp_ips.return_value = resolved_result("10.0.0.5")

        result = runner.invoke(cli, ['wait', 'vm-1', '--lease-fallback'])

        assert result.exit_code == 0
        manager.wait_for_dhcp_ips.assert_called_once_with(
            'vm-1', [0], max_wait_seconds=None, use_lease_fallback=True
        )

    def test_timeout_exit_code(self, runner, manager):
        manager.wait_for_dhcp_ips.return_value = resolved_result("10.0.0.5", "", timed_out=True)

        result = runner.invoke(cli, ['wait', 'vm-1', '-n', '0', '-n', '1'])

        assert result.exit_code == EXIT_INCOMPLETE
        assert "Timed out: 1/2 NICs resolved" in result.output

    def test_fatal_error_exit_code(self, runner, manager):
        manager.wait_for_dhcp_ips.side_effect = AddressResolutionError(
            "could not check IP addresses assigned to VM vm-1", operation="observe NICs"
        )

        result = runner.invoke(cli, ['wait', 'vm-1'])

        assert result.exit_code == EXIT_ERROR

    def test_invalid_nic_index_rejected_by_click(self, runner, manager):
        result = runner.invoke(cli, ['wait', 'vm-1', '-n', 'eth0'])

        assert result.exit_code == 2
        manager.wait_for_dhcp_ips.assert_not_called()


class TestLeaseCommands:
    """vmdhcp leases / vmdhcp lease"""

    def test_leases(self, runner, manager):
        manager.get_all_dhcp_leases.return_value = [
            lease("52:54:00:00:00:01", "10.0.0.5"),
            lease("52:54:00:00:00:02", "10.0.0.6", state="expired"),
        ]

        result = runner.invoke(cli, ['leases', 'default'])

        assert result.exit_code == 0
        assert "10.0.0.5" in result.output
        assert "10.0.0.6" in result.output

    def test_leases_active_only(self, runner, manager):
        manager.get_all_dhcp_leases.return_value = [
            lease("52:54:00:00:00:01", "10.0.0.5"),
            lease("52:54:00:00:00:02", "10.0.0.6", state="expired"),
        ]

        result = runner.invoke(cli, ['leases', 'default', '--active-only'])

        assert result.exit_code == 0
        assert "10.0.0.6" not in result.output

    def test_leases_empty(self, runner, manager):
        manager.get_all_dhcp_leases.return_value = []

        result = runner.invoke(cli, ['leases', 'default'])

        assert result.exit_code == 0
        assert "No DHCP leases" in result.output

    def test_leases_on_unrouted_network(self, runner, manager):
        manager.get_all_dhcp_leases.side_effect = NotFoundError("network isolated is not routed")

        result = runner.invoke(cli, ['leases', 'isolated'])

        assert result.exit_code == EXIT_ERROR

    def test_lease(self, runner, manager):
        manager.get_active_dhcp_lease_by_mac.return_value = lease("52:54:00:00:00:01", "10.0.0.5")

        result = runner.invoke(cli, ['lease', 'default', '52:54:00:00:00:01'])

        assert result.exit_code == 0
        assert result.output.strip() == "10.0.0.5"

    def test_lease_not_found(self, runner, manager):
        manager.get_active_dhcp_lease_by_mac.side_effect = NotFoundError("no active DHCP lease")

        result = runner.invoke(cli, ['lease', 'default', '52:54:00:00:00:01'])

        assert result.exit_code == EXIT_INCOMPLETE

    def test_lease_collaborator_failure(self, runner, manager):
        manager.get_active_dhcp_lease_by_mac.side_effect = CollaboratorError("connection refused")

        result = runner.invoke(cli, ['lease', 'default', '52:54:00:00:00:01'])

        assert result.exit_code == EXIT_ERROR
