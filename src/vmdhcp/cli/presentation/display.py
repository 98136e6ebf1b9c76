"""
显示管理器 - 地址解析结果与DHCP租约的表格显示
"""

from typing import List, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.markup import escape

from vmdhcp.domain.entities.network import DhcpLease
from vmdhcp.services.address_resolution import ResolutionResult


class ResolutionDisplayManager:
    """Renders resolution results and lease tables"""

    def __init__(self, console: Optional[Console] = None, error_console: Optional[Console] = None):
        self.console = console or Console()
        self.error_console = error_console or Console(stderr=True, style="bold red")

    def display_resolution(self, vm_name: str, nic_indexes: Sequence[int], result: ResolutionResult) -> None:
        """显示NIC地址解析结果"""
        table = Table(title=f"DHCP addresses for {escape(vm_name)}")
        table.add_column("NIC", justify="right")
        table.add_column("MAC")
        table.add_column("IP address")
        table.add_column("Source", style="dim")

        records = result.records or []
        for position, index in enumerate(nic_indexes):
            address = result.addresses[position]
            record = records[position] if position < len(records) else None
            table.add_row(
                str(index),
                record.mac_address if record and record.mac_address else "-",
                address if address else Text("unresolved", style="yellow"),
                (record.source or "-") if record else "-"
            )

        self.console.print(table)

        if result.cancelled:
            self.console.print(Text("Cancelled before all NICs resolved", style="yellow"))
        elif result.timed_out:
            self.console.print(Text(
                f"Timed out: {result.resolved_count}/{len(result.addresses)} NICs resolved",
                style="yellow"
            ))
        else:
            self.console.print(Text("All NICs resolved", style="green"))

    def display_leases(self, network_name: str, leases: List[DhcpLease]) -> None:
        """显示DHCP租约列表"""
        if not leases:
            self.console.print(f"[dim]No DHCP leases on {escape(network_name)}[/dim]")
            return

        table = Table(title=f"DHCP leases on {escape(network_name)}")
        table.add_column("MAC")
        table.add_column("IP address")
        table.add_column("State")
        table.add_column("Hostname")
        table.add_column("Expires", style="dim")

        for lease in leases:
            state_style = "green" if lease.is_active else "dim"
            table.add_row(
                lease.mac_address,
                lease.ip_address,
                Text(lease.binding_state.value, style=state_style),
                escape(lease.hostname or "-"),
                lease.expiry_time.isoformat(sep=" ") if lease.expiry_time else "never"
            )

        self.console.print(table)

    def display_error(self, message: str) -> None:
        self.error_console.print(f"Error: {escape(message)}")
