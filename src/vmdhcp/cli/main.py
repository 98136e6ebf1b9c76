#!/usr/bin/env python3
"""
vmdhcp Command Line Interface
Heavy modules (libvirt) are imported lazily so --help and --version stay fast.
"""
import sys
import click
from typing import Optional, Tuple

from vmdhcp import __version__
from vmdhcp.core.exceptions import VMDhcpException, NotFoundError
from vmdhcp.core.unified_logger import LoggerFactory

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INCOMPLETE = 3


def get_settings_lazy(**overrides):
    """Lazy import and create settings"""
    from vmdhcp.config.settings import VMDhcpSettings
    return VMDhcpSettings(**overrides)


def get_manager_lazy(settings):
    """Lazy import of the libvirt backed manager"""
    from vmdhcp.tools.vm_ip_manager import VMIPManager
    return VMIPManager(settings)


def get_display():
    from .presentation.display import ResolutionDisplayManager
    return ResolutionDisplayManager()


def get_config(ctx):
    """Get settings from context (lazy loading)"""
    ctx.ensure_object(dict)
    if 'config' not in ctx.obj:
        overrides = {}
        if ctx.obj.get('uri'):
            overrides['libvirt_uri'] = ctx.obj['uri']
        settings = get_settings_lazy(**overrides)
        level = "DEBUG" if ctx.obj.get('verbose') else settings.log_level
        LoggerFactory.configure(level=level, file_path=settings.log_file)
        ctx.obj['config'] = settings
    return ctx.obj['config']


@click.group(invoke_without_command=True)
@click.option('--connect', '-c', 'uri', help='libvirt connection URI (overrides VMDHCP_LIBVIRT_URI)')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--version', is_flag=True, help='Show version information')
@click.pass_context
def cli(ctx, uri: Optional[str], verbose: bool, version: bool):
    """vmdhcp - wait for DHCP addresses of virtual machine NICs"""
    if version:
        click.echo(f"vmdhcp v{__version__}")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()

    ctx.ensure_object(dict)
    ctx.obj['uri'] = uri
    ctx.obj['verbose'] = verbose


@cli.command()
@click.argument('vm_name')
@click.option('--nic', '-n', 'nic_indexes', type=int, multiple=True, default=(0,), show_default=True,
              help='NIC index to resolve (repeatable)')
@click.option('--max-wait', type=int, help='Maximum seconds to wait (default from settings)')
@click.option('--lease-fallback/--no-lease-fallback', default=None,
              help='Also check DHCP leases of gateway routed networks')
@click.pass_context
def wait(ctx, vm_name: str, nic_indexes: Tuple[int, ...], max_wait: Optional[int],
         lease_fallback: Optional[bool]):
    """Wait until NICs of a VM report DHCP addresses

    VM_NAME: libvirt domain name
    """
    settings = get_config(ctx)
    display = get_display()

    try:
        manager = get_manager_lazy(settings)
        result = manager.wait_for_dhcp_ips(
            vm_name,
            list(nic_indexes),
            max_wait_seconds=max_wait,
            use_lease_fallback=lease_fallback
        )
    except VMDhcpException as e:
        display.display_error(e.message)
        sys.exit(EXIT_ERROR)

    display.display_resolution(vm_name, nic_indexes, result)
    if result.timed_out or result.cancelled:
        sys.exit(EXIT_INCOMPLETE)


@cli.command()
@click.argument('network_name')
@click.option('--active-only', is_flag=True, help='Only show active leases')
@click.pass_context
def leases(ctx, network_name: str, active_only: bool):
    """List DHCP leases of a gateway routed network

    NETWORK_NAME: libvirt network name
    """
    settings = get_config(ctx)
    display = get_display()

    try:
        all_leases = get_manager_lazy(settings).get_all_dhcp_leases(network_name)
    except VMDhcpException as e:
        display.display_error(e.message)
        sys.exit(EXIT_ERROR)

    if active_only:
        all_leases = [lease for lease in all_leases if lease.is_active]
    display.display_leases(network_name, all_leases)


@cli.command()
@click.argument('network_name')
@click.argument('mac')
@click.pass_context
def lease(ctx, network_name: str, mac: str):
    """Show the active DHCP lease of a MAC address

    NETWORK_NAME: libvirt network name
    MAC: client MAC address
    """
    settings = get_config(ctx)
    display = get_display()

    try:
        found = get_manager_lazy(settings).get_active_dhcp_lease_by_mac(network_name, mac)
    except NotFoundError as e:
        display.display_error(e.message)
        sys.exit(EXIT_INCOMPLETE)
    except VMDhcpException as e:
        display.display_error(e.message)
        sys.exit(EXIT_ERROR)

    click.echo(found.ip_address)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
