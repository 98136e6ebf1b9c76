"""
vmdhcp Tools Module

libvirt backed entry points for DHCP address discovery.
"""

from .vm_ip_manager import VMIPManager, wait_for_dhcp_ips

__all__ = ["VMIPManager", "wait_for_dhcp_ips"]
