"""
vmdhcp - DHCP address discovery for virtual machine NICs
"""

__version__ = "0.1.0"
