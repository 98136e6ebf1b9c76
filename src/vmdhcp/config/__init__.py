"""Configuration Module"""

from .settings import VMDhcpSettings

__all__ = ['VMDhcpSettings']
