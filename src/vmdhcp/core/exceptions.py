"""
Exception Handling

Small exception hierarchy for DHCP address discovery. Expected negative
outcomes (NotFoundError) are kept apart from fatal collaborator failures so
the resolution loop can turn the former into state and propagate the latter.
"""

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


class VMDhcpException(Exception):
    """Base exception class for vmdhcp"""

    # Expected outcomes override this to stay out of the error log
    log_level = logging.ERROR

    def __init__(self, message: str, operation: str = "unknown", **kwargs):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context: Dict[str, Any] = kwargs

        logger.log(self.log_level, f"* ERROR: vmdhcp: {operation}: {message}")


class InvalidArgumentError(VMDhcpException, ValueError):
    """Malformed caller input, detected before any I/O"""
    pass


class NotFoundError(VMDhcpException):
    """Expected negative result (no gateway, no lease table, no lease)"""

    log_level = logging.DEBUG


class CollaboratorError(VMDhcpException):
    """Infrastructure failure reported by a collaborator (libvirt, agent)"""
    pass


class AddressResolutionError(VMDhcpException):
    """Fatal failure of an address resolution call"""

    @property
    def vm_name(self):
        return self.context.get('vm_name')

    @property
    def nic_index(self):
        return self.context.get('nic_index')

    @property
    def gateway(self):
        return self.context.get('gateway')

