"""
LibVirt Connection Manager

Address polling performs a few short reads per tick, so every read opens its
own connection and closes it when done. No pooling, no keepalive.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

import libvirt

from vmdhcp.core.unified_logger import get_logger
from vmdhcp.core.exceptions import CollaboratorError, NotFoundError, VMDhcpException

logger = get_logger(__name__, "libvirt_connection_manager")

# libvirt error codes that mean "the object does not exist"
NOT_FOUND_ERROR_CODES = (
    libvirt.VIR_ERR_NO_DOMAIN,
    libvirt.VIR_ERR_NO_NETWORK,
)


def translate_libvirt_error(error: libvirt.libvirtError, operation: str, **context) -> VMDhcpException:
    """NotFoundError for missing domains/networks, CollaboratorError for everything else"""
    error_class = NotFoundError if error.get_error_code() in NOT_FOUND_ERROR_CODES else CollaboratorError
    return error_class(f"{operation}: {error}", operation=operation, **context)


class LibvirtConnectionManager:
    """Opens short-lived connections to one libvirt URI"""

    def __init__(self, uri: str = "qemu:///system"):
        self.uri = uri

    def get_connection(self) -> libvirt.virConnect:
        """
        Open a new connection; the caller closes it.

        Raises:
            CollaboratorError: hypervisor unreachable or access denied
        """
        try:
            conn = libvirt.open(self.uri)
        except libvirt.libvirtError as e:
            logger.error(f"Cannot connect to {self.uri}: {e}")
            raise CollaboratorError(
                f"cannot connect to libvirt at {self.uri}: {e}", operation="connect", uri=self.uri
            ) from e

        if conn is None:
            raise CollaboratorError(
                f"cannot connect to libvirt at {self.uri}", operation="connect", uri=self.uri
            )
        return conn

    @contextmanager
    def connection(self) -> Iterator[libvirt.virConnect]:
        """Connection closed on exit, close errors are only logged"""
        conn = self.get_connection()
        try:
            yield conn
        finally:
            try:
                conn.close()
            except libvirt.libvirtError as e:
                logger.debug(f"Closing connection to {self.uri} failed: {e}")


_managers: Dict[str, LibvirtConnectionManager] = {}
_managers_lock = threading.Lock()


def get_connection_manager(uri: str = "qemu:///system") -> LibvirtConnectionManager:
    """Shared manager for a URI, created on first use"""
    with _managers_lock:
        manager = _managers.get(uri)
        if manager is None:
            manager = _managers[uri] = LibvirtConnectionManager(uri)
        return manager
