"""
Core Module Exports

Exports unified logging system and the exception hierarchy.
"""

from .unified_logger import (
    LoggerFactory,
    LoggerConfig,
    LogFormat,
    UnifiedLogger,
    get_logger,
    LoggingContext
)

from .exceptions import (
    VMDhcpException,
    InvalidArgumentError,
    NotFoundError,
    CollaboratorError,
    AddressResolutionError
)

__all__ = [
    # Unified logging system
    'LoggerFactory',
    'LoggerConfig',
    'LogFormat',
    'UnifiedLogger',
    'get_logger',
    'LoggingContext',

    # Exceptions
    'VMDhcpException',
    'InvalidArgumentError',
    'NotFoundError',
    'CollaboratorError',
    'AddressResolutionError',
]
