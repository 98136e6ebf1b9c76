"""Domain Entity Module"""

from .network import (
    NicObservation,
    GatewayRef,
    DhcpLease,
    LeaseBindingState,
    normalize_mac
)
from .nic_tracking import (
    NicTrackingRecord,
    ResolutionSource,
    build_records,
    all_resolved,
    addresses_of
)

__all__ = [
    'NicObservation',
    'GatewayRef',
    'DhcpLease',
    'LeaseBindingState',
    'normalize_mac',
    'NicTrackingRecord',
    'ResolutionSource',
    'build_records',
    'all_resolved',
    'addresses_of'
]
