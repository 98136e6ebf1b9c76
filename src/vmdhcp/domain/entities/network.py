"""
Network Observation Entities

Immutable snapshots produced by the collaborators: a NIC as reported by the
network configuration reader, the gateway that routes a network, and a DHCP
lease from that gateway's lease table.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
import ipaddress
from pydantic import BaseModel, Field, field_validator


def normalize_mac(mac: Optional[str]) -> str:
    """Lowercase a MAC address so lease correlation is stable across sources"""
    return (mac or "").strip().lower()


class ValueObject(BaseModel):
    """Immutable snapshot reported by a collaborator"""

    model_config = {
        "frozen": True,
        "str_strip_whitespace": True
    }


class LeaseBindingState(str, Enum):
    """Binding state of a DHCP lease"""
    ACTIVE = "active"
    EXPIRED = "expired"


class NicObservation(ValueObject):
    """One NIC as currently reported by the network configuration reader"""

    index: int = Field(..., ge=0, description="NIC index within the VM")
    network: Optional[str] = Field(default=None, description="Attached network name")
    ip_address: str = Field(default="", description="Guest reported IP, empty when not reported")
    mac_address: str = Field(default="", description="NIC MAC address")
    is_connected: bool = Field(default=True, description="Link state of the NIC")

    @field_validator('mac_address', mode='before')
    @classmethod
    def normalize_mac_address(cls, v):
        return normalize_mac(v)

    @field_validator('ip_address', mode='before')
    @classmethod
    def empty_ip_for_none(cls, v):
        return v or ""


class GatewayRef(ValueObject):
    """Reference to the gateway that routes a network and serves its DHCP"""

    name: str = Field(..., min_length=1, description="Gateway identity")
    bridge: Optional[str] = Field(default=None, description="Bridge device of the gateway")
    address: Optional[str] = Field(default=None, description="Gateway address on the network")

    def __str__(self) -> str:
        return self.name


class DhcpLease(ValueObject):
    """A lease record from a gateway's built-in DHCP server"""

    mac_address: str = Field(..., description="Client MAC address")
    ip_address: str = Field(..., description="Leased IP address")
    binding_state: LeaseBindingState = Field(default=LeaseBindingState.ACTIVE)
    hostname: Optional[str] = Field(default=None, description="Client supplied hostname")
    client_id: Optional[str] = Field(default=None, description="DHCP client identifier")
    expiry_time: Optional[datetime] = Field(default=None, description="Lease end, None for infinite")

    @field_validator('mac_address', mode='before')
    @classmethod
    def normalize_mac_address(cls, v):
        return normalize_mac(v)

    @field_validator('ip_address')
    @classmethod
    def validate_ip_address(cls, v):
        ipaddress.ip_address(v)
        return v

    @property
    def is_active(self) -> bool:
        return self.binding_state == LeaseBindingState.ACTIVE

    def matches(self, mac: str) -> bool:
        """Check whether this lease belongs to the given MAC address"""
        return bool(self.mac_address) and self.mac_address == normalize_mac(mac)
