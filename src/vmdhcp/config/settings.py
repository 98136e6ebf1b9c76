"""
vmdhcp settings

Values come from keyword arguments or VMDHCP_* environment variables,
e.g. VMDHCP_TICK_INTERVAL_SECONDS=1.5.
"""
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class VMDhcpSettings(BaseSettings):
    """vmdhcp configuration"""

    # Hypervisor connection
    libvirt_uri: str = Field(
        default="qemu:///system",
        description="libvirt connection URI"
    )

    # Polling configuration
    tick_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Interval between two observation passes"
    )

    default_max_wait_seconds: int = Field(
        default=300,
        gt=0,
        description="Wait budget used when the caller does not supply one"
    )

    use_lease_fallback: bool = Field(
        default=False,
        description="Whether to consult gateway DHCP leases when guest agent reports nothing"
    )

    lease_fallback_min_wait_seconds: int = Field(
        default=0,
        ge=0,
        description="Minimum wait budget applied when lease fallback is enabled (0 disables)"
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Console log level"
    )

    log_file: Optional[Path] = Field(
        default=None,
        description="Optional structured log file"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is a known logging level name"""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('log_file')
    @classmethod
    def ensure_absolute_path(cls, v):
        """Ensure path is absolute"""
        if v is not None and not v.is_absolute():
            v = v.resolve()
        return v

    def effective_max_wait(self, max_wait_seconds: int, use_lease_fallback: bool) -> int:
        """Apply the optional lease fallback floor to a caller supplied wait budget"""
        if use_lease_fallback and self.lease_fallback_min_wait_seconds > 0:
            return max(max_wait_seconds, self.lease_fallback_min_wait_seconds)
        return max_wait_seconds

    model_config = {
        "env_prefix": "VMDHCP_",
        "case_sensitive": False
    }
