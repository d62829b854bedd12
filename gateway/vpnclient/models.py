"""Data models for VPN client management."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import ConfigurationError, UnsupportedModeError


PROFILE_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


class TunnelState(Enum):
    """VPN client tunnel state"""
    INIT = "init"
    STARTING = "starting"
    ESTABLISHED = "established"
    STOPPED = "stopped"
    FAILED = "failed"


class AccessMode(Enum):
    """How a device is steered into a VPN client tunnel"""
    DHCP = "dhcp"

    @classmethod
    def parse(cls, value) -> 'AccessMode':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedModeError(f"Unsupported vpn client mode: {value}")


@dataclass(frozen=True)
class DeviceRecord:
    """Live view of a device as reported by the device directory"""
    mac: str
    ipv4_addr: Optional[str] = None
    monitored: bool = False


@dataclass
class EnabledDevice:
    """A device granted access to a VPN client tunnel"""
    mac: str
    mode: AccessMode
    interface: str
    host: DeviceRecord


def validate_profile_id(profile_id: str) -> str:
    if not profile_id or not PROFILE_ID_PATTERN.match(profile_id):
        raise ConfigurationError(f"Invalid profile id: {profile_id!r}")
    return profile_id


def interface_name(profile_id: str) -> str:
    """Tunnel device name for a profile, e.g. ``abc`` -> ``tun_abc``."""
    return f"tun_{validate_profile_id(profile_id)}"
