"""Network introspection: overlay subnet membership and the setup mode."""

import asyncio
import ipaddress
from pathlib import Path
from typing import Optional

from ..logging_utility import logger


DHCP_SPOOF_MODE = "dhcpSpoof"


class NetworkInfo:
    """
    Answers the two questions device eligibility depends on.

    ``overlay_subnet`` is the secondary interface network handing out
    addresses in DHCP mode. The setup mode is kept in ``mode_file`` by the
    surrounding system and is re-read by :meth:`reload_setup_mode`.
    """

    def __init__(self, overlay_subnet: Optional[str] = None, mode_file: Optional[Path] = None,
                 default_mode: str = "spoof"):
        self.overlay_subnet = ipaddress.ip_network(overlay_subnet, strict=False) if overlay_subnet else None
        self.mode_file = Path(mode_file) if mode_file else None
        self.default_mode = default_mode
        self.mode = default_mode

    def is_secondary_interface_ip(self, ip: Optional[str]) -> bool:
        if not ip or self.overlay_subnet is None:
            return False
        try:
            return ipaddress.ip_address(ip) in self.overlay_subnet
        except ValueError:
            logger.warning(f"Ignoring malformed device address {ip}")
            return False

    def _read_mode(self) -> str:
        if self.mode_file is None or not self.mode_file.exists():
            return self.default_mode
        return self.mode_file.read_text(encoding="utf-8").strip() or self.default_mode

    async def reload_setup_mode(self) -> str:
        try:
            self.mode = await asyncio.to_thread(self._read_mode)
        except (OSError, ValueError) as e:
            # previous mode is kept
            logger.error(f"Failed to read setup mode from {self.mode_file}: {e}")
        return self.mode

    def is_dhcp_spoof_mode_on(self) -> bool:
        return self.mode == DHCP_SPOOF_MODE
