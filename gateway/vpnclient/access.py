"""Per-device VPN client access through source policy rules."""

import asyncio
from typing import Dict, Optional

from .directory import DeviceDirectory
from .enforcer import RouteEnforcer
from .exceptions import (
    DeviceNotFoundError,
    ExternalCommandFailure,
    InterfaceError,
    TransientRouteError,
    UnsupportedModeError,
)
from .models import AccessMode, DeviceRecord, EnabledDevice
from .network import NetworkInfo
from .registry import KeyedLock
from ..logging_utility import logger


class AccessController:
    """
    Tracks devices enabled for VPN client access and keeps their policy
    rules in line with the device directory.

    A device is eligible when its address was handed out on the secondary
    (overlay) interface or DHCP spoof mode is on. Only eligible devices that
    are also monitored get a rule; everyone else keeps the main table.
    """

    def __init__(self, enforcer: RouteEnforcer, directory: DeviceDirectory, network: NetworkInfo,
                 reconcile_interval: float = 300.0):
        self.enforcer = enforcer
        self.routing = enforcer.routing
        self.directory = directory
        self.network = network
        self.reconcile_interval = reconcile_interval
        self.enabled_hosts: Dict[str, EnabledDevice] = {}
        self._locks = KeyedLock()
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def enabled_devices(self) -> list[EnabledDevice]:
        return list(self.enabled_hosts.values())

    def _is_eligible(self, host: DeviceRecord) -> bool:
        return self.network.is_secondary_interface_ip(host.ipv4_addr) or self.network.is_dhcp_spoof_mode_on()

    async def _remove_rule(self, ip: Optional[str], table: Optional[str] = None) -> None:
        if not ip:
            return
        try:
            await self.routing.remove_rule(ip, table)
        except TransientRouteError:
            logger.info(f"No policy routing rule for {ip} to remove")
        except ExternalCommandFailure as e:
            logger.error(f"Failed to remove policy routing rule for {ip}: {e}")

    async def enable(self, mac: str, mode, interface: str) -> bool:
        """
        Grant ``mac`` access to the tunnel on ``interface``.

        Returns:
            bool: True if a policy rule was installed right away
        """
        try:
            access_mode = AccessMode.parse(mode)
        except UnsupportedModeError as e:
            logger.error(str(e))
            return False
        if not interface:
            raise InterfaceError("interface is not defined")

        mac = mac.lower()
        async with self._locks(mac):
            table = await self.enforcer.ensure_table(interface)
            host = await self.directory.get_device(mac)
            if host is None:
                raise DeviceNotFoundError(f"Device {mac} is not found")
            self.enabled_hosts[mac] = EnabledDevice(mac=mac, mode=access_mode, interface=interface, host=host)

            await self.network.reload_setup_mode()
            if not self._is_eligible(host):
                logger.warning(f"IP address {host.ipv4_addr} is not assigned by secondary interface, "
                               f"vpn access of {mac} is suspended.")
                return False

            await self._remove_rule(host.ipv4_addr)
            if not host.monitored or not host.ipv4_addr:
                logger.info(f"Device {mac} is not monitored, vpn client rule is not added")
                return False
            logger.info(f"Add vpn client routing rule for {host.ipv4_addr}")
            await self.routing.add_rule(host.ipv4_addr, table)
            return True

    async def disable(self, mac: str) -> None:
        mac = mac.lower()
        async with self._locks(mac):
            device = self.enabled_hosts.get(mac)
            if device is None:
                return
            await self._remove_rule(device.host.ipv4_addr, self.enforcer.table_name(device.interface))
            del self.enabled_hosts[mac]
            logger.info(f"VPN client access of {mac} disabled")

    async def _refresh_host(self, mac: str) -> None:
        async with self._locks(mac):
            device = self.enabled_hosts.get(mac)
            if device is None:
                # disabled while the pass was running
                return
            old_host = device.host
            table = self.enforcer.table_name(device.interface)
            host = await self.directory.get_device(mac)
            if host is None:
                logger.warning(f"Device {mac} disappeared, removing its vpn client rule")
                await self._remove_rule(old_host.ipv4_addr, table)
                return

            eligible = self._is_eligible(host)
            if host.ipv4_addr != old_host.ipv4_addr or not eligible or not host.monitored:
                await self._remove_rule(old_host.ipv4_addr, table)
            if eligible and host.monitored and host.ipv4_addr:
                await self.routing.add_rule(host.ipv4_addr, table)
            device.host = host

    async def refresh_rules(self) -> None:
        """One reconciliation pass over every enabled device."""
        await self.network.reload_setup_mode()
        macs = list(self.enabled_hosts)
        results = await asyncio.gather(*(self._refresh_host(mac) for mac in macs), return_exceptions=True)
        for mac, result in zip(macs, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to refresh vpn client rule for {mac}: {result}")

    async def _refresh_rules_loop(self) -> None:
        while True:
            await asyncio.sleep(self.reconcile_interval)
            logger.info("Check and refresh routing rule for VPN client...")
            try:
                await self.refresh_rules()
            except Exception as e:
                logger.error(f"Failed to refresh routing rule for VPN client: {e}")

    def start(self) -> None:
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_rules_loop())

    def stop(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
