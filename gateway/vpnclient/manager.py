"""VPN client gateway management: wires tunnels, routes and device access."""

from typing import Optional

from .access import AccessController
from .client import OpenVPNClient
from .directory import DeviceDirectory, JsonFileDeviceDirectory
from .enforcer import RouteEnforcer
from .models import EnabledDevice, interface_name
from .network import NetworkInfo
from .registry import ClientRegistry
from .routing import IPRouting
from .settings import Settings
from .utils import CommandRunner, run_command
from ..logging_utility import logger


class VPNClientManager:
    def __init__(self, config_file: Optional[str] = None, settings: Optional[Settings] = None,
                 routing: Optional[IPRouting] = None, directory: Optional[DeviceDirectory] = None,
                 network: Optional[NetworkInfo] = None, runner: CommandRunner = run_command):
        self.settings = settings or Settings.from_file(config_file)
        self.runner = runner
        self.routing = routing or IPRouting(self.settings.rt_tables, self.settings.table_id_base, runner=runner,
                                            use_sudo=self.settings.use_sudo)
        self.directory = directory or JsonFileDeviceDirectory(self.settings.device_file)
        self.network = network or NetworkInfo(
            overlay_subnet=self.settings.overlay_subnet,
            mode_file=self.settings.mode_file,
            default_mode=self.settings.default_mode,
        )
        self.enforcer = RouteEnforcer(self.routing, self.settings.table_prefix)
        self.access = AccessController(self.enforcer, self.directory, self.network,
                                       reconcile_interval=self.settings.reconcile_interval)
        self.clients: ClientRegistry[OpenVPNClient] = ClientRegistry(self._create_client)

    def _create_client(self, profile_id: str) -> OpenVPNClient:
        logger.info(f"Creating OpenVPN client for profile {profile_id}")
        return OpenVPNClient(profile_id, self.enforcer, settings=self.settings, runner=self.runner)

    def get_client(self, profile_id: str) -> OpenVPNClient:
        """Return the single client for ``profile_id``, creating it on first use."""
        return self.clients.get(profile_id)

    def start(self) -> None:
        """Start periodic reconciliation of device rules."""
        self.access.start()

    async def shutdown(self) -> None:
        """Stop background loops; tunnels and rules are left in place."""
        self.access.stop()
        for client in self.clients.values():
            client.cancel_refresh()

    async def enable_vpn_access(self, mac: str, mode: str, profile_id: str) -> bool:
        return await self.access.enable(mac, mode, interface_name(profile_id))

    async def disable_vpn_access(self, mac: str) -> None:
        await self.access.disable(mac)

    def list_vpn_access(self) -> list[EnabledDevice]:
        return self.access.enabled_devices
