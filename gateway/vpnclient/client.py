"""OpenVPN client tunnel lifecycle."""

import asyncio
from pathlib import Path
from typing import Optional

from .command_factory import VPNCommandFactory
from .enforcer import RouteEnforcer
from .exceptions import ConfigurationError, ExternalCommandFailure, TransientRouteError
from .models import TunnelState, interface_name, validate_profile_id
from .profile import DUMMY_PASSWORD, parse_version, referenced_files, revise_profile
from .settings import Settings
from .utils import CommandRunner, parse_remote_ip, run_command
from ..logging_utility import logger


# split default routes pushed by most servers, they would send all traffic into the tunnel
SPLIT_DEFAULT_ROUTES = ("0.0.0.0/1", "128.0.0.0/1")


class OpenVPNClient:
    def __init__(self, profile_id: str, enforcer: RouteEnforcer, settings: Optional[Settings] = None,
                 runner: CommandRunner = run_command):
        self.profile_id = validate_profile_id(profile_id)
        self.enforcer = enforcer
        self.settings = settings or Settings()
        self.runner = runner
        self.commands = VPNCommandFactory(self.settings.use_sudo)
        self.state = TunnelState.INIT
        self.remote_ip: Optional[str] = None
        self.intf: Optional[str] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def interface_name(self) -> str:
        return interface_name(self.profile_id)

    @property
    def unit(self) -> str:
        return f"{self.settings.service_name}@{self.profile_id}"

    @property
    def profile_path(self) -> Path:
        return self.settings.profile_dir / f"{self.profile_id}.ovpn"

    @property
    def password_path(self) -> Path:
        return self.settings.profile_dir / f"{self.profile_id}.password"

    async def setup(self) -> None:
        """
        Prepare the profile for the systemd unit.

        Raises:
            ConfigurationError: if the profile is missing or cannot be revised
        """
        if not self.profile_path.exists():
            raise ConfigurationError(f"ovpn file {self.profile_path} is not found")

        try:
            stdout, _ = await self.runner(self.commands.openvpn_version())
        except ExternalCommandFailure as e:
            raise ConfigurationError(f"Failed to query OpenVPN version: {e}")
        version = parse_version(stdout)

        content = await asyncio.to_thread(self.profile_path.read_text)
        revised = revise_profile(content, version, self.interface_name)
        if revised != content:
            await asyncio.to_thread(self.profile_path.write_text, revised)
            logger.info(f"Profile {self.profile_path} revised for OpenVPN {version}")

        for path in referenced_files(revised, self.profile_path.parent):
            if not path.exists():
                logger.warning(f"Profile {self.profile_id} refers to missing file {path}")

        if not self.password_path.exists():
            # openvpn reports a missing file on --askpass without it
            await asyncio.to_thread(self.password_path.write_text, DUMMY_PASSWORD)

    async def get_remote_ip(self) -> Optional[str]:
        stdout, _ = await self.runner(self.commands.show_addresses(self.interface_name), check=False)
        return parse_remote_ip(stdout)

    async def start(self) -> bool:
        """
        Start the unit and wait for the tunnel to come up.

        Returns:
            bool: True once a remote address is seen and routes are enforced,
            False on timeout or error
        """
        self.cancel_refresh()
        self.state = TunnelState.STARTING
        try:
            await self.runner(self.commands.start_service(self.unit))
        except ExternalCommandFailure:
            self.state = TunnelState.FAILED
            raise

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            while True:
                await asyncio.sleep(self.settings.poll_interval)
                remote_ip = await self.get_remote_ip()
                if remote_ip:
                    break
                if loop.time() - started >= self.settings.establish_timeout:
                    logger.error(f"Failed to establish tunnel for OpenVPN client {self.profile_id}")
                    self.state = TunnelState.FAILED
                    return False

            intf = self.interface_name
            await self._remove_split_default_routes(remote_ip, intf)
            await self.enforcer.enforce_routes(remote_ip, intf)
        except Exception as e:
            logger.error(f"Failed to start vpn client {self.profile_id}: {e}")
            self.state = TunnelState.FAILED
            return False

        self.remote_ip = remote_ip
        self.intf = intf
        self.state = TunnelState.ESTABLISHED
        self._refresh_task = asyncio.create_task(self._refresh_routes_loop())
        logger.info(f"OpenVPN client {self.profile_id} established via {remote_ip} on {intf}")
        return True

    async def _remove_split_default_routes(self, remote_ip: str, intf: str) -> None:
        for destination in SPLIT_DEFAULT_ROUTES:
            try:
                await self.enforcer.routing.remove_route(destination, remote_ip, intf, "main")
            except TransientRouteError:
                # depends on server config
                logger.info(f"No {destination} route via {remote_ip} in main table")
            except ExternalCommandFailure as e:
                logger.error(f"Failed to remove {destination} route of vpn client: {e}")

    async def refresh_routes(self) -> None:
        """Re-enforce routes if auto reconnection changed the remote IP or interface."""
        remote_ip = await self.get_remote_ip()
        intf = self.interface_name
        if not remote_ip:
            logger.warning(f"No remote address on {intf}, keeping routes via {self.remote_ip}")
            return
        if remote_ip == self.remote_ip and intf == self.intf:
            return
        logger.info(f"Refresh vpn client routes for {remote_ip}, {intf}")
        await self.enforcer.enforce_routes(remote_ip, intf)
        self.remote_ip = remote_ip
        self.intf = intf

    async def _refresh_routes_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.refresh_interval)
            try:
                await self.refresh_routes()
            except Exception as e:
                logger.error(f"Failed to refresh routes of {self.profile_id}: {e}")

    def cancel_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def stop(self) -> None:
        # no refresh tick may re-enforce routes once they are flushed
        self.cancel_refresh()
        # routes go first so policy rules never point at a dead interface
        await self.enforcer.flush_routes(self.interface_name)
        await self.runner(self.commands.stop_service(self.unit))
        await self.runner(self.commands.disable_service(self.unit))
        self.state = TunnelState.STOPPED
        logger.info(f"OpenVPN client {self.profile_id} stopped")

    async def status(self) -> bool:
        try:
            await self.runner(self.commands.service_is_active(self.unit))
            return True
        except Exception:
            return False
