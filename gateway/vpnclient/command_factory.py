"""Factory for creating VPN client related commands."""

from pathlib import Path
from typing import Optional
from .commands import (
    BASH,
    CAT,
    IP_ADDR_SHOW,
    IP_ROUTE_LIST,
    IP_ROUTE_ADD,
    IP_ROUTE_DEL,
    IP_ROUTE_FLUSH,
    IP_RULE_ADD,
    IP_RULE_DEL,
    OPENVPN_VERSION,
    SYSTEMCTL_START,
    SYSTEMCTL_STOP,
    SYSTEMCTL_DISABLE,
    SYSTEMCTL_IS_ACTIVE,
)


class VPNCommandFactory:
    """Factory for creating VPN client management commands."""

    def __init__(self, use_sudo: bool = True):
        self.use_sudo = use_sudo

    def start_service(self, unit: str) -> list[str]:
        """Create systemd start command for a client unit."""
        return SYSTEMCTL_START.with_arg(unit).as_sudo(self.use_sudo).build()

    def stop_service(self, unit: str) -> list[str]:
        return SYSTEMCTL_STOP.with_arg(unit).as_sudo(self.use_sudo).build()

    def disable_service(self, unit: str) -> list[str]:
        return SYSTEMCTL_DISABLE.with_arg(unit).as_sudo(self.use_sudo).build()

    def service_is_active(self, unit: str) -> list[str]:
        """Create unit status command; exit code 0 means active."""
        return SYSTEMCTL_IS_ACTIVE.with_arg(unit).build()

    def openvpn_version(self) -> list[str]:
        return OPENVPN_VERSION.build()

    def show_addresses(self, interface: str) -> list[str]:
        """Create one-line-per-address listing for an interface."""
        return IP_ADDR_SHOW.with_keywords(dev=interface).build()

    def list_routes(self, table: str = "main") -> list[str]:
        return IP_ROUTE_LIST.with_keywords(table=table).build()

    def add_route(self, destination: str, gateway: Optional[str], interface: Optional[str], table: str) -> list[str]:
        """Create route add command for a custom table."""
        cmd = IP_ROUTE_ADD.with_arg(destination)
        if gateway:
            cmd = cmd.with_keywords(via=gateway)
        if interface:
            cmd = cmd.with_keywords(dev=interface)
        return cmd.with_keywords(table=table).as_sudo(self.use_sudo).build()

    def add_route_spec(self, spec: list[str], table: str) -> list[str]:
        """Create route add command from a route line printed by ``ip route``."""
        return IP_ROUTE_ADD.with_args(*spec).with_keywords(table=table).as_sudo(self.use_sudo).build()

    def delete_route(self, destination: str, gateway: Optional[str], interface: Optional[str], table: str) -> list[str]:
        cmd = IP_ROUTE_DEL.with_arg(destination)
        if gateway:
            cmd = cmd.with_keywords(via=gateway)
        if interface:
            cmd = cmd.with_keywords(dev=interface)
        return cmd.with_keywords(table=table).as_sudo(self.use_sudo).build()

    def flush_routing_table(self, table: str) -> list[str]:
        """Command to flush routing table."""
        return IP_ROUTE_FLUSH.with_keywords(table=table).as_sudo(self.use_sudo).build()

    def add_routing_rule(self, source_ip: str, table: str) -> list[str]:
        return IP_RULE_ADD.with_keywords(from_=source_ip, table=table).as_sudo(self.use_sudo).build()

    def delete_routing_rule(self, source_ip: str, table: Optional[str] = None) -> list[str]:
        """Command to delete routing rule, optionally scoped to a table."""
        cmd = IP_RULE_DEL.with_keywords(from_=source_ip)
        if table:
            cmd = cmd.with_keywords(table=table)
        return cmd.as_sudo(self.use_sudo).build()

    def read_routing_tables(self, rt_tables: Path) -> list[str]:
        """Command to read routing tables."""
        return CAT.with_arg(str(rt_tables)).build()

    def write_routing_tables(self, content: str, rt_tables: Path) -> list[str]:
        """Command to append to routing tables."""
        return BASH.with_args("-c", f"echo '{content}' >> {rt_tables}").as_sudo(self.use_sudo).build()
