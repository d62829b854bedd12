"""Per-tunnel routing table synthesis."""

from .exceptions import ExternalCommandFailure, InterfaceError
from .registry import KeyedLock
from .routing import IPRouting
from ..logging_utility import logger


VPN_CLIENT_RULE_TABLE = "vpn_client"


class RouteEnforcer:
    """
    Builds the routing table devices are policy-routed into.

    The table mirrors the main table without its default route and adds a
    default route through the tunnel's remote gateway, so routed devices keep
    LAN reachability and only default-bound traffic enters the tunnel.
    """

    def __init__(self, routing: IPRouting, table_prefix: str = VPN_CLIENT_RULE_TABLE):
        self.routing = routing
        self.table_prefix = table_prefix
        self._locks = KeyedLock()

    def table_name(self, interface: str) -> str:
        return f"{self.table_prefix}_{interface}"

    async def ensure_table(self, interface: str) -> str:
        if not interface:
            raise InterfaceError("Interface is not specified")
        table = self.table_name(interface)
        await self.routing.create_table(table)
        return table

    async def enforce_routes(self, remote_ip: str, interface: str) -> None:
        """
        Rebuild the table for ``interface`` with a default route via ``remote_ip``.

        Args:
            remote_ip: Tunnel peer address
            interface: Tunnel device name

        Raises:
            InterfaceError: if no interface is given
            ExternalCommandFailure: if the default route cannot be installed
        """
        if not interface:
            raise InterfaceError("Interface is not specified")
        async with self._locks(interface):
            table = await self.ensure_table(interface)
            await self.routing.flush_table(table)
            routes = [route for route in await self.routing.list_routes("main")
                      if route.split()[0] != "default"]
            for route in routes:
                try:
                    await self.routing.add_route_spec(route, table)
                except ExternalCommandFailure as e:
                    logger.error(f"Failed to copy route '{route}' to {table}: {e}")
            await self.routing.add_route("default", remote_ip, interface, table)
            logger.info(f"Routes of {table} enforced via {remote_ip} on {interface} "
                        f"({len(routes)} mirrored)")

    async def flush_routes(self, interface: str) -> None:
        """Empty the table for ``interface``, keeping the table itself."""
        if not interface:
            raise InterfaceError("Interface is not specified")
        async with self._locks(interface):
            table = await self.ensure_table(interface)
            await self.routing.flush_table(table)
            logger.info(f"Routes of {table} flushed")
