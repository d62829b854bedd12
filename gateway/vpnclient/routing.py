"""Routing table and policy rule primitives built on iproute2."""

import asyncio
from pathlib import Path
from typing import Optional

from .command_factory import VPNCommandFactory
from .exceptions import ExternalCommandFailure, TransientRouteError
from .utils import CommandRunner, run_command
from ..logging_utility import logger


# stderr fragments iproute2 prints when the thing being deleted is not there
ABSENT_MARKERS = ("No such process", "Cannot find", "No such file or directory")
EXISTS_MARKER = "File exists"
RESERVED_TABLE_IDS = {0, 253, 254, 255}


class IPRouting:
    """Create/flush named routing tables and manage routes and source rules."""

    def __init__(self, rt_tables: Path = Path("/etc/iproute2/rt_tables"), table_id_base: int = 100,
                 runner: CommandRunner = run_command, use_sudo: bool = True):
        self.rt_tables = Path(rt_tables)
        self.table_id_base = table_id_base
        self.runner = runner
        self.commands = VPNCommandFactory(use_sudo)
        self.runner = runner
        self._tables_lock = asyncio.Lock()

    async def _read_tables(self) -> dict[str, int]:
        stdout, _ = await self.runner(self.commands.read_routing_tables(self.rt_tables))
        tables = {}
        for line in stdout.splitlines():
            parts = line.split('#', 1)[0].split()
            if len(parts) >= 2 and parts[0].isdigit():
                tables[parts[1]] = int(parts[0])
        return tables

    async def create_table(self, name: str) -> None:
        """Register ``name`` in rt_tables unless it is already there."""
        async with self._tables_lock:
            tables = await self._read_tables()
            if name in tables:
                return
            used = set(tables.values()) | RESERVED_TABLE_IDS
            table_id = self.table_id_base
            while table_id in used:
                table_id += 1
            logger.info(f"Adding routing table {name} with id {table_id}")
            await self.runner(self.commands.write_routing_tables(f"{table_id} {name}", self.rt_tables))

    async def flush_table(self, name: str) -> None:
        await self.runner(self.commands.flush_routing_table(name))

    async def list_routes(self, table: str = "main") -> list[str]:
        stdout, _ = await self.runner(self.commands.list_routes(table))
        return [line.strip() for line in stdout.splitlines() if line.strip()]

    async def add_route(self, destination: str, gateway: Optional[str], interface: Optional[str], table: str) -> None:
        await self.runner(self.commands.add_route(destination, gateway, interface, table))

    async def add_route_spec(self, spec: str, table: str) -> None:
        """Copy a route line as printed by ``ip route list`` into ``table``."""
        await self.runner(self.commands.add_route_spec(spec.split(), table))

    async def remove_route(self, destination: str, gateway: Optional[str], interface: Optional[str],
                           table: str) -> None:
        await self._remove(self.commands.delete_route(destination, gateway, interface, table))

    async def add_rule(self, source_ip: str, table: str) -> None:
        try:
            await self.runner(self.commands.add_routing_rule(source_ip, table))
        except ExternalCommandFailure as e:
            if EXISTS_MARKER not in e.stderr:
                raise
            logger.debug(f"Routing rule from {source_ip} to {table} already exists")

    async def remove_rule(self, source_ip: str, table: Optional[str] = None) -> None:
        await self._remove(self.commands.delete_routing_rule(source_ip, table))

    async def _remove(self, cmd: list[str]) -> None:
        try:
            await self.runner(cmd)
        except TransientRouteError:
            raise
        except ExternalCommandFailure as e:
            if any(marker in e.stderr for marker in ABSENT_MARKERS):
                raise TransientRouteError(e.cmd, e.returncode, e.stderr)
            raise
