from typing import Callable, Optional

import pytest

from gateway.vpnclient.directory import InMemoryDeviceDirectory
from gateway.vpnclient.enforcer import RouteEnforcer
from gateway.vpnclient.exceptions import ExternalCommandFailure, TransientRouteError
from gateway.vpnclient.models import DeviceRecord
from gateway.vpnclient.network import NetworkInfo
from gateway.vpnclient.settings import Settings


class FakeRunner:
    """Records commands; ``handler(cmd)`` returns (stdout, stderr) or an exception."""

    def __init__(self, handler: Optional[Callable] = None, events: Optional[list] = None):
        self.handler = handler
        self.calls = []
        self.events = events if events is not None else []

    async def __call__(self, cmd, check=True):
        self.calls.append(cmd)
        self.events.append(("run", " ".join(cmd)))
        result = self.handler(cmd) if self.handler else ("", "")
        if isinstance(result, Exception):
            if check:
                raise result
            return "", str(result)
        return result

    def ran(self, fragment: str) -> bool:
        return any(fragment in " ".join(cmd) for cmd in self.calls)


class FakeRouting:
    """In-memory stand-in for IPRouting."""

    def __init__(self, main_routes=None, events: Optional[list] = None):
        self.tables = {"main": list(main_routes or [])}
        self.rules = []
        self.events = events if events is not None else []

    async def create_table(self, name):
        self.events.append(("create", name))
        self.tables.setdefault(name, [])

    async def flush_table(self, name):
        self.events.append(("flush", name))
        self.tables[name] = []

    async def list_routes(self, table="main"):
        return list(self.tables.get(table, []))

    async def add_route(self, destination, gateway, interface, table):
        self.events.append(("add_route", destination, table))
        self.tables.setdefault(table, []).append(f"{destination} via {gateway} dev {interface}")

    async def add_route_spec(self, spec, table):
        self.tables.setdefault(table, []).append(spec)

    async def remove_route(self, destination, gateway, interface, table):
        route = f"{destination} via {gateway} dev {interface}"
        if route not in self.tables.get(table, []):
            raise TransientRouteError(["ip", "route", "del", destination], 2, "RTNETLINK answers: No such process")
        self.tables[table].remove(route)

    async def add_rule(self, source_ip, table):
        self.events.append(("add_rule", source_ip, table))
        if (source_ip, table) not in self.rules:
            self.rules.append((source_ip, table))

    async def remove_rule(self, source_ip, table=None):
        self.events.append(("remove_rule", source_ip, table))
        for rule in self.rules:
            if rule[0] == source_ip and (table is None or rule[1] == table):
                self.rules.remove(rule)
                return
        raise TransientRouteError(["ip", "rule", "del", "from", source_ip], 2, "RTNETLINK answers: No such file or directory")


class BrokenRemoveRouting(FakeRouting):
    async def remove_rule(self, source_ip, table=None):
        raise ExternalCommandFailure(["ip", "rule", "del"], 1, "RTNETLINK answers: Operation not permitted")


@pytest.fixture
def events():
    return []


@pytest.fixture
def routing(events):
    return FakeRouting(main_routes=[
        "default via 192.168.1.1 dev eth0 proto dhcp metric 100",
        "192.168.1.0/24 dev eth0 proto kernel scope link src 192.168.1.10",
        "192.168.218.0/24 dev eth0:0 proto kernel scope link src 192.168.218.1",
    ], events=events)


@pytest.fixture
def enforcer(routing):
    return RouteEnforcer(routing)


@pytest.fixture
def directory():
    return InMemoryDeviceDirectory()


@pytest.fixture
def network():
    return NetworkInfo(overlay_subnet="192.168.218.0/24")


@pytest.fixture
def fast_settings(tmp_path):
    return Settings(
        profile_dir=tmp_path,
        rt_tables=tmp_path / "rt_tables",
        device_file=tmp_path / "hosts.json",
        mode_file=tmp_path / "mode",
        poll_interval=0.05,
        establish_timeout=0.3,
        refresh_interval=0.05,
        reconcile_interval=0.05,
        overlay_subnet="192.168.218.0/24",
    )


def device(mac, ip, monitored=True):
    return DeviceRecord(mac=mac, ipv4_addr=ip, monitored=monitored)
