import asyncio
import json

import pytest

from conftest import BrokenRemoveRouting, device
from gateway.vpnclient.access import AccessController
from gateway.vpnclient.directory import InMemoryDeviceDirectory, JsonFileDeviceDirectory
from gateway.vpnclient.enforcer import RouteEnforcer
from gateway.vpnclient.exceptions import DeviceNotFoundError, DirectoryError, InterfaceError
from gateway.vpnclient.models import AccessMode
from gateway.vpnclient.network import NetworkInfo


MAC = "aa:bb:cc:dd:ee:ff"
TABLE = "vpn_client_tun_abc"
OVERLAY_IP = "192.168.218.20"
LAN_IP = "192.168.1.20"


class SpoofNetwork(NetworkInfo):
    """Network whose DHCP spoof switch is flipped directly by the test."""

    def __init__(self, spoof=False):
        super().__init__(overlay_subnet="192.168.218.0/24")
        self.spoof = spoof

    async def reload_setup_mode(self):
        return self.mode

    def is_dhcp_spoof_mode_on(self):
        return self.spoof


@pytest.fixture
def spoof_network():
    return SpoofNetwork()


@pytest.fixture
def access(enforcer, directory, spoof_network):
    return AccessController(enforcer, directory, spoof_network, reconcile_interval=0.05)


@pytest.mark.asyncio
@pytest.mark.parametrize("ip, spoof, monitored, installed", [
    (OVERLAY_IP, False, True, True),
    (LAN_IP, False, True, False),
    (OVERLAY_IP, True, False, False),
    (LAN_IP, True, True, True),
])
async def test_eligibility_decision(access, directory, spoof_network, routing, ip, spoof, monitored, installed):
    spoof_network.spoof = spoof
    directory.put(device(MAC, ip, monitored))

    assert await access.enable(MAC, "dhcp", "tun_abc") is installed

    assert ((ip, TABLE) in routing.rules) is installed
    assert MAC in access.enabled_hosts
    assert TABLE in routing.tables


@pytest.mark.asyncio
async def test_enable_replaces_generic_rule(access, directory, routing):
    routing.rules.append((OVERLAY_IP, "vpn_client_tun_old"))
    directory.put(device(MAC, OVERLAY_IP))

    await access.enable(MAC, AccessMode.DHCP, "tun_abc")

    assert routing.rules == [(OVERLAY_IP, TABLE)]


@pytest.mark.asyncio
async def test_unsupported_mode_is_skipped(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP))

    assert await access.enable(MAC, "static", "tun_abc") is False

    assert MAC not in access.enabled_hosts
    assert routing.rules == []


@pytest.mark.asyncio
async def test_enable_requires_interface(access, directory):
    directory.put(device(MAC, OVERLAY_IP))
    with pytest.raises(InterfaceError):
        await access.enable(MAC, "dhcp", "")


@pytest.mark.asyncio
async def test_enable_unknown_device(access):
    with pytest.raises(DeviceNotFoundError):
        await access.enable(MAC, "dhcp", "tun_abc")
    assert access.enabled_devices == []


@pytest.mark.asyncio
async def test_disable_removes_rule_and_record(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    await access.disable(MAC.upper())

    assert routing.rules == []
    assert MAC not in access.enabled_hosts


@pytest.mark.asyncio
async def test_disable_unknown_device_is_noop(access, events):
    await access.disable("00:11:22:33:44:55")
    assert events == []


@pytest.mark.asyncio
async def test_disable_tolerates_missing_rule(access, directory, routing):
    directory.put(device(MAC, LAN_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    await access.disable(MAC)

    assert MAC not in access.enabled_hosts


@pytest.mark.asyncio
async def test_disable_tolerates_failing_removal(directory, spoof_network):
    routing = BrokenRemoveRouting()
    access = AccessController(RouteEnforcer(routing), directory, spoof_network)
    directory.put(device(MAC, OVERLAY_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    await access.disable(MAC)

    assert MAC not in access.enabled_hosts


@pytest.mark.asyncio
async def test_refresh_removes_rule_when_ip_changes(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    directory.put(device(MAC, LAN_IP))
    await access.refresh_rules()

    assert (OVERLAY_IP, TABLE) not in routing.rules
    assert routing.rules == []
    assert access.enabled_hosts[MAC].host.ipv4_addr == LAN_IP


@pytest.mark.asyncio
async def test_refresh_moves_rule_to_new_overlay_ip(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    directory.put(device(MAC, "192.168.218.77"))
    await access.refresh_rules()

    assert routing.rules == [("192.168.218.77", TABLE)]


@pytest.mark.asyncio
async def test_refresh_reinstalls_rule_when_eligible_again(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP, monitored=False))
    assert await access.enable(MAC, "dhcp", "tun_abc") is False
    assert routing.rules == []

    directory.put(device(MAC, OVERLAY_IP, monitored=True))
    await access.refresh_rules()

    assert routing.rules == [(OVERLAY_IP, TABLE)]


@pytest.mark.asyncio
async def test_refresh_follows_spoof_mode(access, directory, spoof_network, routing):
    directory.put(device(MAC, LAN_IP))
    await access.enable(MAC, "dhcp", "tun_abc")
    assert routing.rules == []

    spoof_network.spoof = True
    await access.refresh_rules()
    assert routing.rules == [(LAN_IP, TABLE)]

    spoof_network.spoof = False
    await access.refresh_rules()
    assert routing.rules == []
    assert MAC in access.enabled_hosts


@pytest.mark.asyncio
async def test_refresh_removes_rule_when_unmonitored(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    directory.put(device(MAC, OVERLAY_IP, monitored=False))
    await access.refresh_rules()

    assert routing.rules == []


@pytest.mark.asyncio
async def test_refresh_handles_vanished_device(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP))
    await access.enable(MAC, "dhcp", "tun_abc")

    del directory.records[MAC]
    await access.refresh_rules()

    assert routing.rules == []
    assert access.enabled_hosts[MAC].host.ipv4_addr == OVERLAY_IP


class UnreadableDirectory(InMemoryDeviceDirectory):
    """In-memory directory that can be switched into failing every lookup."""

    def __init__(self):
        super().__init__()
        self.failing = False

    async def get_device(self, mac):
        if self.failing:
            raise DirectoryError("hosts.json is unreadable")
        return await super().get_device(mac)


@pytest.mark.asyncio
async def test_refresh_keeps_rule_when_directory_is_unreadable(enforcer, spoof_network, routing):
    directory = UnreadableDirectory()
    directory.put(device(MAC, OVERLAY_IP))
    access = AccessController(enforcer, directory, spoof_network)
    await access.enable(MAC, "dhcp", "tun_abc")

    directory.failing = True
    await access.refresh_rules()

    assert routing.rules == [(OVERLAY_IP, TABLE)]
    assert access.enabled_hosts[MAC].host.ipv4_addr == OVERLAY_IP


@pytest.mark.asyncio
async def test_refresh_keeps_rule_when_host_file_is_truncated(tmp_path, enforcer, spoof_network, routing):
    hosts = tmp_path / "hosts.json"
    hosts.write_text(json.dumps({MAC.upper(): {"ipv4Addr": OVERLAY_IP, "spoofing": "true"}}))
    access = AccessController(enforcer, JsonFileDeviceDirectory(hosts), spoof_network)
    assert await access.enable(MAC, "dhcp", "tun_abc") is True

    hosts.write_text('{"AA:BB:CC:DD:EE:FF": {"ipv4A')
    await access.refresh_rules()

    assert routing.rules == [(OVERLAY_IP, TABLE)]


@pytest.mark.asyncio
async def test_enable_with_unreadable_directory_is_not_recorded(enforcer, spoof_network, routing):
    directory = UnreadableDirectory()
    directory.failing = True
    access = AccessController(enforcer, directory, spoof_network)

    with pytest.raises(DirectoryError):
        await access.enable(MAC, "dhcp", "tun_abc")

    assert MAC not in access.enabled_hosts
    assert routing.rules == []


@pytest.mark.asyncio
async def test_device_locks_are_released_after_use(access, directory):
    directory.put(device(MAC, OVERLAY_IP))

    await access.enable(MAC, "dhcp", "tun_abc")
    await access.refresh_rules()
    await access.disable(MAC)
    await access.disable("00:11:22:33:44:55")

    assert len(access._locks) == 0
    assert len(access.enforcer._locks) == 0


@pytest.mark.asyncio
async def test_reconcile_loop_runs_periodically(access, directory, routing):
    directory.put(device(MAC, OVERLAY_IP, monitored=False))
    await access.enable(MAC, "dhcp", "tun_abc")

    access.start()
    try:
        directory.put(device(MAC, OVERLAY_IP, monitored=True))
        await asyncio.sleep(0.2)
    finally:
        access.stop()

    assert routing.rules == [(OVERLAY_IP, TABLE)]
