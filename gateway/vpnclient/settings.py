"""Settings for the VPN client gateway, loaded from an INI file."""

import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    profile_dir: Path = Path("/var/lib/vpn-client-gateway/ovpn_profile")
    rt_tables: Path = Path("/etc/iproute2/rt_tables")
    device_file: Path = Path("/var/lib/vpn-client-gateway/hosts.json")
    mode_file: Path = Path("/var/lib/vpn-client-gateway/mode")
    service_name: str = "openvpn_client"
    use_sudo: bool = True
    poll_interval: float = 2.0
    establish_timeout: float = 20.0
    refresh_interval: float = 300.0
    reconcile_interval: float = 300.0
    table_prefix: str = "vpn_client"
    table_id_base: int = 100
    overlay_subnet: Optional[str] = None
    default_mode: str = "spoof"

    @classmethod
    def from_file(cls, config_file: Optional[str]) -> 'Settings':
        config = configparser.ConfigParser()
        if config_file:
            config.read(config_file)
        return cls.from_config(config)

    @classmethod
    def from_config(cls, config: configparser.ConfigParser) -> 'Settings':
        defaults = cls()
        return cls(
            profile_dir=Path(config.get('paths', 'profile_dir', fallback=str(defaults.profile_dir))),
            rt_tables=Path(config.get('paths', 'rt_tables', fallback=str(defaults.rt_tables))),
            device_file=Path(config.get('paths', 'device_file', fallback=str(defaults.device_file))),
            mode_file=Path(config.get('paths', 'mode_file', fallback=str(defaults.mode_file))),
            service_name=config.get('service', 'name', fallback=defaults.service_name),
            use_sudo=config.getboolean('service', 'use_sudo', fallback=defaults.use_sudo),
            poll_interval=config.getfloat('timing', 'poll_interval', fallback=defaults.poll_interval),
            establish_timeout=config.getfloat('timing', 'establish_timeout', fallback=defaults.establish_timeout),
            refresh_interval=config.getfloat('timing', 'refresh_interval', fallback=defaults.refresh_interval),
            reconcile_interval=config.getfloat('timing', 'reconcile_interval', fallback=defaults.reconcile_interval),
            table_prefix=config.get('routing', 'table_prefix', fallback=defaults.table_prefix),
            table_id_base=config.getint('routing', 'table_id_base', fallback=defaults.table_id_base),
            overlay_subnet=config.get('network', 'overlay_subnet', fallback=None) or None,
            default_mode=config.get('network', 'default_mode', fallback=defaults.default_mode),
        )
