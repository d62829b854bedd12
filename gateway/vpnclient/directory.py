"""Device directory: MAC address to current host record."""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .exceptions import DirectoryError
from .models import DeviceRecord
from ..logging_utility import logger


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def record_from_dict(mac: str, data: dict) -> DeviceRecord:
    """Build a record from ``ipv4Addr``/``spoofing`` or ``ipv4_addr``/``monitored`` keys."""
    ip = data.get("ipv4_addr", data.get("ipv4Addr"))
    monitored = data.get("monitored", data.get("spoofing", False))
    return DeviceRecord(mac=mac, ipv4_addr=ip or None, monitored=_as_bool(monitored))


class DeviceDirectory(ABC):

    @abstractmethod
    async def get_device(self, mac: str) -> Optional[DeviceRecord]:
        """
        Return the live record for ``mac`` or None if it is unknown.

        A directory that cannot be read raises DirectoryError instead.
        """


class InMemoryDeviceDirectory(DeviceDirectory):

    def __init__(self, records: Optional[Dict[str, DeviceRecord]] = None):
        self.records: Dict[str, DeviceRecord] = dict(records or {})

    def put(self, record: DeviceRecord) -> None:
        self.records[record.mac.lower()] = record

    async def get_device(self, mac: str) -> Optional[DeviceRecord]:
        return self.records.get(mac.lower())


class JsonFileDeviceDirectory(DeviceDirectory):
    """Reads a JSON object keyed by MAC; the file is re-read on every lookup."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def get_device(self, mac: str) -> Optional[DeviceRecord]:
        """
        Raises:
            DirectoryError: if the file cannot be read or is not a JSON object of host objects
        """
        try:
            hosts = await asyncio.to_thread(self._load)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read device directory {self.path}: {e}")
            raise DirectoryError(f"Device directory {self.path} is unreadable: {e}") from e
        if not isinstance(hosts, dict):
            raise DirectoryError(f"Device directory {self.path} is not a JSON object")
        for key, data in hosts.items():
            if key.lower() == mac.lower():
                if not isinstance(data, dict):
                    raise DirectoryError(f"Host entry {key} in {self.path} is not a JSON object")
                return record_from_dict(key.lower(), data)
        return None
