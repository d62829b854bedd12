"""Keyed registries shared by the VPN client components."""

import asyncio
from contextlib import asynccontextmanager
from typing import Callable, Dict, Generic, TypeVar

from .models import validate_profile_id


T = TypeVar("T")


class KeyedLock:
    """
    One asyncio.Lock per key, so same-key operations run one at a time.

    A key's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def __call__(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class ClientRegistry(Generic[T]):
    """Holds at most one client per profile id."""

    def __init__(self, factory: Callable[[str], T]):
        self._factory = factory
        self._clients: Dict[str, T] = {}

    def get(self, profile_id: str) -> T:
        validate_profile_id(profile_id)
        if profile_id not in self._clients:
            self._clients[profile_id] = self._factory(profile_id)
        return self._clients[profile_id]

    def values(self):
        return list(self._clients.values())
