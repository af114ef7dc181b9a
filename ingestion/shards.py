"""
Memcached shards keyed by device type.

The shard table is built once, before any pipeline task starts, and is
only read afterwards, so workers share it without locking.
"""

import asyncio
import logging
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import aiomcache
from aiomcache.exceptions import ClientException

from core.exceptions import StoreWriteError, UnknownShardError

logger = logging.getLogger(__name__)

DEFAULT_MEMCACHED_PORT = 11211


def parse_address(address: str) -> Tuple[str, int]:
    """Split "host:port" into its parts; the port defaults to 11211"""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_MEMCACHED_PORT
    if not host or not port.isdigit():
        raise ValueError(f"Invalid memcached address: {address!r}")
    return host, int(port)


class MemcacheShard:
    """
    One memcached endpoint with a per-call timeout.

    A timed-out call is cancelled before its reply is read, which leaves
    the pooled connection out of sync with the server. The client is
    therefore replaced after every timeout.

    Attributes:
        name: Device type served by this shard
        address: host:port of the memcached server
        timeout: Seconds allowed for a single get or set
    """

    def __init__(self, name: str, address: str, timeout: float, pool_size: int = 2):
        self.name = name
        self.address = address
        self.timeout = timeout
        self.pool_size = pool_size
        self._client = self._connect()

    def _connect(self) -> aiomcache.Client:
        host, port = parse_address(self.address)
        return aiomcache.Client(host, port, pool_size=self.pool_size)

    async def _reset(self) -> None:
        """Drop every pooled connection and start over with a fresh client"""
        stale, self._client = self._client, self._connect()
        logger.warning(f"Reconnecting to memcached shard {self.name} at {self.address}")
        try:
            await stale.close()
        except (OSError, ClientException) as e:
            logger.warning(f"Can't close stale client for shard {self.name}: {e}")

    async def set(self, key: str, value: bytes) -> None:
        """
        Overwrite the value stored under key.

        Raises:
            StoreWriteError: The server refused the value, timed out or
                could not be reached
        """
        context = {"shard": self.name, "address": self.address, "key": key}
        try:
            stored = await asyncio.wait_for(
                self._client.set(key.encode("utf-8"), value),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            await self._reset()
            raise StoreWriteError(
                f"Set timed out after {self.timeout}s",
                context=context,
                original_exception=e
            )
        except (OSError, ClientException) as e:
            raise StoreWriteError("Set failed", context=context, original_exception=e)

        if not stored:
            raise StoreWriteError("Value was not stored", context=context)

    async def get(self, key: str) -> Optional[bytes]:
        """Read the value under key, None if it is absent"""
        try:
            return await asyncio.wait_for(
                self._client.get(key.encode("utf-8")),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            await self._reset()
            raise

    async def close(self) -> None:
        await self._client.close()

    def __repr__(self) -> str:
        return f"MemcacheShard(name={self.name!r}, address={self.address!r})"


class ShardTable:
    """
    Immutable device type -> shard client lookup.

    Any mapping of device types works; the loader ships with idfa,
    gaid, adid and dvid.
    """

    def __init__(self, shards: Mapping[str, object]):
        self._shards = MappingProxyType(dict(shards))

    @classmethod
    def from_addresses(cls, addresses: Mapping[str, str], timeout: float) -> "ShardTable":
        """Build one MemcacheShard per device type"""
        shards = {
            dev_type: MemcacheShard(dev_type, address, timeout)
            for dev_type, address in addresses.items()
        }
        logger.info(
            "Shard table: " + ", ".join(f"{name}={shard.address}" for name, shard in shards.items())
        )
        return cls(shards)

    def get(self, dev_type: str):
        return self._shards.get(dev_type)

    def resolve(self, dev_type: str):
        """
        Return the shard for dev_type.

        Raises:
            UnknownShardError: No shard is configured for dev_type
        """
        shard = self._shards.get(dev_type)
        if shard is None:
            raise UnknownShardError(
                f"Unknown device type {dev_type!r}",
                context={"dev_type": dev_type, "known": ",".join(sorted(self._shards))}
            )
        return shard

    def names(self):
        return list(self._shards)

    def __contains__(self, dev_type) -> bool:
        return dev_type in self._shards

    def __len__(self) -> int:
        return len(self._shards)

    async def close(self) -> None:
        """Close every shard client that supports it"""
        for shard in self._shards.values():
            close = getattr(shard, "close", None)
            if close is not None:
                await close()
