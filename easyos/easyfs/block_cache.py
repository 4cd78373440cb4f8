"""An in-memory cache of disk blocks with write-back on sync or eviction."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from .block_device import BLOCK_SZ, BlockDevice

BLOCK_CACHE_SIZE = 16


class BlockCache:
    """One block loaded into memory; changes reach the device on sync."""

    def __init__(self, block_id: int, block_device: BlockDevice) -> None:
        self.block_id = block_id
        self.block_device = block_device
        self._data = bytearray(block_device.read_block(block_id))
        self.modified = False

    @staticmethod
    def _check_range(offset: int, size: int) -> None:
        if offset < 0 or size < 0 or offset + size > BLOCK_SZ:
            raise ValueError(f"range {offset}+{size} exceeds block size {BLOCK_SZ}")

    def read(self, offset: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``offset`` within the block."""
        self._check_range(offset, size)
        return bytes(self._data[offset : offset + size])

    def write(self, offset: int, data: bytes) -> None:
        """Overwrite bytes at ``offset`` and mark the block modified."""
        self._check_range(offset, len(data))
        self.modified = True
        self._data[offset : offset + len(data)] = data

    def sync(self) -> None:
        """Write the block back to the device if it was modified."""
        if self.modified:
            self.modified = False
            self.block_device.write_block(self.block_id, bytes(self._data))


@dataclass
class _Entry:
    cache: BlockCache
    pins: int = 0


class BlockCacheManager:
    """A bounded FIFO set of block caches for one device."""

    def __init__(self, block_device: BlockDevice, capacity: int = BLOCK_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.block_device = block_device
        self.capacity = capacity
        self._entries: dict[int, _Entry] = {}
        self._lock = threading.RLock()

    def get_block_cache(self, block_id: int) -> BlockCache:
        """Return the cache for ``block_id``, loading it and evicting if needed."""
        with self._lock:
            entry = self._entries.get(block_id)
            if entry is not None:
                return entry.cache
            if len(self._entries) >= self.capacity:
                victim = next(
                    (bid for bid, e in self._entries.items() if e.pins == 0), None
                )
                if victim is None:
                    raise RuntimeError("Run out of BlockCache!")
                self._entries.pop(victim).cache.sync()
            cache = BlockCache(block_id, self.block_device)
            self._entries[block_id] = _Entry(cache)
            return cache

    @contextmanager
    def pinned(self, block_id: int) -> Iterator[BlockCache]:
        """Yield the cache for ``block_id``, keeping it from eviction meanwhile."""
        with self._lock:
            cache = self.get_block_cache(block_id)
            entry = self._entries[block_id]
            entry.pins += 1
        try:
            yield cache
        finally:
            with self._lock:
                entry.pins -= 1

    def sync_all(self) -> None:
        """Write every modified cached block back to the device."""
        with self._lock:
            for entry in self._entries.values():
                entry.cache.sync()