import pytest

from easyos.easyfs.block_cache import BlockCache, BlockCacheManager
from easyos.easyfs.block_device import BLOCK_SZ, MemoryBlockDevice


class CountingDevice(MemoryBlockDevice):
    def __init__(self, total_blocks):
        super().__init__(total_blocks)
        self.writes = []

    def write_block(self, block_id, data):
        self.writes.append(block_id)
        super().write_block(block_id, data)


def test_cache_loads_device_contents():
    dev = MemoryBlockDevice(2)
    block = bytes([9]) * BLOCK_SZ
    dev.write_block(1, block)
    cache = BlockCache(1, dev)
    assert cache.read(0, BLOCK_SZ) == block


def test_write_is_deferred_until_sync():
    dev = CountingDevice(2)
    cache = BlockCache(0, dev)
    cache.write(10, b"abc")
    assert cache.read(10, 3) == b"abc"
    assert dev.read_block(0)[10:13] == bytes(3)
    cache.sync()
    assert dev.read_block(0)[10:13] == b"abc"
    assert cache.modified is False


def test_sync_without_changes_writes_nothing():
    dev = CountingDevice(2)
    cache = BlockCache(0, dev)
    cache.read(0, 4)
    cache.sync()
    assert dev.writes == []


def test_out_of_bounds_access_raises():
    cache = BlockCache(0, MemoryBlockDevice(1))
    with pytest.raises(ValueError):
        cache.read(BLOCK_SZ - 2, 4)
    with pytest.raises(ValueError):
        cache.write(BLOCK_SZ, b"x")


def test_manager_returns_same_cache_for_same_block():
    manager = BlockCacheManager(MemoryBlockDevice(4))
    manager.get_block_cache(2).write(0, b"hi")
    assert manager.get_block_cache(2).read(0, 2) == b"hi"


def test_eviction_syncs_evicted_block():
    dev = MemoryBlockDevice(4)
    manager = BlockCacheManager(dev, capacity=2)
    manager.get_block_cache(0).write(0, b"zero")
    manager.get_block_cache(1)
    manager.get_block_cache(2)
    assert dev.read_block(0)[:4] == b"zero"


def test_eviction_is_first_in_first_out():
    manager = BlockCacheManager(MemoryBlockDevice(4), capacity=2)
    first = manager.get_block_cache(0)
    second = manager.get_block_cache(1)
    manager.get_block_cache(0)
    manager.get_block_cache(2)
    assert manager.get_block_cache(1) is second
    assert manager.get_block_cache(0) is not first


def test_pinned_blocks_are_not_evicted():
    manager = BlockCacheManager(MemoryBlockDevice(4), capacity=2)
    with manager.pinned(0) as cache0:
        manager.get_block_cache(1)
        manager.get_block_cache(2)
        assert manager.get_block_cache(0) is cache0


def test_all_pinned_raises():
    manager = BlockCacheManager(MemoryBlockDevice(4), capacity=2)
    with manager.pinned(0), manager.pinned(1):
        with pytest.raises(RuntimeError):
            manager.get_block_cache(2)


def test_sync_all_writes_every_modified_block():
    dev = CountingDevice(4)
    manager = BlockCacheManager(dev)
    manager.get_block_cache(1).write(0, b"one")
    manager.get_block_cache(3).write(0, b"three")
    manager.get_block_cache(2)
    manager.sync_all()
    assert sorted(dev.writes) == [1, 3]
    assert dev.read_block(3)[:5] == b"three"


def test_invalid_capacity():
    with pytest.raises(ValueError):
        BlockCacheManager(MemoryBlockDevice(1), capacity=0)