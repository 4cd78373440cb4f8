import pytest

from easyos.easyfs.bitmap import BLOCK_BITS, Bitmap, decomposition
from easyos.easyfs.block_cache import BlockCacheManager
from easyos.easyfs.block_device import BLOCK_SZ, MemoryBlockDevice


def make(blocks=1, start=1, total=4):
    dev = MemoryBlockDevice(total)
    return dev, BlockCacheManager(dev), Bitmap(start, blocks)


def test_decomposition():
    assert decomposition(0) == (0, 0, 0)
    assert decomposition(BLOCK_BITS + 64 * 3 + 5) == (1, 3, 5)


def test_alloc_returns_increasing_bits():
    _, caches, bitmap = make()
    assert [bitmap.alloc(caches) for _ in range(70)] == list(range(70))


def test_alloc_crosses_block_boundary():
    _, caches, bitmap = make(blocks=2)
    for _ in range(BLOCK_BITS):
        bitmap.alloc(caches)
    assert bitmap.alloc(caches) == BLOCK_BITS


def test_alloc_returns_none_when_full():
    _, caches, bitmap = make(blocks=1)
    allocated = [bitmap.alloc(caches) for _ in range(BLOCK_BITS)]
    assert allocated[-1] == BLOCK_BITS - 1
    assert bitmap.alloc(caches) is None


def test_dealloc_then_alloc_reuses_lowest():
    _, caches, bitmap = make()
    for _ in range(10):
        bitmap.alloc(caches)
    bitmap.dealloc(caches, 7)
    bitmap.dealloc(caches, 3)
    assert bitmap.alloc(caches) == 3
    assert bitmap.alloc(caches) == 7
    assert bitmap.alloc(caches) == 10


def test_dealloc_unallocated_raises():
    _, caches, bitmap = make()
    bitmap.alloc(caches)
    with pytest.raises(ValueError):
        bitmap.dealloc(caches, 5)


def test_maximum():
    assert Bitmap(1, 3).maximum() == 3 * BLOCK_BITS


def test_bits_are_stored_in_start_block():
    dev, caches, bitmap = make(start=2)
    for _ in range(3):
        bitmap.alloc(caches)
    caches.sync_all()
    assert dev.read_block(2)[0] == 0b111
    assert dev.read_block(1) == bytes(BLOCK_SZ)
    assert dev.read_block(3) == bytes(BLOCK_SZ)