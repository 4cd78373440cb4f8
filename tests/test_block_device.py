import os

import pytest

from easyos.easyfs.block_device import (
    BLOCK_SZ,
    BlockDevice,
    FileBlockDevice,
    MemoryBlockDevice,
)


def test_block_device_is_abstract():
    with pytest.raises(TypeError):
        BlockDevice()


def test_memory_device_starts_zeroed():
    dev = MemoryBlockDevice(3)
    assert dev.read_block(2) == bytes(BLOCK_SZ)


def test_memory_device_round_trip():
    dev = MemoryBlockDevice(4)
    block = bytes(i % 256 for i in range(BLOCK_SZ))
    dev.write_block(1, block)
    assert dev.read_block(1) == block
    assert dev.read_block(0) == bytes(BLOCK_SZ)


def test_memory_device_rejects_partial_block():
    dev = MemoryBlockDevice(2)
    with pytest.raises(ValueError):
        dev.write_block(0, b"short")


def test_memory_device_rejects_out_of_range():
    dev = MemoryBlockDevice(2)
    with pytest.raises(IndexError):
        dev.read_block(2)
    with pytest.raises(IndexError):
        dev.write_block(-1, bytes(BLOCK_SZ))


def test_file_device_sets_image_length(tmp_path):
    path = tmp_path / "fs.img"
    with FileBlockDevice(path, 4):
        pass
    assert os.path.getsize(path) == 4 * BLOCK_SZ


def test_file_device_round_trip_and_persistence(tmp_path):
    path = tmp_path / "fs.img"
    block = bytes([7]) * BLOCK_SZ
    with FileBlockDevice(path, 8) as dev:
        dev.write_block(5, block)
        assert dev.read_block(5) == block
    with FileBlockDevice(path) as dev:
        assert dev.read_block(5) == block
        assert dev.read_block(4) == bytes(BLOCK_SZ)


def test_file_device_incomplete_read_raises(tmp_path):
    with FileBlockDevice(tmp_path / "fs.img", 2) as dev:
        with pytest.raises(OSError):
            dev.read_block(2)


def test_file_device_rejects_partial_block(tmp_path):
    with FileBlockDevice(tmp_path / "fs.img", 2) as dev:
        with pytest.raises(ValueError):
            dev.write_block(0, bytes(BLOCK_SZ - 1))


def test_file_device_closed_after_context(tmp_path):
    dev = FileBlockDevice(tmp_path / "fs.img", 2)
    with dev:
        pass
    with pytest.raises(ValueError):
        dev.read_block(0)