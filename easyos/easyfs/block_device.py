"""Block devices: fixed-size block storage held in memory or in an image file."""

from __future__ import annotations

import abc
import os
import threading
from typing import Optional

BLOCK_SZ = 512


def _check_complete(data: bytes) -> bytes:
    data = bytes(data)
    if len(data) != BLOCK_SZ:
        raise ValueError("Not a complete block!")
    return data


class BlockDevice(abc.ABC):
    """Storage addressed in blocks of BLOCK_SZ bytes."""

    @abc.abstractmethod
    def read_block(self, block_id: int) -> bytes:
        """Return the BLOCK_SZ bytes stored in block ``block_id``."""

    @abc.abstractmethod
    def write_block(self, block_id: int, data: bytes) -> None:
        """Store exactly BLOCK_SZ bytes into block ``block_id``."""


class MemoryBlockDevice(BlockDevice):
    """A block device backed by a zero-filled in-memory buffer."""

    def __init__(self, total_blocks: int) -> None:
        if total_blocks < 0:
            raise ValueError("total_blocks must not be negative")
        self.total_blocks = total_blocks
        self._data = bytearray(total_blocks * BLOCK_SZ)
        self._lock = threading.Lock()

    def _span(self, block_id: int) -> slice:
        if not 0 <= block_id < self.total_blocks:
            raise IndexError(f"block {block_id} out of range")
        start = block_id * BLOCK_SZ
        return slice(start, start + BLOCK_SZ)

    def read_block(self, block_id: int) -> bytes:
        with self._lock:
            return bytes(self._data[self._span(block_id)])

    def write_block(self, block_id: int, data: bytes) -> None:
        data = _check_complete(data)
        with self._lock:
            self._data[self._span(block_id)] = data


class FileBlockDevice(BlockDevice):
    """A block device backed by an image file on the host file system."""

    def __init__(self, path: str | os.PathLike, total_blocks: Optional[int] = None) -> None:
        fd = os.open(os.fspath(path), os.O_RDWR | os.O_CREAT, 0o644)
        self._file = os.fdopen(fd, "r+b")
        if total_blocks is not None:
            self._file.truncate(total_blocks * BLOCK_SZ)
        self._lock = threading.Lock()

    def read_block(self, block_id: int) -> bytes:
        with self._lock:
            self._file.seek(block_id * BLOCK_SZ)
            data = self._file.read(BLOCK_SZ)
        if len(data) != BLOCK_SZ:
            raise OSError("Not a complete block!")
        return data

    def write_block(self, block_id: int, data: bytes) -> None:
        data = _check_complete(data)
        with self._lock:
            self._file.seek(block_id * BLOCK_SZ)
            written = self._file.write(data)
            self._file.flush()
        if written != BLOCK_SZ:
            raise OSError("Not a complete block!")

    def close(self) -> None:
        """Close the underlying image file."""
        self._file.close()

    def __enter__(self) -> "FileBlockDevice":
        return self

    def __exit__(self, *args) -> None:
        self.close()