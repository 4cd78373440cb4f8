"""On-disk structures: super block, disk inodes and directory entries."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .block_cache import BlockCacheManager
from .block_device import BLOCK_SZ

EFS_MAGIC = 0x3B800001
INODE_DIRECT_COUNT = 28
NAME_LENGTH_LIMIT = 27
INODE_INDIRECT1_COUNT = BLOCK_SZ // 4
INODE_INDIRECT2_COUNT = INODE_INDIRECT1_COUNT * INODE_INDIRECT1_COUNT
DIRECT_BOUND = INODE_DIRECT_COUNT
INDIRECT1_BOUND = DIRECT_BOUND + INODE_INDIRECT1_COUNT
INDIRECT2_BOUND = INDIRECT1_BOUND + INODE_INDIRECT2_COUNT
DIRENT_SZ = 32

_SUPER_BLOCK = struct.Struct("<6I")
_DISK_INODE = struct.Struct(f"<I{INODE_DIRECT_COUNT}IIIB3x")
_DIRENT = struct.Struct(f"<{NAME_LENGTH_LIMIT + 1}sI")
_U32 = struct.Struct("<I")

SUPER_BLOCK_SIZE = _SUPER_BLOCK.size
DISK_INODE_SIZE = _DISK_INODE.size


def _read_u32(caches: BlockCacheManager, block_id: int, index: int) -> int:
    with caches.pinned(block_id) as cache:
        return _U32.unpack(cache.read(index * 4, 4))[0]


def _read_u32s(caches: BlockCacheManager, block_id: int, count: int) -> list[int]:
    with caches.pinned(block_id) as cache:
        return list(struct.unpack(f"<{count}I", cache.read(0, count * 4)))


def _write_u32(caches: BlockCacheManager, block_id: int, index: int, value: int) -> None:
    with caches.pinned(block_id) as cache:
        cache.write(index * 4, _U32.pack(value))


def _take(blocks: Iterator[int]) -> int:
    try:
        return next(blocks)
    except StopIteration:
        raise ValueError("not enough blocks supplied") from None


@dataclass
class SuperBlock:
    """The file system's first block, describing the size of each area."""

    total_blocks: int
    inode_bitmap_blocks: int
    inode_area_blocks: int
    data_bitmap_blocks: int
    data_area_blocks: int
    magic: int = field(default=EFS_MAGIC, repr=False)

    def is_valid(self) -> bool:
        return self.magic == EFS_MAGIC

    def pack(self) -> bytes:
        return _SUPER_BLOCK.pack(
            self.magic,
            self.total_blocks,
            self.inode_bitmap_blocks,
            self.inode_area_blocks,
            self.data_bitmap_blocks,
            self.data_area_blocks,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SuperBlock":
        magic, total, ib, ia, db, da = _SUPER_BLOCK.unpack_from(data)
        return cls(total, ib, ia, db, da, magic=magic)


class DiskInodeType(enum.Enum):
    FILE = 0
    DIRECTORY = 1


@dataclass
class DiskInode:
    """An inode as stored on disk: size and block index tree."""

    size: int = 0
    direct: list[int] = field(default_factory=lambda: [0] * INODE_DIRECT_COUNT)
    indirect1: int = 0
    indirect2: int = 0
    kind: DiskInodeType = DiskInodeType.FILE

    def is_dir(self) -> bool:
        return self.kind is DiskInodeType.DIRECTORY

    def is_file(self) -> bool:
        return self.kind is DiskInodeType.FILE

    @staticmethod
    def _data_blocks(size: int) -> int:
        return (size + BLOCK_SZ - 1) // BLOCK_SZ

    def data_blocks(self) -> int:
        """Number of data blocks covering the current size."""
        return self._data_blocks(self.size)

    @staticmethod
    def total_blocks(size: int) -> int:
        """Number of blocks needed for ``size`` bytes, index blocks included."""
        data_blocks = DiskInode._data_blocks(size)
        total = data_blocks
        if data_blocks > INODE_DIRECT_COUNT:
            total += 1
        if data_blocks > INDIRECT1_BOUND:
            total += 1
            total += (
                data_blocks - INDIRECT1_BOUND + INODE_INDIRECT1_COUNT - 1
            ) // INODE_INDIRECT1_COUNT
        return total

    def blocks_num_needed(self, new_size: int) -> int:
        if new_size < self.size:
            raise ValueError("new size is smaller than the current size")
        return self.total_blocks(new_size) - self.total_blocks(self.size)

    def get_block_id(self, inner_id: int, caches: BlockCacheManager) -> int:
        """Map a block index within the file to a block id on disk."""
        if inner_id < INODE_DIRECT_COUNT:
            return self.direct[inner_id]
        if inner_id < INDIRECT1_BOUND:
            return _read_u32(caches, self.indirect1, inner_id - INODE_DIRECT_COUNT)
        last = inner_id - INDIRECT1_BOUND
        outer, inner = divmod(last, INODE_INDIRECT1_COUNT)
        indirect1 = _read_u32(caches, self.indirect2, outer)
        return _read_u32(caches, indirect1, inner)

    def increase_size(
        self, new_size: int, new_blocks: Iterable[int], caches: BlockCacheManager
    ) -> None:
        """Grow to ``new_size``, taking data and index blocks from ``new_blocks``."""
        blocks = iter(new_blocks)
        current = self.data_blocks()
        self.size = new_size
        total = self.data_blocks()
        while current < min(total, INODE_DIRECT_COUNT):
            self.direct[current] = _take(blocks)
            current += 1
        if total <= INODE_DIRECT_COUNT:
            return
        if current == INODE_DIRECT_COUNT:
            self.indirect1 = _take(blocks)
        current -= INODE_DIRECT_COUNT
        total -= INODE_DIRECT_COUNT
        while current < min(total, INODE_INDIRECT1_COUNT):
            _write_u32(caches, self.indirect1, current, _take(blocks))
            current += 1
        if total <= INODE_INDIRECT1_COUNT:
            return
        if current == INODE_INDIRECT1_COUNT:
            self.indirect2 = _take(blocks)
        current -= INODE_INDIRECT1_COUNT
        total -= INODE_INDIRECT1_COUNT
        a0, b0 = divmod(current, INODE_INDIRECT1_COUNT)
        end = divmod(total, INODE_INDIRECT1_COUNT)
        while (a0, b0) < end:
            if b0 == 0:
                _write_u32(caches, self.indirect2, a0, _take(blocks))
            sub = _read_u32(caches, self.indirect2, a0)
            _write_u32(caches, sub, b0, _take(blocks))
            b0 += 1
            if b0 == INODE_INDIRECT1_COUNT:
                a0, b0 = a0 + 1, 0

    def clear_size(self, caches: BlockCacheManager) -> list[int]:
        """Set the size to zero and return every block that was in use."""
        released: list[int] = []
        data_blocks = self.data_blocks()
        self.size = 0
        count = min(data_blocks, INODE_DIRECT_COUNT)
        released.extend(self.direct[:count])
        self.direct[:count] = [0] * count
        if data_blocks <= INODE_DIRECT_COUNT:
            return released
        released.append(self.indirect1)
        data_blocks -= INODE_DIRECT_COUNT
        released.extend(
            _read_u32s(caches, self.indirect1, min(data_blocks, INODE_INDIRECT1_COUNT))
        )
        self.indirect1 = 0
        if data_blocks <= INODE_INDIRECT1_COUNT:
            return released
        released.append(self.indirect2)
        data_blocks -= INODE_INDIRECT1_COUNT
        if data_blocks > INODE_INDIRECT2_COUNT:
            raise ValueError("inode size exceeds the addressable range")
        a1, b1 = divmod(data_blocks, INODE_INDIRECT1_COUNT)
        entries = _read_u32s(caches, self.indirect2, a1 + (1 if b1 else 0))
        for entry in entries[:a1]:
            released.append(entry)
            released.extend(_read_u32s(caches, entry, INODE_INDIRECT1_COUNT))
        if b1:
            released.append(entries[a1])
            released.extend(_read_u32s(caches, entries[a1], b1))
        self.indirect2 = 0
        return released

    def read_at(self, offset: int, length: int, caches: BlockCacheManager) -> bytes:
        """Read up to ``length`` bytes at ``offset``, stopping at the end of file."""
        end = min(offset + length, self.size)
        out = bytearray()
        start = offset
        while start < end:
            block_index, inner = divmod(start, BLOCK_SZ)
            chunk_end = min((block_index + 1) * BLOCK_SZ, end)
            with caches.pinned(self.get_block_id(block_index, caches)) as cache:
                out += cache.read(inner, chunk_end - start)
            start = chunk_end
        return bytes(out)

    def write_at(self, offset: int, data: bytes, caches: BlockCacheManager) -> int:
        """Write within the current size and return the number of bytes written."""
        end = min(offset + len(data), self.size)
        if offset > end:
            raise ValueError("offset lies beyond the end of the inode")
        start = offset
        while start < end:
            block_index, inner = divmod(start, BLOCK_SZ)
            chunk_end = min((block_index + 1) * BLOCK_SZ, end)
            with caches.pinned(self.get_block_id(block_index, caches)) as cache:
                cache.write(inner, data[start - offset : chunk_end - offset])
            start = chunk_end
        return end - offset

    def pack(self) -> bytes:
        return _DISK_INODE.pack(
            self.size, *self.direct, self.indirect1, self.indirect2, self.kind.value
        )

    @classmethod
    def unpack(cls, data: bytes) -> "DiskInode":
        fields = _DISK_INODE.unpack_from(data)
        size = fields[0]
        direct = list(fields[1 : 1 + INODE_DIRECT_COUNT])
        indirect1, indirect2, kind = fields[1 + INODE_DIRECT_COUNT :]
        return cls(size, direct, indirect1, indirect2, DiskInodeType(kind))


@dataclass(frozen=True)
class DirEntry:
    """A directory entry: a name and the inode number it refers to."""

    name: str = ""
    inode_number: int = 0

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8")
        if len(raw) > NAME_LENGTH_LIMIT:
            raise ValueError(f"name longer than {NAME_LENGTH_LIMIT} bytes")
        return _DIRENT.pack(raw, self.inode_number)

    @classmethod
    def unpack(cls, data: bytes) -> "DirEntry":
        raw, inode_number = _DIRENT.unpack_from(data)
        return cls(raw.split(b"\0", 1)[0].decode("utf-8"), inode_number)