"""Inodes as seen by users of the file system: files in a flat root directory."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

from .layout import DIRENT_SZ, DISK_INODE_SIZE, DirEntry, DiskInode, DiskInodeType

if TYPE_CHECKING:
    from .efs import EasyFileSystem


class Inode:
    """A handle on one disk inode of a file system."""

    def __init__(self, block_id: int, block_offset: int, fs: "EasyFileSystem") -> None:
        self.block_id = block_id
        self.block_offset = block_offset
        self.fs = fs

    def __repr__(self) -> str:
        return f"Inode(block_id={self.block_id}, block_offset={self.block_offset})"

    def _load(self) -> DiskInode:
        with self.fs.caches.pinned(self.block_id) as cache:
            return DiskInode.unpack(cache.read(self.block_offset, DISK_INODE_SIZE))

    @contextmanager
    def _disk_inode(self) -> Iterator[DiskInode]:
        with self.fs.caches.pinned(self.block_id) as cache:
            disk_inode = DiskInode.unpack(cache.read(self.block_offset, DISK_INODE_SIZE))
            yield disk_inode
            cache.write(self.block_offset, disk_inode.pack())

    def _entries(self, disk_inode: DiskInode) -> Iterator[DirEntry]:
        if not disk_inode.is_dir():
            raise NotADirectoryError("inode is not a directory")
        for i in range(disk_inode.size // DIRENT_SZ):
            raw = disk_inode.read_at(i * DIRENT_SZ, DIRENT_SZ, self.fs.caches)
            if len(raw) != DIRENT_SZ:
                raise OSError("truncated directory entry")
            yield DirEntry.unpack(raw)

    def _find_inode_id(self, name: str, disk_inode: DiskInode) -> Optional[int]:
        return next(
            (e.inode_number for e in self._entries(disk_inode) if e.name == name), None
        )

    def _inode_of(self, inode_id: int) -> "Inode":
        block_id, offset = self.fs.get_disk_inode_pos(inode_id)
        return Inode(block_id, offset, self.fs)

    def _increase_size(self, new_size: int, disk_inode: DiskInode) -> None:
        if new_size < disk_inode.size:
            return
        needed = disk_inode.blocks_num_needed(new_size)
        blocks = [self.fs.alloc_data() for _ in range(needed)]
        disk_inode.increase_size(new_size, blocks, self.fs.caches)

    def find(self, name: str) -> Optional["Inode"]:
        """Look up ``name`` in this directory."""
        with self.fs.lock:
            inode_id = self._find_inode_id(name, self._load())
            return None if inode_id is None else self._inode_of(inode_id)

    def create(self, name: str) -> Optional["Inode"]:
        """Create an empty file ``name``; return None if it already exists."""
        DirEntry(name, 0).pack()
        with self.fs.lock:
            if self._find_inode_id(name, self._load()) is not None:
                return None
            new_inode_id = self.fs.alloc_inode()
            block_id, offset = self.fs.get_disk_inode_pos(new_inode_id)
            with self.fs.caches.pinned(block_id) as cache:
                cache.write(offset, DiskInode(kind=DiskInodeType.FILE).pack())
            with self._disk_inode() as root:
                file_count = root.size // DIRENT_SZ
                self._increase_size((file_count + 1) * DIRENT_SZ, root)
                root.write_at(
                    file_count * DIRENT_SZ,
                    DirEntry(name, new_inode_id).pack(),
                    self.fs.caches,
                )
            self.fs.sync()
            return self._inode_of(new_inode_id)

    def ls(self) -> list[str]:
        """Names of the entries in this directory, in creation order."""
        with self.fs.lock:
            return [entry.name for entry in self._entries(self._load())]

    def read_at(self, offset: int, length: int) -> bytes:
        """Read up to ``length`` bytes starting at ``offset``."""
        with self.fs.lock:
            return self._load().read_at(offset, length, self.fs.caches)

    def write_at(self, offset: int, data: bytes) -> int:
        """Write ``data`` at ``offset``, growing the file as needed."""
        data = bytes(data)
        with self.fs.lock:
            with self._disk_inode() as disk_inode:
                self._increase_size(offset + len(data), disk_inode)
                written = disk_inode.write_at(offset, data, self.fs.caches)
            self.fs.sync()
            return written

    def clear(self) -> None:
        """Truncate the file to zero length and free all its blocks."""
        with self.fs.lock:
            with self._disk_inode() as disk_inode:
                size = disk_inode.size
                released = disk_inode.clear_size(self.fs.caches)
                if len(released) != DiskInode.total_blocks(size):
                    raise RuntimeError("released block count does not match inode size")
                for block_id in released:
                    self.fs.dealloc_data(block_id)
            self.fs.sync()