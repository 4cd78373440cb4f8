"""Open files backed by inodes of the root directory."""

from __future__ import annotations

import enum
import threading
from typing import Optional

from ..easyfs.vfs import Inode
from ..mm.page_table import UserBuffer
from .file import File

_CHUNK = 512


class OpenFlags(enum.IntFlag):
    RDONLY = 0
    WRONLY = 1 << 0
    RDWR = 1 << 1
    CREATE = 1 << 9
    TRUNC = 1 << 10

    def read_write(self) -> tuple[bool, bool]:
        """Return (readable, writable); validity is not checked."""
        if not self:
            return True, False
        if self & OpenFlags.WRONLY:
            return False, True
        return True, True


class OSInode(File):
    """An inode opened with a current offset and access mode."""

    def __init__(self, readable: bool, writable: bool, inode: Inode) -> None:
        self._readable = readable
        self._writable = writable
        self.inode = inode
        self.offset = 0
        self._lock = threading.Lock()

    def read_all(self) -> bytes:
        """Read from the current offset to the end of the file."""
        with self._lock:
            chunks = []
            while True:
                data = self.inode.read_at(self.offset, _CHUNK)
                if not data:
                    break
                self.offset += len(data)
                chunks.append(data)
            return b"".join(chunks)

    def readable(self) -> bool:
        return self._readable

    def writable(self) -> bool:
        return self._writable

    def read(self, buf: UserBuffer) -> int:
        with self._lock:
            total = 0
            for chunk in buf.buffers:
                data = self.inode.read_at(self.offset, len(chunk))
                if not data:
                    break
                chunk[: len(data)] = data
                self.offset += len(data)
                total += len(data)
            return total

    def write(self, buf: UserBuffer) -> int:
        with self._lock:
            total = 0
            for chunk in buf.buffers:
                written = self.inode.write_at(self.offset, bytes(chunk))
                if written != len(chunk):
                    raise OSError(f"short write: {written} of {len(chunk)} bytes")
                self.offset += written
                total += written
            return total


def open_file(root: Inode, name: str, flags: OpenFlags) -> Optional[OSInode]:
    """Open ``name`` in ``root``; None if it does not exist and CREATE is not set."""
    flags = OpenFlags(flags)
    readable, writable = flags.read_write()
    if flags & OpenFlags.CREATE:
        inode = root.find(name)
        if inode is not None:
            inode.clear()
        else:
            inode = root.create(name)
            if inode is None:
                return None
        return OSInode(readable, writable, inode)
    inode = root.find(name)
    if inode is None:
        return None
    if flags & OpenFlags.TRUNC:
        inode.clear()
    return OSInode(readable, writable, inode)


def list_apps(root: Inode) -> list[str]:
    """Print the names in ``root`` between banners and return them."""
    names = root.ls()
    print("/**** APPS ****")
    for name in names:
        print(name)
    print("**************/")
    return names