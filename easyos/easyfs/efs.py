"""The file system proper: area layout, allocation and the root inode."""

from __future__ import annotations

import errno
import threading

from .bitmap import Bitmap
from .block_cache import BlockCacheManager
from .block_device import BLOCK_SZ, BlockDevice
from .layout import DISK_INODE_SIZE, DiskInode, DiskInodeType, SuperBlock
from .vfs import Inode

_DATA_BITMAP_SPAN = BLOCK_SZ * 8 + 1


class EasyFileSystem:
    """A file system laid out as super block, inode bitmap and area, data bitmap and area."""

    def __init__(
        self,
        block_device: BlockDevice,
        inode_bitmap: Bitmap,
        data_bitmap: Bitmap,
        inode_area_start_block: int,
        data_area_start_block: int,
    ) -> None:
        self.block_device = block_device
        self.caches = BlockCacheManager(block_device)
        self.inode_bitmap = inode_bitmap
        self.data_bitmap = data_bitmap
        self.inode_area_start_block = inode_area_start_block
        self.data_area_start_block = data_area_start_block
        self.lock = threading.RLock()

    @classmethod
    def create(
        cls, block_device: BlockDevice, total_blocks: int, inode_bitmap_blocks: int
    ) -> "EasyFileSystem":
        """Format ``block_device`` and return the new file system."""
        inode_bitmap = Bitmap(1, inode_bitmap_blocks)
        inode_num = inode_bitmap.maximum()
        inode_area_blocks = (inode_num * DISK_INODE_SIZE + BLOCK_SZ - 1) // BLOCK_SZ
        inode_total_blocks = inode_bitmap_blocks + inode_area_blocks
        data_total_blocks = total_blocks - 1 - inode_total_blocks
        if data_total_blocks <= 0:
            raise ValueError("too few blocks for the requested inode area")
        data_bitmap_blocks = (data_total_blocks + _DATA_BITMAP_SPAN - 1) // _DATA_BITMAP_SPAN
        data_area_blocks = data_total_blocks - data_bitmap_blocks
        data_bitmap = Bitmap(1 + inode_total_blocks, data_bitmap_blocks)
        efs = cls(
            block_device,
            inode_bitmap,
            data_bitmap,
            inode_area_start_block=1 + inode_bitmap_blocks,
            data_area_start_block=1 + inode_total_blocks + data_bitmap_blocks,
        )
        zero = bytes(BLOCK_SZ)
        for block_id in range(total_blocks):
            with efs.caches.pinned(block_id) as cache:
                cache.write(0, zero)
        super_block = SuperBlock(
            total_blocks,
            inode_bitmap_blocks,
            inode_area_blocks,
            data_bitmap_blocks,
            data_area_blocks,
        )
        with efs.caches.pinned(0) as cache:
            cache.write(0, super_block.pack())
        if efs.alloc_inode() != 0:
            raise RuntimeError("root inode must be inode 0")
        block_id, offset = efs.get_disk_inode_pos(0)
        with efs.caches.pinned(block_id) as cache:
            cache.write(offset, DiskInode(kind=DiskInodeType.DIRECTORY).pack())
        efs.sync()
        return efs

    @classmethod
    def open(cls, block_device: BlockDevice) -> "EasyFileSystem":
        """Load an existing file system from ``block_device``."""
        super_block = SuperBlock.unpack(block_device.read_block(0))
        if not super_block.is_valid():
            raise ValueError("Error loading EFS!")
        inode_total_blocks = super_block.inode_bitmap_blocks + super_block.inode_area_blocks
        return cls(
            block_device,
            Bitmap(1, super_block.inode_bitmap_blocks),
            Bitmap(1 + inode_total_blocks, super_block.data_bitmap_blocks),
            inode_area_start_block=1 + super_block.inode_bitmap_blocks,
            data_area_start_block=1 + inode_total_blocks + super_block.data_bitmap_blocks,
        )

    def root_inode(self) -> Inode:
        """Return the root directory."""
        block_id, offset = self.get_disk_inode_pos(0)
        return Inode(block_id, offset, self)

    def get_disk_inode_pos(self, inode_id: int) -> tuple[int, int]:
        """Return (block id, byte offset) of the disk inode ``inode_id``."""
        inodes_per_block = BLOCK_SZ // DISK_INODE_SIZE
        block, slot = divmod(inode_id, inodes_per_block)
        return self.inode_area_start_block + block, slot * DISK_INODE_SIZE

    def get_data_block_id(self, data_block_id: int) -> int:
        """Translate an index within the data area to a block id."""
        return self.data_area_start_block + data_block_id

    def alloc_inode(self) -> int:
        """Allocate an inode number."""
        inode_id = self.inode_bitmap.alloc(self.caches)
        if inode_id is None:
            raise OSError(errno.ENOSPC, "no free inode")
        return inode_id

    def alloc_data(self) -> int:
        """Allocate a data block and return its block id on the device."""
        bit = self.data_bitmap.alloc(self.caches)
        if bit is None:
            raise OSError(errno.ENOSPC, "no free data block")
        return bit + self.data_area_start_block

    def dealloc_data(self, block_id: int) -> None:
        """Zero a data block and return it to the free pool."""
        with self.caches.pinned(block_id) as cache:
            cache.write(0, bytes(BLOCK_SZ))
        self.data_bitmap.dealloc(self.caches, block_id - self.data_area_start_block)

    def sync(self) -> None:
        """Write every modified cached block to the device."""
        self.caches.sync_all()