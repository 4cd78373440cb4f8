# easyos

A small, self-contained toolkit for exploring how a teaching operating
system works. Everything runs in ordinary Python and has no dependencies
outside the standard library.

- `easyos.easyfs`: a simple block file system. It has a super block, inode
  and data bitmaps, inodes with direct and indirect blocks, and a flat root
  directory. It runs on any `BlockDevice` and uses a write-back block cache.
  It also holds the `easyfs-pack` image packer.
- `easyos.mm`: Sv39 addresses and page numbers, simulated physical memory,
  a stack frame allocator, three-level page tables, memory sets and a
  minimal ELF64 segment reader.
- `easyos.fs`: the `File` interface, standard input and output streams,
  pipes over a 32-byte ring buffer, and `OSInode` open files with
  `OpenFlags`.
- `easyos.sync`: `UPIntrFreeCell`, a single-processor cell that masks a
  simulated interrupt-enable bit while it is borrowed.
- `easyos.drivers`: a PLIC interrupt-controller model and the board's exit
  device, both on an in-memory `MmioBus`.

## Installation

```
pip install .
```

## Packing a file-system image

`easyfs-pack` builds a 16 MiB image (32768 blocks of 512 bytes, with one
inode-bitmap block) called `fs.img` in the target directory:

```
easyfs-pack --source user/src/bin --target user/target/release
```

Both options are required. The command adds one file for every entry in
the source directory. Each file is named after the entry, cut at its first
dot, and the files are added in name order. A name without a dot is an
error. The file's contents are read from the target directory under that
shortened name. The command prints both paths, then the names in the new
root directory.

From Python, `easyos.easyfs.packer.pack(source_dir, target_dir)` does the
same and returns the root listing.

## Using the file system

```python
from easyos.easyfs.block_device import MemoryBlockDevice
from easyos.easyfs.efs import EasyFileSystem

device = MemoryBlockDevice(4096)
efs = EasyFileSystem.create(device, 4096, 1)
root = efs.root_inode()

hello = root.create("hello")          # None if the name already exists
hello.write_at(0, b"Hello, world!")
print(root.ls())                      # ['hello']
print(hello.read_at(0, 233))          # b'Hello, world!'
print(root.find("hello").read_at(7, 5))  # b'world'
hello.clear()                         # size 0, blocks freed
```

Names are limited to 27 bytes of UTF-8. Running out of inodes or data
blocks raises `OSError` with `errno.ENOSPC`.

`FileBlockDevice` keeps the blocks in an image file and works as a context
manager. Pass a block count only when creating an image, because the file
is resized to that length:

```python
from easyos.easyfs.block_device import FileBlockDevice
from easyos.easyfs.efs import EasyFileSystem

with FileBlockDevice("fs.img") as device:
    efs = EasyFileSystem.open(device)
    print(efs.root_inode().ls())
```

`EasyFileSystem.open` raises `ValueError` if block 0 does not hold a valid
super block.

## Page tables on simulated memory

```python
from easyos.mm.address import PhysPageNum, VirtAddr
from easyos.mm.frame_allocator import StackFrameAllocator
from easyos.mm.page_table import PageTable, PTEFlags
from easyos.mm.physmem import PhysicalMemory

allocator = StackFrameAllocator(PhysicalMemory())
allocator.init(PhysPageNum(0x80000), PhysPageNum(0x80100))
table = PageTable(allocator)
table.map(VirtAddr(0x1000).floor(), PhysPageNum(0x12345), PTEFlags.R | PTEFlags.W)
print(table.translate_va(VirtAddr(0x1234)))   # PA:0x12345234
```

`MemorySet.from_elf` builds a user address space from an ELF64
little-endian image. `MemorySet.new_kernel` maps a kernel described by a
`KernelLayout`.

## What this package does not do

These are models to inspect and test, not a running system. There is no
kernel that boots, no task scheduler, and no system calls. The file system
cannot be mounted into the host. There are no drivers for real block,
console, GPU or input devices. Pipes wait on a Python thread condition
rather than yielding to a scheduler. `QemuExit` does not stop an emulator:
it records the exit word on the bus and raises `QemuExitRequested`.

## Running the tests

```
pip install .[test]
pytest
```