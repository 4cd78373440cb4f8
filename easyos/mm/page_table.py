"""Sv39 three-level page tables kept in simulated physical memory."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from .address import PhysAddr, PhysPageNum, VirtAddr, VirtPageNum
from .frame_allocator import FrameAllocationError, FrameTracker, StackFrameAllocator

_PTE_SIZE = 8
_PPN_FIELD_MASK = (1 << 44) - 1
_SV39_MODE = 8


class PTEFlags(enum.IntFlag):
    V = 1 << 0
    R = 1 << 1
    W = 1 << 2
    X = 1 << 3
    U = 1 << 4
    G = 1 << 5
    A = 1 << 6
    D = 1 << 7


@dataclass(frozen=True)
class PageTableEntry:
    """A page table entry: physical page number and flag bits."""

    bits: int = 0

    @classmethod
    def new(cls, ppn: PhysPageNum, flags: PTEFlags) -> "PageTableEntry":
        return cls(ppn.value << 10 | int(flags))

    @classmethod
    def empty(cls) -> "PageTableEntry":
        return cls(0)

    def ppn(self) -> PhysPageNum:
        return PhysPageNum.of((self.bits >> 10) & _PPN_FIELD_MASK)

    def flags(self) -> PTEFlags:
        return PTEFlags(self.bits & 0xFF)

    def is_valid(self) -> bool:
        return bool(self.flags() & PTEFlags.V)

    def readable(self) -> bool:
        return bool(self.flags() & PTEFlags.R)

    def writable(self) -> bool:
        return bool(self.flags() & PTEFlags.W)

    def executable(self) -> bool:
        return bool(self.flags() & PTEFlags.X)


class PageTable:
    """A page table whose root and intermediate frames it owns."""

    def __init__(self, allocator: StackFrameAllocator) -> None:
        self._allocator = allocator
        self._memory = allocator.memory
        frame = self._alloc_frame()
        self.root_ppn = frame.ppn
        self.frames: list[FrameTracker] = [frame]

    @classmethod
    def from_token(cls, token: int, allocator: StackFrameAllocator) -> "PageTable":
        """A view of an existing table given its satp value; owns no frames."""
        table = cls.__new__(cls)
        table._allocator = allocator
        table._memory = allocator.memory
        table.root_ppn = PhysPageNum.of(token & _PPN_FIELD_MASK)
        table.frames = []
        return table

    def _alloc_frame(self) -> FrameTracker:
        frame = self._allocator.frame_alloc()
        if frame is None:
            raise FrameAllocationError("out of physical frames")
        return frame

    @staticmethod
    def _pte_addr(ppn: PhysPageNum, index: int) -> int:
        return ppn.address().value + index * _PTE_SIZE

    def _read_pte(self, addr: int) -> PageTableEntry:
        return PageTableEntry(self._memory.read_word(addr))

    def _write_pte(self, addr: int, pte: PageTableEntry) -> None:
        self._memory.write_word(addr, pte.bits)

    def _find_pte_create(self, vpn: VirtPageNum) -> int:
        *upper, leaf = vpn.indexes()
        ppn = self.root_ppn
        for index in upper:
            addr = self._pte_addr(ppn, index)
            pte = self._read_pte(addr)
            if not pte.is_valid():
                frame = self._alloc_frame()
                pte = PageTableEntry.new(frame.ppn, PTEFlags.V)
                self._write_pte(addr, pte)
                self.frames.append(frame)
            ppn = pte.ppn()
        return self._pte_addr(ppn, leaf)

    def _find_pte(self, vpn: VirtPageNum) -> Optional[int]:
        *upper, leaf = vpn.indexes()
        ppn = self.root_ppn
        for index in upper:
            pte = self._read_pte(self._pte_addr(ppn, index))
            if not pte.is_valid():
                return None
            ppn = pte.ppn()
        return self._pte_addr(ppn, leaf)

    def map(self, vpn: VirtPageNum, ppn: PhysPageNum, flags: PTEFlags) -> None:
        """Map ``vpn`` to ``ppn``; the page must not be mapped already."""
        addr = self._find_pte_create(vpn)
        if self._read_pte(addr).is_valid():
            raise ValueError(f"vpn {vpn!r} is mapped before mapping")
        self._write_pte(addr, PageTableEntry.new(ppn, flags | PTEFlags.V))

    def unmap(self, vpn: VirtPageNum) -> None:
        """Remove the mapping of ``vpn``; it must be mapped."""
        addr = self._find_pte(vpn)
        if addr is None or not self._read_pte(addr).is_valid():
            raise ValueError(f"vpn {vpn!r} is invalid before unmapping")
        self._write_pte(addr, PageTableEntry.empty())

    def translate(self, vpn: VirtPageNum) -> Optional[PageTableEntry]:
        """The leaf entry for ``vpn``, or None if an upper level is missing."""
        addr = self._find_pte(vpn)
        return None if addr is None else self._read_pte(addr)

    def translate_va(self, va: VirtAddr) -> Optional[PhysAddr]:
        """The physical address ``va`` maps to, or None."""
        pte = self.translate(va.floor())
        if pte is None:
            return None
        return PhysAddr.of(pte.ppn().address().value + va.page_offset())

    def token(self) -> int:
        """The satp value selecting Sv39 with this table as root."""
        return _SV39_MODE << 60 | self.root_ppn.value


class UserBuffer:
    """A byte buffer scattered over several physical memory slices."""

    def __init__(self, buffers: Iterable[memoryview]) -> None:
        self.buffers = list(buffers)

    def __len__(self) -> int:
        return sum(len(buf) for buf in self.buffers)

    def to_bytes(self) -> bytes:
        return b"".join(bytes(buf) for buf in self.buffers)

    def fill(self, data: bytes) -> int:
        """Copy ``data`` into the buffer in order; return the bytes copied."""
        view = memoryview(bytes(data))
        pos = 0
        for buf in self.buffers:
            if pos >= len(view):
                break
            size = min(len(buf), len(view) - pos)
            buf[:size] = view[pos : pos + size]
            pos += size
        return pos


def translated_byte_buffer(
    token: int, ptr: int, length: int, allocator: StackFrameAllocator
) -> list[memoryview]:
    """The physical slices backing ``length`` bytes at ``ptr`` in the given space."""
    page_table = PageTable.from_token(token, allocator)
    memory = allocator.memory
    start = int(ptr)
    end = start + length
    slices: list[memoryview] = []
    while start < end:
        start_va = VirtAddr.of(start)
        vpn = start_va.floor()
        pte = page_table.translate(vpn)
        if pte is None:
            raise ValueError(f"{start_va!r} is not mapped")
        page = memoryview(memory.page(pte.ppn()))
        end_va = min(vpn.step().address(), VirtAddr.of(end))
        if end_va.page_offset() == 0:
            slices.append(page[start_va.page_offset() :])
        else:
            slices.append(page[start_va.page_offset() : end_va.page_offset()])
        start = int(end_va)
    return slices


def translated_str(token: int, ptr: int, allocator: StackFrameAllocator) -> str:
    """Load a NUL-terminated string from the given space, without the NUL."""
    page_table = PageTable.from_token(token, allocator)
    memory = allocator.memory
    chars: list[str] = []
    va = int(ptr)
    while True:
        pa = page_table.translate_va(VirtAddr.of(va))
        if pa is None:
            raise ValueError(f"{VirtAddr.of(va)!r} is not mapped")
        ch = memory.read(pa, 1)[0]
        if ch == 0:
            break
        chars.append(chr(ch))
        va += 1
    return "".join(chars)