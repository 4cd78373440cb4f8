"""Sv39 physical and virtual addresses, page numbers and page ranges."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

USER_STACK_SIZE = 4096 * 2
KERNEL_STACK_SIZE = 4096 * 2
KERNEL_HEAP_SIZE = 0x100_0000
MEMORY_END = 0x88000000
PAGE_SIZE = 0x1000
PAGE_SIZE_BITS = 0xC

USIZE_MAX = (1 << 64) - 1
TRAMPOLINE = USIZE_MAX - PAGE_SIZE + 1
TRAP_CONTEXT_BASE = TRAMPOLINE - PAGE_SIZE

PA_WIDTH_SV39 = 56
VA_WIDTH_SV39 = 39
PPN_WIDTH_SV39 = PA_WIDTH_SV39 - PAGE_SIZE_BITS
VPN_WIDTH_SV39 = VA_WIDTH_SV39 - PAGE_SIZE_BITS

_PA_MASK = (1 << PA_WIDTH_SV39) - 1
_VA_MASK = (1 << VA_WIDTH_SV39) - 1
_PPN_MASK = (1 << PPN_WIDTH_SV39) - 1
_VPN_MASK = (1 << VPN_WIDTH_SV39) - 1


def _floor(value: int) -> int:
    return value // PAGE_SIZE


def _ceil(value: int) -> int:
    return (value - 1 + PAGE_SIZE) // PAGE_SIZE


def _offset(value: int) -> int:
    return value & (PAGE_SIZE - 1)


@dataclass(frozen=True, order=True, repr=False)
class PhysAddr:
    value: int

    @classmethod
    def of(cls, value) -> "PhysAddr":
        return cls(int(value) & _PA_MASK)

    def floor(self) -> "PhysPageNum":
        """The page number containing this address."""
        return PhysPageNum(_floor(self.value))

    def ceil(self) -> "PhysPageNum":
        """The first page number at or after this address."""
        return PhysPageNum(_ceil(self.value))

    def page_offset(self) -> int:
        return _offset(self.value)

    def aligned(self) -> bool:
        return self.page_offset() == 0

    def page_number(self) -> "PhysPageNum":
        """The page number of a page-aligned address."""
        if not self.aligned():
            raise ValueError(f"{self!r} is not page aligned")
        return self.floor()

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"PA:{self.value:#x}"


@dataclass(frozen=True, order=True, repr=False)
class VirtAddr:
    value: int

    @classmethod
    def of(cls, value) -> "VirtAddr":
        return cls(int(value) & _VA_MASK)

    def floor(self) -> "VirtPageNum":
        """The page number containing this address."""
        return VirtPageNum(_floor(self.value))

    def ceil(self) -> "VirtPageNum":
        """The first page number at or after this address."""
        return VirtPageNum(_ceil(self.value))

    def page_offset(self) -> int:
        return _offset(self.value)

    def aligned(self) -> bool:
        return self.page_offset() == 0

    def page_number(self) -> "VirtPageNum":
        """The page number of a page-aligned address."""
        if not self.aligned():
            raise ValueError(f"{self!r} is not page aligned")
        return self.floor()

    def __int__(self) -> int:
        """The address sign-extended to 64 bits."""
        if self.value >= 1 << (VA_WIDTH_SV39 - 1):
            return self.value | (~_VA_MASK & USIZE_MAX)
        return self.value

    def __repr__(self) -> str:
        return f"VA:{self.value:#x}"


@dataclass(frozen=True, order=True, repr=False)
class PhysPageNum:
    value: int

    @classmethod
    def of(cls, value) -> "PhysPageNum":
        return cls(int(value) & _PPN_MASK)

    def address(self) -> PhysAddr:
        """The address of the first byte of this page."""
        return PhysAddr(self.value << PAGE_SIZE_BITS)

    def step(self) -> "PhysPageNum":
        """The next page number."""
        return PhysPageNum(self.value + 1)

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"PPN:{self.value:#x}"


@dataclass(frozen=True, order=True, repr=False)
class VirtPageNum:
    value: int

    @classmethod
    def of(cls, value) -> "VirtPageNum":
        return cls(int(value) & _VPN_MASK)

    def address(self) -> VirtAddr:
        """The address of the first byte of this page."""
        return VirtAddr(self.value << PAGE_SIZE_BITS)

    def step(self) -> "VirtPageNum":
        """The next page number."""
        return VirtPageNum(self.value + 1)

    def indexes(self) -> list[int]:
        """The three 9-bit page table indexes, top level first."""
        vpn = self.value
        return [(vpn >> shift) & 511 for shift in (18, 9, 0)]

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"VPN:{self.value:#x}"


class VPNRange:
    """The half-open range of virtual page numbers [start, end)."""

    def __init__(self, start: VirtPageNum, end: VirtPageNum) -> None:
        if start > end:
            raise ValueError(f"start {start!r} > end {end!r}!")
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[VirtPageNum]:
        current = self.start
        while current != self.end:
            yield current
            current = current.step()

    def __len__(self) -> int:
        return self.end.value - self.start.value

    def __repr__(self) -> str:
        return f"VPNRange({self.start!r}, {self.end!r})"