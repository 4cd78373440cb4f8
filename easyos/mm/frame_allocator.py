"""Physical page frame allocation with recycling."""

from __future__ import annotations

from typing import Optional

from .address import PAGE_SIZE, PhysPageNum
from .physmem import PhysicalMemory


class FrameAllocationError(Exception):
    """A frame was released that is not currently allocated, or none is free."""


class FrameTracker:
    """Ownership of one allocated frame; release it to return it to the pool."""

    def __init__(self, ppn: PhysPageNum, allocator: "StackFrameAllocator") -> None:
        self.ppn = ppn
        self._allocator = allocator
        self._released = False

    def release(self) -> None:
        """Return the frame to its allocator; further calls do nothing."""
        if not self._released:
            self._released = True
            self._allocator.dealloc(self.ppn)

    def __enter__(self) -> "FrameTracker":
        return self

    def __exit__(self, *args) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"FrameTracker:PPN={self.ppn.value:#x}"


class StackFrameAllocator:
    """Hands out frames from a range, reusing released frames last-in first-out."""

    def __init__(self, memory: PhysicalMemory) -> None:
        self.memory = memory
        self.current = 0
        self.end = 0
        self.recycled: list[int] = []

    def init(self, start: PhysPageNum, end: PhysPageNum) -> int:
        """Manage frames [start, end); return how many that is."""
        self.current = start.value
        self.end = end.value
        return self.end - self.current

    def alloc(self) -> Optional[PhysPageNum]:
        """A free frame number, or None when all are taken."""
        if self.recycled:
            return PhysPageNum.of(self.recycled.pop())
        if self.current == self.end:
            return None
        self.current += 1
        return PhysPageNum.of(self.current - 1)

    def dealloc(self, ppn: PhysPageNum) -> None:
        """Give a frame back."""
        number = ppn.value
        if number >= self.current or number in self.recycled:
            raise FrameAllocationError(f"Frame ppn={number:#x} has not been allocated!")
        self.recycled.append(number)

    def frame_alloc(self) -> Optional[FrameTracker]:
        """Allocate a zero-filled frame, or return None when all are taken."""
        ppn = self.alloc()
        if ppn is None:
            return None
        self.memory.page(ppn)[:] = bytes(PAGE_SIZE)
        return FrameTracker(ppn, self)