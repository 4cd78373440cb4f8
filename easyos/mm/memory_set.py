"""Address spaces: sets of mapped areas sharing one page table."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from .address import MEMORY_END, PAGE_SIZE, TRAMPOLINE, PhysAddr, PhysPageNum, VPNRange, VirtAddr, VirtPageNum
from .elf import ElfFile
from .frame_allocator import FrameTracker, StackFrameAllocator
from .page_table import PageTable, PageTableEntry, PTEFlags

logger = logging.getLogger(__name__)

MMIO: tuple[tuple[int, int], ...] = (
    (0x0010_0000, 0x00_2000),
    (0x2000000, 0x10000),
    (0xC000000, 0x210000),
    (0x10000000, 0x9000),
)


class MapType(enum.Enum):
    IDENTICAL = "identical"
    FRAMED = "framed"


class MapPermission(enum.IntFlag):
    R = 1 << 1
    W = 1 << 2
    X = 1 << 3
    U = 1 << 4


@dataclass(frozen=True)
class KernelLayout:
    """Section boundaries of the kernel image and the memory it manages."""

    stext: int
    etext: int
    srodata: int
    erodata: int
    sdata: int
    edata: int
    sbss_with_stack: int
    ebss: int
    ekernel: int
    strampoline: int
    memory_end: int = MEMORY_END
    mmio: tuple[tuple[int, int], ...] = MMIO


class MapArea:
    """A contiguous range of virtual pages mapped the same way."""

    def __init__(
        self, start_va: VirtAddr, end_va: VirtAddr, map_type: MapType, map_perm: MapPermission
    ) -> None:
        self.vpn_range = VPNRange(start_va.floor(), end_va.ceil())
        self.data_frames: dict[VirtPageNum, FrameTracker] = {}
        self.map_type = map_type
        self.map_perm = map_perm

    @classmethod
    def from_another(cls, another: "MapArea") -> "MapArea":
        """An unmapped area with the same range, type and permissions."""
        return cls(
            another.vpn_range.start.address(),
            another.vpn_range.end.address(),
            another.map_type,
            another.map_perm,
        )

    def map_one(self, page_table: PageTable, vpn: VirtPageNum) -> None:
        if self.map_type is MapType.IDENTICAL:
            ppn = PhysPageNum.of(vpn.value)
        else:
            frame = page_table._alloc_frame()
            ppn = frame.ppn
            self.data_frames[vpn] = frame
        page_table.map(vpn, ppn, PTEFlags(int(self.map_perm)))

    def unmap_one(self, page_table: PageTable, vpn: VirtPageNum) -> None:
        if self.map_type is MapType.FRAMED:
            frame = self.data_frames.pop(vpn, None)
            if frame is not None:
                frame.release()
        page_table.unmap(vpn)

    def map(self, page_table: PageTable) -> None:
        for vpn in self.vpn_range:
            self.map_one(page_table, vpn)

    def unmap(self, page_table: PageTable) -> None:
        for vpn in self.vpn_range:
            self.unmap_one(page_table, vpn)

    def release_frames(self) -> None:
        for frame in self.data_frames.values():
            frame.release()
        self.data_frames.clear()

    def copy_data(self, page_table: PageTable, data: bytes) -> None:
        """Copy ``data`` into the area's frames from its first page onward."""
        if self.map_type is not MapType.FRAMED:
            raise ValueError("data can only be copied into a framed area")
        memory = page_table._memory
        vpn = self.vpn_range.start
        for start in range(0, len(data), PAGE_SIZE):
            chunk = data[start : start + PAGE_SIZE]
            pte = page_table.translate(vpn)
            if pte is None:
                raise ValueError(f"{vpn!r} is not mapped")
            memory.page(pte.ppn())[: len(chunk)] = chunk
            vpn = vpn.step()

    def __repr__(self) -> str:
        return f"MapArea({self.vpn_range!r}, {self.map_type.name}, {self.map_perm!r})"


class MemorySet:
    """An address space: a page table plus the areas mapped into it."""

    def __init__(self, allocator: StackFrameAllocator, trampoline_pa: int) -> None:
        self.allocator = allocator
        self.trampoline_pa = trampoline_pa
        self.page_table = PageTable(allocator)
        self.areas: list[MapArea] = []

    def token(self) -> int:
        return self.page_table.token()

    def insert_framed_area(
        self, start_va: VirtAddr, end_va: VirtAddr, permission: MapPermission
    ) -> None:
        """Map a new framed area; it must not overlap existing ones."""
        self.push(MapArea(start_va, end_va, MapType.FRAMED, permission))

    def remove_area_with_start_vpn(self, start_vpn: VirtPageNum) -> None:
        area = next((a for a in self.areas if a.vpn_range.start == start_vpn), None)
        if area is not None:
            area.unmap(self.page_table)
            self.areas.remove(area)

    def push(self, map_area: MapArea, data: Optional[bytes] = None) -> None:
        map_area.map(self.page_table)
        if data is not None:
            map_area.copy_data(self.page_table, data)
        self.areas.append(map_area)

    def map_trampoline(self) -> None:
        """Map the trampoline page; it is not tracked among the areas."""
        self.page_table.map(
            VirtAddr.of(TRAMPOLINE).page_number(),
            PhysAddr.of(self.trampoline_pa).page_number(),
            PTEFlags.R | PTEFlags.X,
        )

    @classmethod
    def new_kernel(cls, allocator: StackFrameAllocator, layout: KernelLayout) -> "MemorySet":
        """The kernel address space, identically mapped, without kernel stacks."""
        memory_set = cls(allocator, layout.strampoline)
        memory_set.map_trampoline()
        sections = [
            (".text", layout.stext, layout.etext, MapPermission.R | MapPermission.X),
            (".rodata", layout.srodata, layout.erodata, MapPermission.R),
            (".data", layout.sdata, layout.edata, MapPermission.R | MapPermission.W),
            (".bss", layout.sbss_with_stack, layout.ebss, MapPermission.R | MapPermission.W),
        ]
        for name, start, end, perm in sections:
            logger.info("mapping %s section [%#x, %#x)", name, start, end)
            memory_set.push(MapArea(VirtAddr.of(start), VirtAddr.of(end), MapType.IDENTICAL, perm))
        logger.info("mapping physical memory")
        memory_set.push(
            MapArea(
                VirtAddr.of(layout.ekernel),
                VirtAddr.of(layout.memory_end),
                MapType.IDENTICAL,
                MapPermission.R | MapPermission.W,
            )
        )
        logger.info("mapping memory-mapped registers")
        for base, size in layout.mmio:
            memory_set.push(
                MapArea(
                    VirtAddr.of(base),
                    VirtAddr.of(base + size),
                    MapType.IDENTICAL,
                    MapPermission.R | MapPermission.W,
                )
            )
        return memory_set

    @classmethod
    def from_elf(
        cls, allocator: StackFrameAllocator, trampoline_pa: int, elf_data: bytes
    ) -> tuple["MemorySet", int, int]:
        """A user space built from an ELF image.

        Returns the space, the base of the user stack and the entry point.
        """
        elf = ElfFile.parse(elf_data)
        memory_set = cls(allocator, trampoline_pa)
        memory_set.map_trampoline()
        max_end_vpn = VirtPageNum(0)
        for header, payload in elf.load_segments():
            perm = MapPermission.U
            if header.is_read:
                perm |= MapPermission.R
            if header.is_write:
                perm |= MapPermission.W
            if header.is_execute:
                perm |= MapPermission.X
            area = MapArea(
                VirtAddr.of(header.virtual_addr),
                VirtAddr.of(header.virtual_addr + header.mem_size),
                MapType.FRAMED,
                perm,
            )
            max_end_vpn = area.vpn_range.end
            memory_set.push(area, payload)
        user_stack_base = int(max_end_vpn.address()) + PAGE_SIZE
        return memory_set, user_stack_base, elf.entry_point

    @classmethod
    def from_existed_user(cls, user_space: "MemorySet") -> "MemorySet":
        """A copy of ``user_space`` with its own frames holding the same data."""
        memory_set = cls(user_space.allocator, user_space.trampoline_pa)
        memory_set.map_trampoline()
        memory = user_space.allocator.memory
        for area in user_space.areas:
            memory_set.push(MapArea.from_another(area))
            for vpn in area.vpn_range:
                src = user_space.translate(vpn)
                dst = memory_set.translate(vpn)
                if src is None or dst is None:
                    raise ValueError(f"{vpn!r} is not mapped")
                memory.page(dst.ppn())[:] = memory.page(src.ppn())
        return memory_set

    def translate(self, vpn: VirtPageNum) -> Optional[PageTableEntry]:
        return self.page_table.translate(vpn)

    def recycle_data_pages(self) -> None:
        """Drop every area and give its frames back to the allocator."""
        for area in self.areas:
            area.release_frames()
        self.areas.clear()