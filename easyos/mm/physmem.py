"""Simulated physical memory, allocated page by page on first touch."""

from __future__ import annotations

from typing import Iterator

from .address import PAGE_SIZE

_WORD_BYTES = 8
_WORD_MAX = (1 << 64) - 1


class PhysicalMemory:
    """Sparse byte-addressed physical memory made of zero-filled pages."""

    def __init__(self) -> None:
        self._pages: dict[int, bytearray] = {}

    def page(self, ppn) -> bytearray:
        """The backing bytes of physical page ``ppn``."""
        number = int(ppn)
        if number < 0:
            raise ValueError(f"negative page number {number}")
        page = self._pages.get(number)
        if page is None:
            page = self._pages[number] = bytearray(PAGE_SIZE)
        return page

    def _chunks(self, pa, length: int) -> Iterator[tuple[bytearray, int, int]]:
        addr = int(pa)
        if addr < 0 or length < 0:
            raise ValueError("negative address or length")
        end = addr + length
        while addr < end:
            ppn, offset = divmod(addr, PAGE_SIZE)
            size = min(PAGE_SIZE - offset, end - addr)
            yield self.page(ppn), offset, size
            addr += size

    def read(self, pa, length: int) -> bytes:
        """Read ``length`` bytes starting at physical address ``pa``."""
        return b"".join(
            bytes(page[offset : offset + size])
            for page, offset, size in self._chunks(pa, length)
        )

    def write(self, pa, data: bytes) -> None:
        """Write ``data`` starting at physical address ``pa``."""
        view = memoryview(bytes(data))
        pos = 0
        for page, offset, size in self._chunks(pa, len(view)):
            page[offset : offset + size] = view[pos : pos + size]
            pos += size

    def read_word(self, pa) -> int:
        """Read a little-endian 64-bit word."""
        return int.from_bytes(self.read(pa, _WORD_BYTES), "little")

    def write_word(self, pa, value: int) -> None:
        """Write a little-endian 64-bit word."""
        if not 0 <= value <= _WORD_MAX:
            raise ValueError(f"value {value} does not fit in 64 bits")
        self.write(pa, value.to_bytes(_WORD_BYTES, "little"))