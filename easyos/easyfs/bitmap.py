"""Allocation bitmaps stored in consecutive disk blocks."""

from __future__ import annotations

import struct
from typing import Optional

from .block_cache import BlockCacheManager
from .block_device import BLOCK_SZ

BLOCK_BITS = BLOCK_SZ * 8
_WORDS = BLOCK_SZ // 8
_FULL = (1 << 64) - 1
_WORD = struct.Struct("<Q")
_BLOCK = struct.Struct(f"<{_WORDS}Q")


def decomposition(bit: int) -> tuple[int, int, int]:
    """Split a bit index into (block position, 64-bit word position, bit in word)."""
    block_pos, bit = divmod(bit, BLOCK_BITS)
    bits64_pos, inner_pos = divmod(bit, 64)
    return block_pos, bits64_pos, inner_pos


def _trailing_ones(word: int) -> int:
    return (~word & (word + 1)).bit_length() - 1


class Bitmap:
    """A bitmap spanning ``blocks`` blocks starting at ``start_block_id``."""

    def __init__(self, start_block_id: int, blocks: int) -> None:
        self.start_block_id = start_block_id
        self.blocks = blocks

    def alloc(self, caches: BlockCacheManager) -> Optional[int]:
        """Set the lowest clear bit and return its index, or None when full."""
        for block_id in range(self.blocks):
            with caches.pinned(self.start_block_id + block_id) as cache:
                words = _BLOCK.unpack(cache.read(0, BLOCK_SZ))
                found = next(
                    ((pos, word) for pos, word in enumerate(words) if word != _FULL), None
                )
                if found is None:
                    continue
                bits64_pos, word = found
                inner_pos = _trailing_ones(word)
                cache.write(bits64_pos * 8, _WORD.pack(word | (1 << inner_pos)))
                return block_id * BLOCK_BITS + bits64_pos * 64 + inner_pos
        return None

    def dealloc(self, caches: BlockCacheManager, bit: int) -> None:
        """Clear a bit that is currently set."""
        block_pos, bits64_pos, inner_pos = decomposition(bit)
        with caches.pinned(self.start_block_id + block_pos) as cache:
            (word,) = _WORD.unpack(cache.read(bits64_pos * 8, 8))
            mask = 1 << inner_pos
            if not word & mask:
                raise ValueError(f"bit {bit} is not allocated")
            cache.write(bits64_pos * 8, _WORD.pack(word & ~mask))

    def maximum(self) -> int:
        """Number of bits the bitmap can hold."""
        return self.blocks * BLOCK_BITS