"""A minimal reader for 64-bit little-endian ELF executables."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator

ELF_MAGIC = b"\x7fELF"
ELFCLASS64 = 2
ELFDATA2LSB = 1

PT_LOAD = 1
PF_X = 1
PF_W = 2
PF_R = 4

_EHDR = struct.Struct("<16sHHIQQQIHHHHHH")
_PHDR = struct.Struct("<IIQQQQQQ")


class ElfError(ValueError):
    """The data is not an ELF image this reader can load."""


@dataclass(frozen=True)
class ProgramHeader:
    """One entry of the program header table."""

    type: int
    flags: int
    offset: int
    virtual_addr: int
    physical_addr: int
    file_size: int
    mem_size: int
    align: int

    @property
    def is_load(self) -> bool:
        return self.type == PT_LOAD

    @property
    def is_read(self) -> bool:
        return bool(self.flags & PF_R)

    @property
    def is_write(self) -> bool:
        return bool(self.flags & PF_W)

    @property
    def is_execute(self) -> bool:
        return bool(self.flags & PF_X)


@dataclass(frozen=True)
class ElfFile:
    """A parsed ELF image: its raw bytes, entry point and program headers."""

    data: bytes
    entry_point: int
    program_headers: tuple[ProgramHeader, ...]

    @classmethod
    def parse(cls, data: bytes) -> "ElfFile":
        """Parse ``data``, raising ElfError if it is not a loadable ELF64 image."""
        data = bytes(data)
        if data[:4] != ELF_MAGIC:
            raise ElfError("invalid elf!")
        if len(data) < _EHDR.size:
            raise ElfError("truncated ELF header")
        (ident, _type, _machine, _version, entry, phoff, _shoff, _flags,
         _ehsize, phentsize, phnum, _shentsize, _shnum, _shstrndx) = _EHDR.unpack_from(data)
        if ident[4] != ELFCLASS64:
            raise ElfError("only 64-bit ELF images are supported")
        if ident[5] != ELFDATA2LSB:
            raise ElfError("only little-endian ELF images are supported")
        if phnum and phentsize < _PHDR.size:
            raise ElfError(f"program header entry size {phentsize} is too small")
        headers = []
        for index in range(phnum):
            start = phoff + index * phentsize
            if start + _PHDR.size > len(data):
                raise ElfError(f"program header {index} lies outside the image")
            header = ProgramHeader(*_PHDR.unpack_from(data, start))
            if header.is_load and header.offset + header.file_size > len(data):
                raise ElfError(f"segment {index} lies outside the image")
            headers.append(header)
        return cls(data, entry, tuple(headers))

    def load_segments(self) -> Iterator[tuple[ProgramHeader, bytes]]:
        """Yield each loadable segment's header with the bytes it takes from the file."""
        for header in self.program_headers:
            if header.is_load:
                yield header, self.data[header.offset : header.offset + header.file_size]