import struct

import pytest

from easyos.mm.elf import ELF_MAGIC, ElfError, ElfFile, PF_R, PF_W, PF_X, PT_LOAD


def build_elf(entry, segments, elf_class=2):
    phoff = 64
    data_off = phoff + 56 * len(segments)
    headers = b""
    payloads = b""
    for p_type, vaddr, flags, payload, memsz in segments:
        headers += struct.pack(
            "<IIQQQQQQ",
            p_type, flags, data_off + len(payloads), vaddr, vaddr, len(payload), memsz, 0x1000,
        )
        payloads += payload
    ident = ELF_MAGIC + bytes([elf_class, 1, 1]) + bytes(9)
    ehdr = struct.pack(
        "<16sHHIQQQIHHHHHH",
        ident, 2, 0xF3, 1, entry, phoff, 0, 0, 64, 56, len(segments), 64, 0, 0,
    )
    return ehdr + headers + payloads


def test_parse_entry_and_headers():
    image = build_elf(
        0x10000,
        [
            (PT_LOAD, 0x10000, PF_R | PF_X, b"code", 0x1000),
            (4, 0, PF_R, b"note", 4),
            (PT_LOAD, 0x11000, PF_R | PF_W, b"data!", 0x2000),
        ],
    )
    elf = ElfFile.parse(image)
    assert elf.entry_point == 0x10000
    assert len(elf.program_headers) == 3


def test_load_segments_skips_other_types():
    image = build_elf(
        0x10000,
        [
            (PT_LOAD, 0x10000, PF_R | PF_X, b"code", 0x1000),
            (4, 0, PF_R, b"note", 4),
            (PT_LOAD, 0x11000, PF_R | PF_W, b"data!", 0x2000),
        ],
    )
    segments = list(ElfFile.parse(image).load_segments())
    assert [payload for _, payload in segments] == [b"code", b"data!"]
    assert [header.virtual_addr for header, _ in segments] == [0x10000, 0x11000]
    assert segments[1][0].mem_size == 0x2000


def test_flag_properties():
    image = build_elf(0, [(PT_LOAD, 0x1000, PF_R | PF_X, b"x", 1)])
    header = ElfFile.parse(image).program_headers[0]
    assert header.is_read
    assert header.is_execute
    assert not header.is_write
    assert header.is_load


def test_bad_magic_rejected():
    image = bytearray(build_elf(0, []))
    image[0] = 0
    with pytest.raises(ElfError, match="invalid elf"):
        ElfFile.parse(bytes(image))


def test_32_bit_rejected():
    with pytest.raises(ElfError):
        ElfFile.parse(build_elf(0, [], elf_class=1))


def test_truncated_header_rejected():
    with pytest.raises(ElfError):
        ElfFile.parse(ELF_MAGIC + bytes(10))


def test_segment_outside_image_rejected():
    image = build_elf(0, [(PT_LOAD, 0x1000, PF_R, b"abcdef", 6)])
    with pytest.raises(ElfError):
        ElfFile.parse(image[:-3])