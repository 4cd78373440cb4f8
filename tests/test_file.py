import io

import pytest

from easyos.fs.file import Stdin, Stdout
from easyos.mm.page_table import UserBuffer


def _buf(data: bytes) -> UserBuffer:
    return UserBuffer([memoryview(bytearray(data))])


def test_stdin_reads_one_byte_at_a_time():
    stdin = Stdin(io.BytesIO(b"xy"))
    first = _buf(b"\0")
    assert stdin.read(first) == 1
    assert first.to_bytes() == b"x"
    second = _buf(b"\0")
    assert stdin.read(second) == 1
    assert second.to_bytes() == b"y"


def test_stdin_returns_zero_at_end_of_input():
    stdin = Stdin(io.BytesIO(b""))
    buf = _buf(b"\0")
    assert stdin.read(buf) == 0
    assert buf.to_bytes() == b"\0"


def test_stdin_requires_one_byte_buffer():
    stdin = Stdin(io.BytesIO(b"abc"))
    with pytest.raises(ValueError):
        stdin.read(_buf(b"\0\0"))


def test_stdin_cannot_be_written():
    stdin = Stdin(io.BytesIO(b""))
    assert stdin.readable() is True
    assert stdin.writable() is False
    with pytest.raises(io.UnsupportedOperation):
        stdin.write(_buf(b"a"))


def test_stdout_writes_all_slices():
    sink = io.StringIO()
    stdout = Stdout(sink)
    buf = UserBuffer([memoryview(bytearray(b"hello, ")), memoryview(bytearray(b"world"))])
    assert stdout.write(buf) == len(buf)
    assert sink.getvalue() == "hello, world"


def test_stdout_rejects_invalid_utf8():
    stdout = Stdout(io.StringIO())
    with pytest.raises(UnicodeDecodeError):
        stdout.write(_buf(b"\xff\xfe"))


def test_stdout_cannot_be_read():
    stdout = Stdout(io.StringIO())
    assert stdout.readable() is False
    assert stdout.writable() is True
    with pytest.raises(io.UnsupportedOperation):
        stdout.read(_buf(b"\0"))