"""The file interface shared by open files, plus the console's standard streams."""

from __future__ import annotations

import abc
import io
import sys
from typing import BinaryIO, Optional, TextIO

from ..mm.page_table import UserBuffer


class File(abc.ABC):
    """Something a process can read bytes from or write bytes to."""

    @abc.abstractmethod
    def readable(self) -> bool:
        """Whether reading is allowed."""

    @abc.abstractmethod
    def writable(self) -> bool:
        """Whether writing is allowed."""

    @abc.abstractmethod
    def read(self, buf: UserBuffer) -> int:
        """Fill ``buf`` with data; return the number of bytes read."""

    @abc.abstractmethod
    def write(self, buf: UserBuffer) -> int:
        """Write the contents of ``buf``; return the number of bytes written."""


class Stdin(File):
    """Standard input: one byte per read from a binary stream."""

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self._stream = stream

    def _source(self) -> BinaryIO:
        return self._stream if self._stream is not None else sys.stdin.buffer

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def read(self, buf: UserBuffer) -> int:
        """Read exactly one byte into a one-byte buffer; return 0 at end of input."""
        if len(buf) != 1:
            raise ValueError("stdin reads exactly one byte at a time")
        ch = self._source().read(1)
        if not ch:
            return 0
        return buf.fill(ch)

    def write(self, buf: UserBuffer) -> int:
        raise io.UnsupportedOperation("Cannot write to stdin!")


class Stdout(File):
    """Standard output: UTF-8 text written to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def _sink(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def readable(self) -> bool:
        return False

    def writable(self) -> bool:
        return True

    def read(self, buf: UserBuffer) -> int:
        raise io.UnsupportedOperation("Cannot read from stdout!")

    def write(self, buf: UserBuffer) -> int:
        """Decode each slice as UTF-8 and print it; return the total length."""
        sink = self._sink()
        for chunk in buf.buffers:
            sink.write(bytes(chunk).decode("utf-8"))
        sink.flush()
        return len(buf)