"""Anonymous pipes over a small ring buffer."""

from __future__ import annotations

import enum
import io
import threading
import weakref
from typing import Optional

from ..mm.page_table import UserBuffer
from .file import File

RING_BUFFER_SIZE = 32


class RingBufferStatus(enum.Enum):
    FULL = "full"
    EMPTY = "empty"
    NORMAL = "normal"


class PipeRingBuffer:
    """A fixed-size byte ring shared by the two ends of a pipe."""

    def __init__(self) -> None:
        self.arr = bytearray(RING_BUFFER_SIZE)
        self.head = 0
        self.tail = 0
        self.status = RingBufferStatus.EMPTY
        self._write_end: Optional[weakref.ref] = None
        self.condition = threading.Condition(threading.RLock())

    def set_write_end(self, write_end: "Pipe") -> None:
        """Remember the write end without keeping it alive."""
        self._write_end = weakref.ref(write_end, self._write_end_dropped)

    def _write_end_dropped(self, _ref: weakref.ref) -> None:
        with self.condition:
            self.condition.notify_all()

    def write_byte(self, byte: int) -> None:
        if self.status is RingBufferStatus.FULL:
            raise BufferError("ring buffer is full")
        self.status = RingBufferStatus.NORMAL
        self.arr[self.tail] = byte
        self.tail = (self.tail + 1) % RING_BUFFER_SIZE
        if self.tail == self.head:
            self.status = RingBufferStatus.FULL

    def read_byte(self) -> int:
        if self.status is RingBufferStatus.EMPTY:
            raise BufferError("ring buffer is empty")
        self.status = RingBufferStatus.NORMAL
        byte = self.arr[self.head]
        self.head = (self.head + 1) % RING_BUFFER_SIZE
        if self.head == self.tail:
            self.status = RingBufferStatus.EMPTY
        return byte

    def available_read(self) -> int:
        if self.status is RingBufferStatus.EMPTY:
            return 0
        if self.tail > self.head:
            return self.tail - self.head
        return self.tail + RING_BUFFER_SIZE - self.head

    def available_write(self) -> int:
        if self.status is RingBufferStatus.FULL:
            return 0
        return RING_BUFFER_SIZE - self.available_read()

    def all_write_ends_closed(self) -> bool:
        """True once the write end was closed or no longer exists."""
        if self._write_end is None:
            raise RuntimeError("write end not set")
        write_end = self._write_end()
        return write_end is None or write_end.closed


class Pipe(File):
    """One end of a pipe."""

    def __init__(self, readable: bool, writable: bool, buffer: PipeRingBuffer) -> None:
        self._readable = readable
        self._writable = writable
        self.buffer = buffer
        self.closed = False

    def readable(self) -> bool:
        return self._readable

    def writable(self) -> bool:
        return self._writable

    def read(self, buf: UserBuffer) -> int:
        """Fill ``buf``, waiting for data until it is full or the writer is gone."""
        if not self._readable:
            raise io.UnsupportedOperation("pipe end is not readable")
        want = len(buf)
        out = bytearray()
        ring = self.buffer
        with ring.condition:
            while len(out) < want:
                available = ring.available_read()
                if available == 0:
                    if ring.all_write_ends_closed():
                        break
                    ring.condition.wait()
                    continue
                for _ in range(min(available, want - len(out))):
                    out.append(ring.read_byte())
                ring.condition.notify_all()
        buf.fill(out)
        return len(out)

    def write(self, buf: UserBuffer) -> int:
        """Write all of ``buf``, waiting whenever the ring is full."""
        if not self._writable:
            raise io.UnsupportedOperation("pipe end is not writable")
        data = buf.to_bytes()
        pos = 0
        ring = self.buffer
        with ring.condition:
            while pos < len(data):
                available = ring.available_write()
                if available == 0:
                    ring.condition.wait()
                    continue
                for byte in data[pos : pos + available]:
                    ring.write_byte(byte)
                pos += min(available, len(data) - pos)
                ring.condition.notify_all()
        return pos

    def close(self) -> None:
        """Close this end and wake anyone waiting on the pipe."""
        with self.buffer.condition:
            self.closed = True
            self.buffer.condition.notify_all()


def make_pipe() -> tuple[Pipe, Pipe]:
    """Return (read end, write end) of a new pipe."""
    buffer = PipeRingBuffer()
    read_end = Pipe(True, False, buffer)
    write_end = Pipe(False, True, buffer)
    buffer.set_write_end(write_end)
    return read_end, write_end