"""Buffer cache: in-memory copies of disk blocks with LRU recycling."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .disk import MemoryDisk
from .errors import KernelPanic
from .layout import BSIZE, NBUF


@dataclass(eq=False)
class Buffer:
    """A cached disk block."""

    blockno: int = -1
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False


class BufferCache:
    """A fixed pool of buffers; only one holder of a buffer at a time."""

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        # Most recently used first.
        self._mru = [Buffer() for _ in range(nbuf)]
        self._mru.reverse()

    @staticmethod
    def _lock(buf: Buffer) -> None:
        if buf.locked:
            raise KernelPanic(f"acquiresleep: block {buf.blockno} already locked")
        buf.locked = True

    def _get(self, blockno: int) -> Buffer:
        for buf in self._mru:
            if buf.blockno == blockno:
                buf.refcnt += 1
                self._lock(buf)
                return buf
        # A dirty buffer is still in use by the log even when unreferenced.
        for buf in reversed(self._mru):
            if buf.refcnt == 0 and not buf.dirty:
                buf.blockno = blockno
                buf.valid = False
                buf.dirty = False
                buf.refcnt = 1
                self._lock(buf)
                return buf
        raise KernelPanic("bget: no buffers")

    def _sync(self, buf: Buffer) -> None:
        if not buf.locked:
            raise KernelPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise KernelPanic("iderw: nothing to do")
        if buf.dirty:
            self.disk.write_block(buf.blockno, bytes(buf.data))
            buf.dirty = False
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def read(self, blockno: int) -> Buffer:
        """Return the locked buffer holding ``blockno``."""
        buf = self._get(blockno)
        if not buf.valid:
            self._sync(buf)
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            raise KernelPanic("bwrite")
        buf.dirty = True
        self._sync(buf)

    def release(self, buf: Buffer) -> None:
        """Unlock a buffer; an unreferenced one becomes most recently used."""
        if not buf.locked:
            raise KernelPanic("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._mru.remove(buf)
            self._mru.insert(0, buf)

    @contextmanager
    def block(self, blockno: int) -> Iterator[Buffer]:
        """Hold the buffer for ``blockno`` for the duration of the block."""
        buf = self.read(blockno)
        try:
            yield buf
        finally:
            self.release(buf)