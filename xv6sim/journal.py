"""Write-ahead redo log that makes multi-block updates atomic."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from contextlib import contextmanager

from .bufcache import Buffer, BufferCache
from .errors import KernelPanic
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS

_INT = struct.Struct("<i")


class Log:
    """The on-disk log: a header block followed by copies of logged blocks.

    The header holds the count of committed blocks and their home block
    numbers. A transaction commits only when no operation is outstanding.
    """

    def __init__(
        self,
        cache: BufferCache,
        start: int,
        size: int,
        logsize: int = LOGSIZE,
        maxopblocks: int = MAXOPBLOCKS,
    ) -> None:
        if (1 + logsize) * _INT.size >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.cache = cache
        self.start = start
        self.size = size
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []

    def _read_head(self) -> None:
        with self.cache.block(self.start) as buf:
            (n,) = _INT.unpack_from(buf.data, 0)
            if n < 0 or n > self.logsize:
                raise KernelPanic("read_head: corrupt log header")
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _INT.size))

    def _write_head(self) -> None:
        with self.cache.block(self.start) as buf:
            n = len(self.blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
            self.cache.write(buf)

    def _copy_blocks(self, to_log: bool) -> None:
        for tail, home in enumerate(self.blocks):
            log_buf = self.cache.read(self.start + tail + 1)
            home_buf = self.cache.read(home)
            src, dst = (home_buf, log_buf) if to_log else (log_buf, home_buf)
            dst.data[:] = src.data
            self.cache.write(dst)
            self.cache.release(home_buf)
            self.cache.release(log_buf)

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._copy_blocks(to_log=False)
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Mark the start of a file system operation."""
        if self.committing:
            raise KernelPanic("begin_op: log is committing")
        needed = len(self.blocks) + (self.outstanding + 1) * self.maxopblocks
        if needed > self.logsize:
            raise KernelPanic("begin_op: log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """Mark the end of an operation; commits if it was the last one."""
        self.outstanding -= 1
        if self.committing:
            raise KernelPanic("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def _commit(self) -> None:
        if self.blocks:
            self._copy_blocks(to_log=True)
            self._write_head()
            self._copy_blocks(to_log=False)
            self.blocks = []
            self._write_head()

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        n = len(self.blocks)
        if n >= self.logsize or n >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        """Run the enclosed block as one file system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()