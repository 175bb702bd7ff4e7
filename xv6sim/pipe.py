"""An in-kernel pipe: a bounded byte buffer with a read end and a write end."""

from __future__ import annotations

import errno

PIPESIZE = 512


class Pipe:
    """A pipe holding at most PIPESIZE unread bytes.

    Operations that would block on a real kernel raise BlockingIOError.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self.readopen = True
        self.writeopen = True

    @property
    def available(self) -> int:
        """Number of bytes waiting to be read."""
        return len(self._buf)

    @property
    def closed(self) -> bool:
        """True once both ends have been closed."""
        return not self.readopen and not self.writeopen

    def write(self, data: bytes) -> int:
        """Append ``data``; returns the number of bytes written.

        Raises BrokenPipeError when the buffer is full and no reader is left,
        and BlockingIOError (with ``characters_written``) when it is full but
        a reader could still drain it.
        """
        data = bytes(data)
        written = 0
        while written < len(data):
            space = PIPESIZE - len(self._buf)
            if space == 0:
                if not self.readopen:
                    raise BrokenPipeError(errno.EPIPE, "pipe has no reader")
                raise BlockingIOError(errno.EAGAIN, "pipe is full", written)
            chunk = data[written : written + space]
            self._buf += chunk
            written += len(chunk)
        return len(data)

    def read(self, n: int) -> bytes:
        """Take up to ``n`` bytes; empty bytes once the writer has gone."""
        if n < 0:
            raise ValueError("read count must not be negative")
        if not self._buf:
            if self.writeopen:
                raise BlockingIOError(errno.EAGAIN, "pipe is empty")
            return b""
        out = bytes(self._buf[:n])
        del self._buf[:n]
        return out

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        if writable:
            self.writeopen = False
        else:
            self.readopen = False