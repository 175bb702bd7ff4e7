"""Open file objects: reference-counted handles on pipes and inodes."""

from __future__ import annotations

import enum
import errno
import io
from dataclasses import dataclass

from .errors import KernelPanic
from .fs import FileSystem, Inode
from .layout import BSIZE, MAXOPBLOCKS, NFILE, Stat
from .pipe import Pipe

# Largest write done in one log transaction: room for the inode, an
# indirect block, allocation blocks and two blocks of slop.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE


class FileType(enum.Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """One open file."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """The system-wide table of open files."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE) -> None:
        self.fs = fs
        self._files = [File() for _ in range(nfile)]

    def _require_fs(self) -> FileSystem:
        if self.fs is None:
            raise KernelPanic("file table has no file system")
        return self.fs

    def alloc(self) -> File:
        """Take a free file slot with one reference."""
        for f in self._files:
            if f.ref == 0:
                f.ref = 1
                return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: File) -> File:
        """Add a reference to ``f``."""
        if f.ref < 1:
            raise KernelPanic("filedup")
        f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; the last one releases the pipe end or inode."""
        if f.ref < 1:
            raise KernelPanic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
        f.type = FileType.NONE
        f.pipe = None
        f.ip = None
        f.off = 0
        if kind is FileType.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileType.INODE and ip is not None:
            fs = self._require_fs()
            with fs.log.transaction():
                fs.put(ip)

    def stat(self, f: File) -> Stat:
        """Metadata of the inode behind ``f``."""
        if f.type is not FileType.INODE or f.ip is None:
            raise io.UnsupportedOperation("stat needs an inode file")
        fs = self._require_fs()
        fs.lock(f.ip)
        try:
            return fs.stat(f.ip)
        finally:
            fs.unlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to ``n`` bytes, advancing the offset of an inode file."""
        if not f.readable:
            raise io.UnsupportedOperation("file not open for reading")
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.type is FileType.INODE and f.ip is not None:
            fs = self._require_fs()
            fs.lock(f.ip)
            try:
                data = fs.read(f.ip, f.off, n)
                f.off += len(data)
            finally:
                fs.unlock(f.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, f: File, data: bytes) -> int:
        """Write all of ``data``; inode writes go a few blocks per transaction."""
        if not f.writable:
            raise io.UnsupportedOperation("file not open for writing")
        data = bytes(data)
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.type is FileType.INODE and f.ip is not None:
            fs = self._require_fs()
            done = 0
            while done < len(data):
                chunk = data[done : done + _MAX_WRITE]
                with fs.log.transaction():
                    fs.lock(f.ip)
                    try:
                        r = fs.write(f.ip, f.off, chunk)
                        if r > 0:
                            f.off += r
                    finally:
                        fs.unlock(f.ip)
                if r != len(chunk):
                    raise KernelPanic("short filewrite")
                done += r
            return len(data)
        raise KernelPanic("filewrite")

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> File:
        """Open a file on ``ip``; the file takes over the caller's reference."""
        f = self.alloc()
        f.type = FileType.INODE
        f.ip = ip
        f.pipe = None
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f

    def pipe(self) -> tuple[File, File]:
        """Create a pipe; returns its (read end, write end)."""
        rf = self.alloc()
        try:
            wf = self.alloc()
        except OSError:
            self.close(rf)
            raise
        p = Pipe()
        rf.type, rf.readable, rf.writable, rf.pipe, rf.ip = FileType.PIPE, True, False, p, None
        wf.type, wf.readable, wf.writable, wf.pipe, wf.ip = FileType.PIPE, False, True, p, None
        return rf, wf