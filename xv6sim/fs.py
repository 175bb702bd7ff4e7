"""Inodes, directories and path names layered over the buffer cache and log."""

from __future__ import annotations

import struct
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .bufcache import BufferCache
from .disk import MemoryDisk
from .errors import KernelPanic
from .journal import Log
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NBUF,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    DirEntry,
    DiskInode,
    InodeType,
    Stat,
    SuperBlock,
    bblock,
    iblock,
)

_ADDR = struct.Struct("<I")


def read_superblock(cache: BufferCache) -> SuperBlock:
    """Read the superblock from block 1."""
    with cache.block(1) as buf:
        return SuperBlock.unpack(bytes(buf.data))


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns ``(name, rest)`` where ``rest`` has no leading slashes, or
    ``None`` when there is no element left. Names are cut to DIRSIZ.
    """
    path = path.lstrip("/")
    if not path:
        return None
    element, _, rest = path.partition("/")
    return element[:DIRSIZ], rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names over their first DIRSIZ characters."""
    a = s.split("\0", 1)[0][:DIRSIZ]
    b = t.split("\0", 1)[0][:DIRSIZ]
    return (a > b) - (a < b)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


class FileSystem:
    """A mounted file system: block allocation, inode cache and naming.

    Operations that modify the disk must run inside ``self.log.transaction()``.
    """

    def __init__(
        self,
        cache: BufferCache,
        sb: SuperBlock,
        log: Log,
        ninode: int = NINODE,
        devsw: Mapping[int, Any] | None = None,
        dev: int = ROOTDEV,
    ) -> None:
        if ninode < 1:
            raise ValueError("the inode cache needs at least one entry")
        self.cache = cache
        self.sb = sb
        self.log = log
        self.dev = dev
        self.devsw: Mapping[int, Any] = devsw if devsw is not None else {}
        self._inodes = [Inode() for _ in range(ninode)]

    @classmethod
    def mount(
        cls,
        disk: MemoryDisk,
        nbuf: int = NBUF,
        ninode: int = NINODE,
        devsw: Mapping[int, Any] | None = None,
    ) -> "FileSystem":
        """Read the superblock, recover the log and return the file system."""
        cache = BufferCache(disk, nbuf)
        sb = read_superblock(cache)
        log = Log(cache, sb.logstart, sb.nlog)
        log.recover()
        return cls(cache, sb, log, ninode, devsw)

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(bno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.log_write(buf)

    def _balloc(self) -> int:
        for b in range(0, self.sb.size, BPB):
            found = None
            with self.cache.block(bblock(b, self.sb)) as buf:
                for bi in range(min(BPB, self.sb.size - b)):
                    m = 1 << (bi % 8)
                    if buf.data[bi // 8] & m == 0:
                        buf.data[bi // 8] |= m
                        self.log.log_write(buf)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.cache.block(bblock(b, self.sb)) as buf:
            bi = b % BPB
            m = 1 << (bi % 8)
            if buf.data[bi // 8] & m == 0:
                raise KernelPanic("freeing free block")
            buf.data[bi // 8] &= ~m & 0xFF
            self.log.log_write(buf)

    # Inodes.

    def _slot(self, inum: int) -> tuple[int, int]:
        return iblock(inum, self.sb), (inum % IPB) * DINODE_SIZE

    def alloc_inode(self, type: int) -> Inode:
        """Allocate a free on-disk inode of ``type``; returned unlocked."""
        for inum in range(1, self.sb.ninodes):
            blockno, off = self._slot(inum)
            with self.cache.block(blockno) as buf:
                din = DiskInode.unpack(bytes(buf.data[off : off + DINODE_SIZE]))
                if din.type != 0:
                    continue
                buf.data[off : off + DINODE_SIZE] = DiskInode(type=int(type)).pack()
                self.log.log_write(buf)
            return self.get(inum)
        raise KernelPanic("ialloc: no inodes")

    def update(self, ip: Inode) -> None:
        """Write the in-memory inode fields back to disk."""
        blockno, off = self._slot(ip.inum)
        din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        with self.cache.block(blockno) as buf:
            buf.data[off : off + DINODE_SIZE] = din.pack()
            self.log.log_write(buf)

    def get(self, inum: int) -> Inode:
        """Return the cached inode ``inum``, neither locked nor read from disk."""
        empty = None
        for ip in self._inodes:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise KernelPanic("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        return empty

    def dup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        ip.ref += 1
        return ip

    def lock(self, ip: Inode | None) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        if ip.locked:
            raise KernelPanic("ilock: already locked")
        ip.locked = True
        if not ip.valid:
            blockno, off = self._slot(ip.inum)
            with self.cache.block(blockno) as buf:
                din = DiskInode.unpack(bytes(buf.data[off : off + DINODE_SIZE]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def unlock(self, ip: Inode | None) -> None:
        """Unlock a locked inode."""
        if ip is None or not ip.locked or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip.locked = False

    def put(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        if ip.locked:
            raise KernelPanic("iput: inode locked")
        if ip.valid and ip.nlink == 0 and ip.ref == 1:
            ip.locked = True
            try:
                self._itrunc(ip)
                ip.type = 0
                self.update(ip)
                ip.valid = False
            finally:
                ip.locked = False
        ip.ref -= 1

    def unlock_put(self, ip: Inode) -> None:
        self.unlock(ip)
        self.put(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.addrs[NDIRECT]) as buf:
                (addr,) = _ADDR.unpack_from(buf.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(buf.data, bn * _ADDR.size, addr)
                    self.log.log_write(buf)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.addrs[NDIRECT]) as buf:
                entries = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.update(ip)

    def stat(self, ip: Inode) -> Stat:
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode, op: str) -> Any:
        handler = getattr(self.devsw.get(ip.major), op, None)
        if handler is None:
            raise OSError(f"no {op} handler for device {ip.major}")
        return handler

    def read(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; clipped at the end of the file."""
        if ip.type == InodeType.DEVICE:
            return self._device(ip, "read")(ip, n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at offset {off} of {n} bytes is out of range")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            blockno = self._bmap(ip, pos // BSIZE)
            start = pos % BSIZE
            m = min(n - len(out), BSIZE - start)
            with self.cache.block(blockno) as buf:
                out += buf.data[start : start + m]
        return bytes(out)

    def write(self, ip: Inode, off: int, data: bytes) -> int:
        """Write ``data`` at ``off``, growing the file; returns the count written."""
        if ip.type == InodeType.DEVICE:
            return self._device(ip, "write")(ip, bytes(data))
        data = bytes(data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at offset {off} is past the end of the file")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write would exceed the maximum file size")
        tot = 0
        while tot < n:
            pos = off + tot
            blockno = self._bmap(ip, pos // BSIZE)
            start = pos % BSIZE
            m = min(n - tot, BSIZE - start)
            with self.cache.block(blockno) as buf:
                buf.data[start : start + m] = data[tot : tot + m]
                self.log.log_write(buf)
            tot += m
        if n > 0 and off + n > ip.size:
            ip.size = off + n
            self.update(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode, what: str):
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.read(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic(f"{what} read")
            yield off, DirEntry.unpack(raw)

    def lookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in directory ``dp``: the entry's inode and byte offset."""
        if dp.type != InodeType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off, de in self._entries(dp, "dirlookup"):
            if de.inum and namecmp(name, de.name) == 0:
                return self.get(de.inum), off
        return None

    def link(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (``name``, ``inum``) to directory ``dp``."""
        found = self.lookup(dp, name)
        if found is not None:
            self.put(found[0])
            raise FileExistsError(f"{name!r} already exists")
        for off, de in self._entries(dp, "dirlink"):
            if de.inum == 0:
                break
        else:
            off = -(-dp.size // DIRENT_SIZE) * DIRENT_SIZE
        if self.write(dp, off, DirEntry(inum, name[:DIRSIZ]).pack()) != DIRENT_SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None):
        if path.startswith("/"):
            ip = self.get(ROOTINO)
        elif cwd is None:
            raise ValueError("a relative path needs a current directory")
        else:
            ip = self.dup(cwd)
        step = skipelem(path)
        while step is not None:
            name, path = step
            self.lock(ip)
            if ip.type != InodeType.DIR:
                self.unlock_put(ip)
                return None
            if parent and path == "":
                self.unlock(ip)
                return ip, name
            found = self.lookup(ip, name)
            if found is None:
                self.unlock_put(ip)
                return None
            self.unlock_put(ip)
            ip = found[0]
            step = skipelem(path)
        if parent:
            self.put(ip)
            return None
        return ip

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Return the unlocked, referenced inode named by ``path``."""
        return self._namex(path, False, cwd)

    def nameiparent(
        self, path: str, cwd: Inode | None = None
    ) -> tuple[Inode, str] | None:
        """Return the parent directory of ``path`` and its final element."""
        return self._namex(path, True, cwd)