"""On-disk file system format shared by the kernel and the image builder."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

ROOTINO = 1
BSIZE = 512

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

# Tunable kernel parameters (defaults used throughout the package).
NBUF = 30
NINODE = 50
NFILE = 100
NDEV = 10
ROOTDEV = 1
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
FSSIZE = 1000

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

IPB = BSIZE // DINODE_SIZE
BPB = BSIZE * 8


class InodeType(enum.IntEnum):
    """Kinds of inode; zero on disk marks a free inode."""

    FREE = 0
    DIR = 1
    FILE = 2
    DEVICE = 3


@dataclass
class SuperBlock:
    """Describes the disk layout."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SuperBlock":
        if len(data) < _SUPERBLOCK.size:
            raise ValueError("superblock data too short")
        return cls(*_SUPERBLOCK.unpack_from(data))


@dataclass
class DiskInode:
    """The on-disk inode structure."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data: bytes) -> "DiskInode":
        if len(data) < DINODE_SIZE:
            raise ValueError("inode data too short")
        values = _DINODE.unpack_from(data)
        return cls(*values[:5], addrs=list(values[5:]))


@dataclass
class DirEntry:
    """One directory entry; inum 0 marks a free slot."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        raw = self.name.encode("latin-1")[:DIRSIZ]
        return _DIRENT.pack(self.inum, raw)

    @classmethod
    def unpack(cls, data: bytes) -> "DirEntry":
        if len(data) < DIRENT_SIZE:
            raise ValueError("directory entry data too short")
        inum, raw = _DIRENT.unpack_from(data)
        return cls(inum, raw.split(b"\0", 1)[0].decode("latin-1"))


@dataclass
class Stat:
    """Metadata reported for an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


def iblock(inum: int, sb: SuperBlock) -> int:
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(b: int, sb: SuperBlock) -> int:
    """Bitmap block holding the bit for block ``b``."""
    return b // BPB + sb.bmapstart