"""Build a file system image holding a root directory of plain files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable, Sequence

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    InodeType,
    SuperBlock,
    iblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class _ImageBuilder:
    """Lays out [boot | super | log | inodes | bitmap | data] in memory."""

    def __init__(self, fssize: int, ninodes: int, nlog: int) -> None:
        self.fssize = fssize
        self.ninodes = ninodes
        self.nlog = nlog
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small for its metadata")
        self.messages: list[str] = [
            f"nmeta {self.nmeta} (boot, super, log blocks {nlog} inode blocks "
            f"{self.ninodeblocks}, bitmap blocks {self.nbitmap}) blocks "
            f"{self.nblocks} total {fssize}"
        ]
        self.sb = SuperBlock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.image = bytearray(fssize * BSIZE)
        self.freeinode = 1
        self.freeblock = self.nmeta
        sb_bytes = self.sb.pack()
        self.image[BSIZE : BSIZE + len(sb_bytes)] = sb_bytes

    def _inode_at(self, inum: int) -> int:
        return iblock(inum, self.sb) * BSIZE + (inum % IPB) * DINODE_SIZE

    def rinode(self, inum: int) -> DiskInode:
        at = self._inode_at(inum)
        return DiskInode.unpack(bytes(self.image[at : at + DINODE_SIZE]))

    def winode(self, inum: int, din: DiskInode) -> None:
        at = self._inode_at(inum)
        self.image[at : at + DINODE_SIZE] = din.pack()

    def ialloc(self, type: InodeType) -> int:
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.winode(inum, DiskInode(type=int(type), nlink=1, size=0))
        return inum

    def _new_block(self) -> int:
        b = self.freeblock
        if b >= self.fssize:
            raise ValueError("image is full")
        self.freeblock += 1
        return b

    def iappend(self, inum: int, data: bytes) -> None:
        din = self.rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large for the file system")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._new_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._new_block()
                ind_at = din.addrs[NDIRECT] * BSIZE
                indirect = list(_INDIRECT.unpack_from(self.image, ind_at))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._new_block()
                    _INDIRECT.pack_into(self.image, ind_at, *indirect)
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            at = x * BSIZE + off - fbn * BSIZE
            self.image[at : at + n1] = data[pos : pos + n1]
            pos += n1
            off += n1
        din.size = off
        self.winode(inum, din)

    def balloc(self, used: int) -> None:
        self.messages.append(f"balloc: first {used} blocks have been allocated")
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self.messages.append(
            f"balloc: write bitmap block at sector {self.sb.bmapstart}"
        )
        at = self.sb.bmapstart * BSIZE
        self.image[at : at + BSIZE] = bitmap


def _build(
    entries: Iterable[tuple[str, bytes]], fssize: int, ninodes: int, nlog: int
) -> _ImageBuilder:
    b = _ImageBuilder(fssize, ninodes, nlog)
    rootino = b.ialloc(InodeType.DIR)
    if rootino != ROOTINO:
        raise ValueError("root inode was not allocated first")
    b.iappend(rootino, DirEntry(rootino, ".").pack())
    b.iappend(rootino, DirEntry(rootino, "..").pack())
    for name, data in entries:
        if "/" in name:
            raise ValueError(f"file name {name!r} must not contain '/'")
        # Build outputs are named _cat, _rm, ... to keep them off the host path.
        if name.startswith("_"):
            name = name[1:]
        inum = b.ialloc(InodeType.FILE)
        b.iappend(rootino, DirEntry(inum, name).pack())
        b.iappend(inum, bytes(data))
    root = b.rinode(rootino)
    root.size = (root.size // BSIZE + 1) * BSIZE
    b.winode(rootino, root)
    b.balloc(b.freeblock)
    return b


def build_image(
    entries: Iterable[tuple[str, bytes]],
    fssize: int = FSSIZE,
    ninodes: int = NINODES,
    nlog: int = LOGSIZE,
) -> bytes:
    """Return a file system image whose root holds the (name, data) entries."""
    return bytes(_build(entries, fssize, ninodes, nlog).image)


def main(argv: Sequence[str] | None = None) -> int:
    """Command line: mkfs fs.img files..."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 1:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    image_path, names = args[0], args[1:]
    entries = []
    for name in names:
        try:
            with open(name, "rb") as fh:
                entries.append((name, fh.read()))
        except OSError as exc:
            print(f"{name}: {exc.strerror}", file=sys.stderr)
            return 1
    try:
        builder = _build(entries, FSSIZE, NINODES, LOGSIZE)
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    for line in builder.messages:
        print(line)
    try:
        with open(image_path, "wb") as fh:
            fh.write(builder.image)
    except OSError as exc:
        print(f"{image_path}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0