"""Small user programs: cat, echo, ls and date."""

from __future__ import annotations

from typing import BinaryIO

from .fs import FileSystem, Inode
from .layout import DIRENT_SIZE, DIRSIZ, ROOTINO, DirEntry, InodeType, Stat
from .rtc import RtcDate

_CHUNK = 512
_PATH_MAX = 512


def cat(source: BinaryIO, out: BinaryIO) -> int:
    """Copy ``source`` to ``out`` in 512-byte chunks; returns the byte count."""
    total = 0
    while chunk := source.read(_CHUNK):
        written = out.write(chunk)
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")
        total += len(chunk)
    return total


def echo(args: list[str]) -> str:
    """The arguments joined by spaces and ended by a newline; empty for none."""
    if not args:
        return ""
    return " ".join(args) + "\n"


def fmtname(path: str) -> str:
    """Final element of ``path``, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _namei(fs: FileSystem, path: str) -> Inode | None:
    if path.startswith("/"):
        return fs.namei(path)
    root = fs.get(ROOTINO)
    try:
        return fs.namei(path, root)
    finally:
        fs.put(root)


def _stat(fs: FileSystem, path: str) -> Stat | None:
    ip = _namei(fs, path)
    if ip is None:
        return None
    fs.lock(ip)
    try:
        return fs.stat(ip)
    finally:
        fs.unlock_put(ip)


def _line(name: str, st: Stat) -> str:
    return f"{name} {st.type} {st.ino} {st.size}"


def ls(fs: FileSystem, path: str) -> list[str]:
    """List ``path``: one line for a file, one per entry for a directory.

    Relative paths are taken from the root directory. Raises
    FileNotFoundError when ``path`` does not exist and ValueError when a
    directory path leaves no room for entry names.
    """
    with fs.log.transaction():
        ip = _namei(fs, path)
        if ip is None:
            raise FileNotFoundError(f"ls: cannot open {path}")
        try:
            fs.lock(ip)
            try:
                st = fs.stat(ip)
                listing = fs.read(ip, 0, ip.size) if st.type == InodeType.DIR else b""
            finally:
                fs.unlock(ip)
        finally:
            fs.put(ip)

        if st.type == InodeType.FILE:
            return [_line(fmtname(path), st)]
        if st.type != InodeType.DIR:
            return []
        if len(path) + 1 + DIRSIZ + 1 > _PATH_MAX:
            raise ValueError("ls: path too long")

        lines = []
        for off in range(0, len(listing) - DIRENT_SIZE + 1, DIRENT_SIZE):
            de = DirEntry.unpack(listing[off : off + DIRENT_SIZE])
            if de.inum == 0:
                continue
            name = f"{path}/{de.name}"
            est = _stat(fs, name)
            if est is None:
                lines.append(f"ls: cannot stat {name}")
                continue
            lines.append(_line(fmtname(name), est))
        return lines


def format_date(date: RtcDate) -> str:
    """The date as year-month-day without padding."""
    return f"{date.year}-{date.month}-{date.day}"