"""Command line for looking into file system images: ls and cat."""

from __future__ import annotations

import argparse
import io
import sys
from collections.abc import Sequence

from .disk import MemoryDisk
from .fs import FileSystem, Inode
from .layout import ROOTINO
from .tools import cat, ls


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xv6sim", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)
    p_ls = sub.add_parser("ls", help="list files in an image")
    p_ls.add_argument("image")
    p_ls.add_argument("paths", nargs="*")
    p_cat = sub.add_parser("cat", help="print files from an image")
    p_cat.add_argument("image")
    p_cat.add_argument("paths", nargs="*")
    return parser


def _namei(fs: FileSystem, path: str) -> Inode | None:
    if path.startswith("/"):
        return fs.namei(path)
    root = fs.get(ROOTINO)
    try:
        return fs.namei(path, root)
    finally:
        fs.put(root)


def _read_file(fs: FileSystem, path: str) -> bytes | None:
    with fs.log.transaction():
        ip = _namei(fs, path)
        if ip is None:
            return None
        fs.lock(ip)
        try:
            return fs.read(ip, 0, ip.size)
        finally:
            fs.unlock_put(ip)


def _stdout_bytes():
    sys.stdout.flush()
    return sys.stdout.buffer


def _run_ls(fs: FileSystem, paths: list[str]) -> int:
    for path in paths or ["."]:
        try:
            lines = ls(fs, path)
        except FileNotFoundError:
            print(f"ls: cannot open {path}", file=sys.stderr)
            continue
        except ValueError as exc:
            print(exc)
            continue
        for line in lines:
            print(line)
    return 0


def _run_cat(fs: FileSystem, paths: list[str]) -> int:
    out = _stdout_bytes()
    if not paths:
        cat(sys.stdin.buffer, out)
        out.flush()
        return 0
    for path in paths:
        data = _read_file(fs, path)
        if data is None:
            out.flush()
            print(f"cat: cannot open {path}")
            return 1
        cat(io.BytesIO(data), out)
    out.flush()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run ``ls`` or ``cat`` against a file system image."""
    args = _parser().parse_args(list(sys.argv[1:] if argv is None else argv))
    try:
        disk = MemoryDisk.from_file(args.image)
    except OSError as exc:
        print(f"{args.image}: {exc.strerror}", file=sys.stderr)
        return 1
    fs = FileSystem.mount(disk)
    if args.command == "ls":
        return _run_ls(fs, args.paths)
    return _run_cat(fs, args.paths)