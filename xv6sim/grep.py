"""A small grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterator, Sequence
from typing import BinaryIO

_BUFSIZE = 1024


def _matchhere(re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if ri == len(re):
            return True
        if ri + 1 < len(re) and re[ri + 1] == "*":
            return _matchstar(re[ri], re, ri + 2, text, ti)
        if re[ri] == "$" and ri + 1 == len(re):
            return ti == len(text)
        if ti < len(text) and (re[ri] == "." or re[ri] == text[ti]):
            ri += 1
            ti += 1
            continue
        return False


def _matchstar(c: str, re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if _matchhere(re, ri, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
            continue
        return False


def match(re: str, text: str) -> bool:
    """True if ``re`` matches anywhere in ``text``."""
    if re.startswith("^"):
        return _matchhere(re, 1, text, 0)
    return any(_matchhere(re, 0, text, ti) for ti in range(len(text) + 1))


def grep(pattern: str, stream: BinaryIO) -> Iterator[bytes]:
    """Yield the newline-terminated lines of ``stream`` that match ``pattern``.

    Input is read into a 1024-byte buffer; a buffer holding no complete line
    after a read is discarded, and a final unterminated line is never output.
    """
    buf = bytearray()
    while True:
        chunk = stream.read(_BUFSIZE - 1 - len(buf))
        if not chunk:
            return
        buf += chunk
        start = 0
        while (end := buf.find(b"\n", start)) != -1:
            if match(pattern, buf[start:end].decode("latin-1")):
                yield bytes(buf[start : end + 1])
            start = end + 1
        if start == 0:
            buf.clear()
        else:
            del buf[:start]


def _emit(lines: Iterator[bytes]) -> None:
    for line in lines:
        sys.stdout.write(line.decode("latin-1"))


def main(argv: Sequence[str] | None = None) -> int:
    """Command line: grep pattern [file ...]"""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, names = args[0], args[1:]
    if not names:
        _emit(grep(pattern, sys.stdin.buffer))
        return 0
    for name in names:
        try:
            fh = open(name, "rb")
        except OSError:
            sys.stdout.write(f"grep: cannot open {name}\n")
            return 1
        with fh:
            _emit(grep(pattern, fh))
    return 0