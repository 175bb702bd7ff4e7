"""Console: line-edited keyboard input, output to a CGA screen and serial port."""

from __future__ import annotations

import errno
from collections.abc import Callable, Iterable
from typing import Any

from .errors import KernelPanic
from .fmt import cprintf_format

BACKSPACE = 0x100
INPUT_BUF = 128
WIDTH = 80
HEIGHT = 25
_ATTR = 0x0700  # black on white


def ctrl(x: str) -> int:
    """Code of Control-x."""
    return ord(x) - ord("@")


class CgaScreen:
    """An 80x25 text-mode screen with a cursor that scrolls at row 24."""

    def __init__(self) -> None:
        self.cells = [0] * (WIDTH * HEIGHT)
        self.pos = 0

    def putc(self, c: int) -> None:
        """Draw one character, handling newline and BACKSPACE."""
        pos = self.pos
        if c == ord("\n"):
            pos += WIDTH - pos % WIDTH
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1
        if pos < 0 or pos > HEIGHT * WIDTH:
            raise KernelPanic("pos under/overflow")
        if pos // WIDTH >= 24:
            self.cells[: 23 * WIDTH] = self.cells[WIDTH : 24 * WIDTH]
            pos -= WIDTH
            self.cells[pos : 24 * WIDTH] = [0] * (24 * WIDTH - pos)
        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def text(self) -> str:
        """Screen contents as lines without trailing blanks."""
        rows = []
        for r in range(HEIGHT):
            row = self.cells[r * WIDTH : (r + 1) * WIDTH]
            rows.append("".join(chr(c & 0xFF) if c & 0xFF else " " for c in row).rstrip())
        return "\n".join(rows).rstrip("\n")


def _codes(chars: Iterable[Any] | str) -> Iterable[int]:
    if isinstance(chars, str):
        return (ord(ch) for ch in chars)
    return (int(c) for c in chars)


class Console:
    """Console device: echoes and edits typed input, buffers completed lines."""

    def __init__(
        self,
        screen: CgaScreen | None = None,
        procdump: Callable[[], None] | None = None,
    ) -> None:
        self.screen = screen if screen is not None else CgaScreen()
        self.procdump = procdump
        self.output = bytearray()  # what went out of the serial port
        self._buf = [0] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def putc(self, c: int) -> None:
        """Send one character to the serial port and the screen."""
        if c == BACKSPACE:
            self.output += b"\b \b"
        else:
            self.output.append(c & 0xFF)
        self.screen.putc(c)

    def interrupt(self, chars: Iterable[Any] | str) -> None:
        """Handle typed characters: editing keys, echo and line completion."""
        dump = False
        for c in _codes(chars):
            if c == ctrl("P"):
                dump = True
            elif c == ctrl("U"):
                while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n"):
                    self._e -= 1
                    self.putc(BACKSPACE)
            elif c in (ctrl("H"), 0x7F):
                if self._e != self._w:
                    self._e -= 1
                    self.putc(BACKSPACE)
            elif c != 0 and self._e - self._r < INPUT_BUF:
                if c == ord("\r"):
                    c = ord("\n")
                self._buf[self._e % INPUT_BUF] = c
                self._e += 1
                self.putc(c)
                if c in (ord("\n"), ctrl("D")) or self._e == self._r + INPUT_BUF:
                    self._w = self._e
        if dump and self.procdump is not None:
            self.procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes of completed input, stopping after a newline.

        Control-D ends input: read on its own it yields empty bytes. With no
        completed input at all the call would block, so BlockingIOError is raised.
        """
        target = n
        out = bytearray()
        while n > 0:
            if self._r == self._w:
                if not out:
                    raise BlockingIOError(errno.EAGAIN, "no console input")
                break
            c = self._buf[self._r % INPUT_BUF]
            self._r += 1
            if c == ctrl("D"):
                if n < target:
                    # Keep ^D so the next read returns nothing.
                    self._r -= 1
                break
            out.append(c & 0xFF)
            n -= 1
            if c == ord("\n"):
                break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Print every byte of ``data``."""
        data = bytes(data)
        for b in data:
            self.putc(b)
        return len(data)

    def printf(self, fmt: str | None, *args: Any) -> None:
        """Print with the kernel's %d %x %p %s dialect."""
        for ch in cprintf_format(fmt, *args):
            self.putc(ord(ch) & 0xFF)