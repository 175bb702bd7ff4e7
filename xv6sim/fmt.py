"""The minimal printf dialects of user space and the kernel console."""

from __future__ import annotations

import operator
from collections.abc import Iterator
from typing import Any

from .errors import KernelPanic

_MASK = 0xFFFFFFFF


def _next(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _number(value: Any, base: int, signed: bool, digits: str) -> str:
    x = operator.index(value) & _MASK
    negative = False
    if signed and x & 0x80000000:
        negative = True
        x = (1 << 32) - x
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _string(value: Any) -> str:
    return "(null)" if value is None else str(value)


def _format(fmt: str, args: tuple[Any, ...], digits: str, with_char: bool) -> str:
    it = iter(args)
    out: list[str] = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, "")
        if not c:
            break
        if c == "d":
            out.append(_number(_next(it), 10, True, digits))
        elif c in "xp":
            out.append(_number(_next(it), 16, False, digits))
        elif c == "s":
            out.append(_string(_next(it)))
        elif c == "c" and with_char:
            value = _next(it)
            out.append(value[:1] if isinstance(value, str) else chr(operator.index(value) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def printf_format(fmt: str, *args: Any) -> str:
    """Format as user-space printf: %d %x %p %s %c %%, upper-case hex."""
    return _format(fmt, args, "0123456789ABCDEF", with_char=True)


def cprintf_format(fmt: str | None, *args: Any) -> str:
    """Format as the kernel console: %d %x %p %s %%, lower-case hex."""
    if fmt is None:
        raise KernelPanic("null fmt")
    return _format(fmt, args, "0123456789abcdef", with_char=False)