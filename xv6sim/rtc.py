"""Reading the date and time from the CMOS real-time clock."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, fields

CMOS_STATA = 0x0A
CMOS_STATB = 0x0B
CMOS_UIP = 1 << 7  # update in progress

SECS = 0x00
MINS = 0x02
HOURS = 0x04
DAY = 0x07
MONTH = 0x08
YEAR = 0x09

_REGISTERS = (SECS, MINS, HOURS, DAY, MONTH, YEAR)


@dataclass(frozen=True)
class RtcDate:
    """A calendar date and time of day."""

    second: int = 0
    minute: int = 0
    hour: int = 0
    day: int = 0
    month: int = 0
    year: int = 0


def _bcd(x: int) -> int:
    return (x >> 4) * 10 + (x & 0xF)


def _fill(read_register: Callable[[int], int]) -> RtcDate:
    return RtcDate(*(read_register(reg) for reg in _REGISTERS))


def cmos_time(read_register: Callable[[int], int]) -> RtcDate:
    """Read a consistent date from the CMOS registers.

    ``read_register`` returns the value of one CMOS register. Values are
    taken as BCD unless status register B says binary; the year is
    counted from 2000.
    """
    binary = read_register(CMOS_STATB) & (1 << 2)
    while True:
        t1 = _fill(read_register)
        if read_register(CMOS_STATA) & CMOS_UIP:
            continue
        t2 = _fill(read_register)
        if t1 == t2:
            break
    values = [getattr(t1, f.name) for f in fields(t1)]
    if not binary:
        values = [_bcd(v) for v in values]
    date = RtcDate(*values)
    return RtcDate(
        date.second, date.minute, date.hour, date.day, date.month, date.year + 2000
    )