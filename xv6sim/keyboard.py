"""PC keyboard scan-code decoding (scan code set 1)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

# Modifier and lock state bits.
SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

# Special key codes.
KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9

_ESCAPE = 0xE0
_RELEASE = 0x80


def _ctrl(x: str) -> int:
    return (ord(x) - ord("@")) & 0xFF


_SPECIAL = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}


def _table(base: str | Sequence[int], extra: Mapping[int, int]) -> tuple[int, ...]:
    table = [0] * 256
    codes = [ord(ch) for ch in base] if isinstance(base, str) else list(base)
    table[: len(codes)] = codes
    for code, value in {**_SPECIAL, **extra}.items():
        table[code] = value
    return tuple(table)


def _sparse(entries: Mapping[int, int]) -> tuple[int, ...]:
    table = [0] * 256
    for code, value in entries.items():
        table[code] = value
    return tuple(table)


_SHIFTCODE = _sparse(
    {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
)

_TOGGLECODE = _sparse({0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_NO13 = "\x00" * 13
_NO4 = "\x00" * 4

_NORMALMAP = _table(
    "\x00\x1b1234567890-=\x08\t"
    "qwertyuiop[]\n\x00as"
    "dfghjkl;'`\x00\\zxcv"
    "bnm,./\x00*\x00 " + _NO13 + "789-456+1230." + _NO4,
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_SHIFTMAP = _table(
    "\x00\x1b!@#$%^&*()_+\x08\t"
    "QWERTYUIOP{}\n\x00AS"
    'DFGHJKL:"~\x00|ZXCV'
    "BNM<>?\x00*\x00 " + _NO13 + "789-456+1230." + _NO4,
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_CTLMAP = _table(
    [0] * 16
    + [_ctrl(c) for c in "QWERTYUI"]
    + [_ctrl("O"), _ctrl("P"), 0, 0, ord("\r"), 0, _ctrl("A"), _ctrl("S")]
    + [_ctrl(c) for c in "DFGHJKL"]
    + [0]
    + [0, 0, 0, _ctrl("\\")]
    + [_ctrl(c) for c in "ZXCV"]
    + [_ctrl("B"), _ctrl("N"), _ctrl("M"), 0, 0, _ctrl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: _ctrl("/")},
)

_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class KeyboardDecoder:
    """Turns scan codes into character codes, tracking modifier state."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, scancode: int) -> int:
        """Decode one scan code.

        Returns the character code, or 0 for escape prefixes, key releases
        and keys without a character.
        """
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scan code {scancode!r} is not a byte")
        data = scancode
        if data == _ESCAPE:
            self.shift |= E0ESC
            return 0
        if data & _RELEASE:
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFTCODE[data] | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= _RELEASE
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE[data]
        self.shift ^= _TOGGLECODE[data]
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c