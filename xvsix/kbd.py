"""PC keyboard scancode decoding."""

from __future__ import annotations

from collections.abc import Iterable

NO = 0

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

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


def ctrl(ch: str) -> int:
    """The code produced by Control plus ``ch``."""
    return (ord(ch) - ord("@")) & 0xFF


_KEYPAD = "\0" * 7 + "789-456+1230." + "\0" * 4

_NORMAL = (
    "\0\x1b1234567890-=\b\t"
    "qwertyuiop[]\n\0as"
    "dfghjkl;'`\0\\zxcv"
    "bnm,./\0*\0 " + "\0" * 6 + _KEYPAD
)

_SHIFTED = (
    "\0\x1b!@#$%^&*()_+\b\t"
    "QWERTYUIOP{}\n\0AS"
    'DFGHJKL:"~\0|ZXCV'
    "BNM<>?\0*\0 " + "\0" * 6 + _KEYPAD
)

_CONTROL = (
    "\0" * 16
    + "QWERTYUI"
    + "OP\0\0\r\0AS"
    + "DFGHJKL\0"
    + "\0\0\0\\ZXCV"
    + "BNM\0\0/\0\0"
)

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


def _table(codes: Iterable[int], enter: int, div: int) -> tuple[int, ...]:
    table = [NO] * 256
    for i, code in enumerate(codes):
        table[i] = code
    table[0x9C] = enter
    table[0xB5] = div
    for scancode, key in _SPECIAL.items():
        table[scancode] = key
    return tuple(table)


NORMALMAP = _table((ord(c) for c in _NORMAL), ord("\n"), ord("/"))
SHIFTMAP = _table((ord(c) for c in _SHIFTED), ord("\n"), ord("/"))
CTLMAP = _table(
    (ord(c) if c in "\0\r" else ctrl(c) for c in _CONTROL), ord("\r"), ctrl("/")
)

SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_CHARCODE = (NORMALMAP, SHIFTMAP, CTLMAP, CTLMAP)


class Keyboard:
    """Tracks modifier state and turns scancodes into character codes."""

    def __init__(self) -> None:
        self.shift = 0

    def getc(self, scancode: int) -> int:
        """Decode one scancode; 0 means it produced no character."""
        data = scancode & 0xFF
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            data = data if self.shift & E0ESC else data & 0x7F
            self.shift &= ~(SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= SHIFTCODE.get(data, 0)
        self.shift ^= TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c -= ord("a") - ord("A")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def feed(self, data: Iterable[int]) -> list[int]:
        """Decode a run of scancodes; returns the character codes produced."""
        return [c for c in (self.getc(s) for s in data) if c != 0]