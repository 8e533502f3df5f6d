"""Console input and output: a line-editing input buffer, a text screen and a serial log."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import Any

from .params import FsPanic
from .printfmt import kformat

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25

_ATTR = 0x0700


def _ctl(ch: str) -> int:
    return ord(ch) - ord("@")


class CgaScreen:
    """An 80x25 colour text screen with a cursor."""

    def __init__(self) -> None:
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c: int) -> None:
        """Draw one character (or BACKSPACE) at the cursor, scrolling when needed."""
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLS:
            raise FsPanic("pos under/overflow")

        if pos // COLS >= 24:
            self.cells[: 23 * COLS] = self.cells[COLS : 24 * COLS]
            pos -= COLS
            self.cells[pos : 24 * COLS] = [0] * (24 * COLS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def text(self) -> str:
        """The visible characters, one line per row, trailing blanks removed."""
        rows = []
        for start in range(0, COLS * ROWS, COLS):
            row = "".join(chr(cell & 0xFF) for cell in self.cells[start : start + COLS])
            rows.append(row.replace("\0", " ").rstrip())
        return "\n".join(rows).rstrip("\n")


def _codes(chars: Iterable[int] | str | bytes) -> Iterable[int]:
    if isinstance(chars, str):
        return (ord(c) for c in chars)
    return chars


class Console:
    """Echoes typed input, hands out whole lines to readers, prints output."""

    def __init__(
        self,
        screen: CgaScreen | None = None,
        on_procdump: Callable[[], None] | None = None,
    ) -> None:
        self.screen = screen if screen is not None else CgaScreen()
        self.on_procdump = on_procdump
        self._serial = bytearray()
        self._cond = threading.Condition(threading.RLock())
        self._buf = [0] * INPUT_BUF
        self._r = 0
        self._w = 0
        self._e = 0
        self._killed = False

    @property
    def output(self) -> bytes:
        """Everything sent to the serial port so far."""
        return bytes(self._serial)

    def _putc(self, c: int) -> None:
        if c == BACKSPACE:
            self._serial += b"\b \b"
        else:
            self._serial.append(c & 0xFF)
        self.screen.putc(c)

    def interrupt(self, chars: Iterable[int] | str | bytes) -> bool:
        """Process typed characters; returns True if a process listing was asked for."""
        doprocdump = False
        with self._cond:
            for c in _codes(chars):
                if c == _ctl("P"):
                    doprocdump = True
                elif c == _ctl("U"):
                    while (
                        self._e != self._w
                        and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n")
                    ):
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c in (_ctl("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    c = ord("\n") if c == ord("\r") else c & 0xFF
                    self._buf[self._e % INPUT_BUF] = c
                    self._e += 1
                    self._putc(c)
                    if (
                        c == ord("\n")
                        or c == _ctl("D")
                        or self._e == self._r + INPUT_BUF
                    ):
                        self._w = self._e
                        self._cond.notify_all()
        if doprocdump and self.on_procdump is not None:
            self.on_procdump()
        return doprocdump

    def kill(self) -> None:
        """Make blocked and future reads fail."""
        with self._cond:
            self._killed = True
            self._cond.notify_all()

    def read(self, n: int) -> bytes:
        """Wait for a line and return at most ``n`` bytes of it; b"" at end of input."""
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    if self._killed:
                        raise InterruptedError("console read interrupted")
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _ctl("D"):
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Print bytes; returns how many."""
        data = bytes(data)
        with self._cond:
            for b in data:
                self._putc(b & 0xFF)
        return len(data)

    def printf(self, fmt: str, *args: Any) -> None:
        """Print using the kernel format dialect (%d %x %p %s %%)."""
        if fmt is None:
            raise FsPanic("null fmt")
        text = kformat(fmt, *args)
        with self._cond:
            for ch in text:
                self._putc(ord(ch) & 0xFF)