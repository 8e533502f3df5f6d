"""The small printf dialects used by user programs and by the kernel console."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

_NOT_ENOUGH = "not enough arguments for format string"


def _next_arg(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError(_NOT_ENOUGH) from None


def _cstring(value: Any) -> str:
    text = value.decode("latin-1") if isinstance(value, (bytes, bytearray)) else str(value)
    return text.split("\0", 1)[0]


def _integer(value: Any, base: int, signed: bool, upper: bool) -> str:
    x = int(value) & 0xFFFFFFFF
    negative = signed and x >= 0x80000000
    if negative:
        x = 0x100000000 - x
    if base == 10:
        digits = str(x)
    else:
        digits = f"{x:X}" if upper else f"{x:x}"
    return "-" + digits if negative else digits


def _char(value: Any) -> str:
    if isinstance(value, str):
        return value[:1] or "\0"
    if isinstance(value, (bytes, bytearray)):
        return chr(value[0]) if value else "\0"
    return chr(int(value) & 0xFF)


def _render(fmt: str, args: tuple[Any, ...], upper: bool, with_char: bool) -> str:
    out: list[str] = []
    params = iter(args)
    chars = iter(fmt.split("\0", 1)[0])
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            out.append(_integer(_next_arg(params), 10, True, upper))
        elif spec in ("x", "p"):
            out.append(_integer(_next_arg(params), 16, False, upper))
        elif spec == "s":
            s = _next_arg(params)
            out.append("(null)" if s is None else _cstring(s))
        elif spec == "c" and with_char:
            out.append(_char(_next_arg(params)))
        elif spec == "%":
            out.append("%")
        else:
            # Unknown sequences are printed as-is to draw attention.
            out.append("%" + spec)
    return "".join(out)


def format(fmt: str, *args: Any) -> str:
    """Format like the user-level printf: %d %x %p %s %c %%, hex in upper case."""
    return _render(fmt, args, upper=True, with_char=True)


def kformat(fmt: str, *args: Any) -> str:
    """Format like the kernel's cprintf: %d %x %p %s %%, hex in lower case."""
    return _render(fmt, args, upper=False, with_char=False)