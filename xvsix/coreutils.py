"""cat, echo and wc."""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from typing import BinaryIO, NamedTuple

_CHUNK = 512
# The terminating NUL of the separator string matches too.
_SPACE = frozenset(b" \r\t\n\v\0")


class WcCounts(NamedTuple):
    lines: int
    words: int
    chars: int


def cat(stream: BinaryIO, out: BinaryIO) -> None:
    """Copy ``stream`` to ``out`` in small chunks."""
    while True:
        try:
            chunk = stream.read(_CHUNK)
        except OSError as exc:
            raise OSError("cat: read error") from exc
        if not chunk:
            return
        written = out.write(chunk)
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")


def echo(args: Sequence[str]) -> str:
    """The arguments joined by spaces and ended by a newline; nothing when empty."""
    return " ".join(args) + "\n" if args else ""


def wc(stream: BinaryIO) -> WcCounts:
    """Count lines, words and bytes in ``stream``."""
    lines = words = chars = 0
    inword = False
    while chunk := stream.read(_CHUNK):
        for byte in chunk:
            chars += 1
            if byte == 0x0A:
                lines += 1
            if byte in _SPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return WcCounts(lines, words, chars)


def _run_cat(paths: list[str]) -> int:
    sys.stdout.flush()
    out = sys.stdout.buffer
    try:
        if not paths:
            cat(sys.stdin.buffer, out)
            return 0
        for path in paths:
            try:
                stream = open(path, "rb")
            except OSError:
                print(f"cat: cannot open {path}")
                return 1
            with stream:
                cat(stream, out)
    except OSError as exc:
        print(str(exc))
        return 1
    finally:
        out.flush()
    return 0


def _run_echo(args: list[str]) -> int:
    sys.stdout.write(echo(args))
    return 0


def _run_wc(paths: list[str]) -> int:
    def report(stream: BinaryIO, name: str) -> bool:
        try:
            counts = wc(stream)
        except OSError:
            print("wc: read error")
            return False
        print(f"{counts.lines} {counts.words} {counts.chars} {name}")
        return True

    if not paths:
        return 0 if report(sys.stdin.buffer, "") else 1
    for path in paths:
        try:
            stream = open(path, "rb")
        except OSError:
            print(f"wc: cannot open {path}")
            return 1
        with stream:
            if not report(stream, path):
                return 1
    return 0


_TOOLS: dict[str, Callable[[list[str]], int]] = {
    "cat": _run_cat,
    "echo": _run_echo,
    "wc": _run_wc,
}


def main(argv: list[str] | None = None) -> int:
    """Run one tool: ``cat|echo|wc [args ...]``."""
    if argv is None:
        argv = sys.argv[1:]
    if not argv or argv[0] not in _TOOLS:
        print("usage: coreutils cat|echo|wc [args ...]", file=sys.stderr)
        return 2
    return _TOOLS[argv[0]](list(argv[1:]))


if __name__ == "__main__":
    sys.exit(main())