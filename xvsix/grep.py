"""A tiny grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from typing import BinaryIO

_BUFSIZE = 1024


def _as_text(value: str | bytes) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return value


def _matchhere(re: str, i: int, text: str, j: int) -> bool:
    while True:
        if i == len(re):
            return True
        if i + 1 < len(re) and re[i + 1] == "*":
            return _matchstar(re[i], re, i + 2, text, j)
        if re[i] == "$" and i + 1 == len(re):
            return j == len(text)
        if j < len(text) and (re[i] == "." or re[i] == text[j]):
            i += 1
            j += 1
            continue
        return False


def _matchstar(c: str, re: str, i: int, text: str, j: int) -> bool:
    while True:
        if _matchhere(re, i, text, j):
            return True
        if j < len(text) and (text[j] == c or c == "."):
            j += 1
        else:
            return False


def match(pattern: str | bytes, text: str | bytes) -> bool:
    """True if ``pattern`` matches somewhere in ``text``."""
    re, s = _as_text(pattern), _as_text(text)
    if re.startswith("^"):
        return _matchhere(re, 1, s, 0)
    return any(_matchhere(re, 0, s, j) for j in range(len(s) + 1))


def grep(pattern: str | bytes, stream: BinaryIO) -> Iterator[bytes]:
    """Yield the newline-terminated lines of ``stream`` that match.

    Input goes through a fixed buffer: an unterminated last line is never
    reported, and a line longer than the buffer loses its beginning.
    """
    buf = b""
    while chunk := stream.read(_BUFSIZE - 1 - len(buf)):
        buf += chunk
        *lines, rest = buf.split(b"\n")
        for line in lines:
            if match(pattern, line):
                yield line + b"\n"
        buf = rest if lines else b""


def main(argv: list[str] | None = None) -> int:
    """grep pattern [file ...]"""
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, paths = argv[0], argv[1:]

    def emit(stream: BinaryIO) -> None:
        sys.stdout.flush()
        for line in grep(pattern, stream):
            sys.stdout.buffer.write(line)
        sys.stdout.buffer.flush()

    if not paths:
        emit(sys.stdin.buffer)
        return 0
    for path in paths:
        try:
            stream = open(path, "rb")
        except OSError:
            print(f"grep: cannot open {path}")
            return 1
        with stream:
            emit(stream)
    return 0


if __name__ == "__main__":
    sys.exit(main())