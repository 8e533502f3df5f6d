"""List files and directories of a file system."""

from __future__ import annotations

import sys
from pathlib import Path

from .disk import BufferCache, MemDisk
from .fs import FileSystem, Inode
from .log import Log
from .params import DIRENT_SIZE, DIRSIZ, Dirent, InodeType, Stat
from .printfmt import format as _printf

_PATHBUF = 512


def fmtname(path: str) -> str:
    """The last path element, padded with blanks to DIRSIZ characters."""
    name = path.rpartition("/")[2]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _open(fs: FileSystem, path: str) -> Inode:
    with fs.log.transaction():
        return fs.namei(path)


def _close(fs: FileSystem, ip: Inode) -> None:
    with fs.log.transaction():
        fs.iput(ip)


def _read_dir(fs: FileSystem, ip: Inode) -> list[Dirent]:
    entries = []
    for off in range(0, ip.size, DIRENT_SIZE):
        raw = fs.readi(ip, off, DIRENT_SIZE)
        if len(raw) != DIRENT_SIZE:
            break
        entries.append(Dirent.unpack(raw))
    return entries


def _stat(fs: FileSystem, path: str) -> tuple[Stat, list[Dirent]]:
    ip = _open(fs, path)
    try:
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            entries = _read_dir(fs, ip) if st.type == InodeType.DIR else []
        finally:
            fs.iunlock(ip)
    finally:
        _close(fs, ip)
    return st, entries


def _line(path: str, st: Stat) -> str:
    return _printf("%s %d %d %d", fmtname(path), st.type, st.ino, st.size)


def ls(fs: FileSystem, path: str) -> list[str]:
    """Listing lines for a file, or for each entry of a directory.

    Raises OSError when ``path`` cannot be opened.
    """
    st, entries = _stat(fs, path)
    if st.type == InodeType.FILE:
        return [_line(path, st)]
    if st.type != InodeType.DIR:
        return []
    if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
        return ["ls: path too long"]
    lines = []
    for de in entries:
        if de.inum == 0:
            continue
        full = f"{path}/{de.name}"
        try:
            est, _ = _stat(fs, full)
        except OSError:
            lines.append(f"ls: cannot stat {full}")
            continue
        lines.append(_line(full, est))
    return lines


def main(argv: list[str] | None = None) -> int:
    """ls fs.img [path ...]: list paths inside a disk image."""
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        print("usage: ls fs.img [path ...]", file=sys.stderr)
        return 1
    try:
        image = Path(argv[0]).read_bytes()
    except OSError as exc:
        print(f"{argv[0]}: {exc.strerror}", file=sys.stderr)
        return 1
    cache = BufferCache(MemDisk(image))
    fs = FileSystem(cache, Log(cache))
    status = 0
    for path in argv[1:] or ["."]:
        try:
            lines = ls(fs, path)
        except OSError:
            print(f"ls: cannot open {path}", file=sys.stderr)
            status = 1
            continue
        for line in lines:
            print(line)
    return status


if __name__ == "__main__":
    sys.exit(main())