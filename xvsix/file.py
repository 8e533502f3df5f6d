"""Open files: reference-counted handles onto inodes and pipes."""

from __future__ import annotations

import errno
import threading
from dataclasses import dataclass
from enum import Enum

from .fs import FileSystem, Inode
from .params import BSIZE, MAXOPBLOCKS, NFILE, FsPanic, Stat
from .pipe import Pipe

# Blocks per write transaction: leave room for the inode, indirect block,
# allocation blocks and two blocks of slop for unaligned writes.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE


class FileType(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """One open file."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """The system-wide table of open files."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self._files = [File() for _ in range(nfile)]

    def _filesystem(self) -> FileSystem:
        if self.fs is None:
            raise FsPanic("file table has no file system")
        return self.fs

    def alloc(self) -> File:
        """Take a free slot; the file starts with one reference."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.type = FileType.NONE
                    f.ref = 1
                    f.readable = f.writable = False
                    f.pipe = None
                    f.ip = None
                    f.off = 0
                    return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: File) -> File:
        """Take one more reference to an open file."""
        with self._lock:
            if f.ref < 1:
                raise FsPanic("filedup")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; the last one releases the pipe end or inode."""
        with self._lock:
            if f.ref < 1:
                raise FsPanic("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
            f.type = FileType.NONE
            f.pipe = None
            f.ip = None
        if kind is FileType.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileType.INODE and ip is not None:
            fs = self._filesystem()
            with fs.log.transaction():
                fs.iput(ip)

    def stat(self, f: File) -> Stat:
        """Metadata of the inode behind a file."""
        if f.type is not FileType.INODE or f.ip is None:
            raise OSError(errno.EBADF, "not an inode")
        fs = self._filesystem()
        fs.ilock(f.ip)
        try:
            return fs.stati(f.ip)
        finally:
            fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to ``n`` bytes, advancing the offset of inode files."""
        if not f.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.type is FileType.INODE and f.ip is not None:
            fs = self._filesystem()
            fs.ilock(f.ip)
            try:
                data = fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                fs.iunlock(f.ip)
            return data
        raise FsPanic("fileread")

    def write(self, f: File, data: bytes) -> int:
        """Write all of ``data``; inode writes go a few blocks per transaction."""
        if not f.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.type is FileType.INODE and f.ip is not None:
            fs = self._filesystem()
            data = bytes(data)
            i = 0
            while i < len(data):
                chunk = data[i : i + _MAX_WRITE]
                with fs.log.transaction():
                    fs.ilock(f.ip)
                    try:
                        r = fs.writei(f.ip, chunk, f.off)
                        if r > 0:
                            f.off += r
                    except ValueError as exc:
                        raise OSError(errno.EFBIG, str(exc)) from exc
                    finally:
                        fs.iunlock(f.ip)
                if r != len(chunk):
                    raise FsPanic("short filewrite")
                i += r
            return len(data)
        raise FsPanic("filewrite")

    def pipe(self) -> tuple[File, File]:
        """Open a new pipe; returns its read end and its write end."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            self.close(f0)
            raise
        p = Pipe()
        f0.type, f0.readable, f0.writable, f0.pipe = FileType.PIPE, True, False, p
        f1.type, f1.readable, f1.writable, f1.pipe = FileType.PIPE, False, True, p
        return f0, f1