# xvsix

A compact model of a classic teaching Unix file system, in plain Python
with no runtime dependencies.

## What is in it

- **On-disk format** – `xvsix.params`: `Superblock`, `DiskInode` and
  `Dirent`, each with `pack()` / `unpack()`; the `Stat` record; the
  `InodeType` enum; the layout helpers `iblock()` and `bblock()`; and the
  system limits (`BSIZE`, `NDIRECT`, `MAXFILE`, `DIRSIZ`, `LOGSIZE`, …).
  Inconsistencies the structures cannot survive raise `FsPanic`.
- **Disk and buffer cache** – `xvsix.disk`: `MemDisk` keeps blocks in a
  byte array (`read_block`, `write_block`, `sync`, `image`);
  `BufferCache` hands out locked `Buffer`s with `read`, `write` and
  `release`, recycling the least recently used one.
- **Write-ahead log** – `xvsix.log`: `Log` groups block writes into
  operations (`begin_op` / `end_op`, or the `transaction()` context
  manager), commits when the last operation ends, and replays a committed
  log when it is created.
- **Inodes, directories, path names** – `xvsix.fs`: `FileSystem` with
  `ialloc`, `iget`, `idup`, `ilock`, `iunlock`, `iput`, `iunlockput`,
  `iupdate`, `stati`, `readi`, `writei`, `dirlookup`, `dirlink`, `namei`,
  `nameiparent` and `register_device`; plus the helpers `skipelem()` and
  `namecmp()`.
- **Open files and pipes** – `xvsix.file`: `FileTable` (`alloc`, `dup`,
  `close`, `stat`, `read`, `write`, `pipe`) of `File`s; `xvsix.pipe`:
  a bounded `Pipe` that raises `PipeClosed` when writing to a full pipe
  whose reader is gone.
- **Image builder** – `xvsix.mkfs`: `ImageBuilder` lays out a fresh image
  with a root directory; `add_file()` adds regular files, `build()`
  returns the image bytes.
- **User tools** – `xvsix.grep` (`match`, `grep`; `^ . * $` only),
  `xvsix.coreutils` (`cat`, `echo`, `wc`), `xvsix.ls` (`fmtname`, `ls`),
  and `xvsix.printfmt` with `format()` (`%d %x %p %s %c %%`, upper-case
  hex) and `kformat()` (`%d %x %p %s %%`, lower-case hex).
- **Console and keyboard** – `xvsix.console`: `Console` with line editing
  (`interrupt`, `read`, `write`, `printf`, `kill`, `output`) drawing on an
  80×25 `CgaScreen` (`putc`, `text`); `xvsix.kbd`: `Keyboard` turns PC
  scancodes into character codes (`getc`, `feed`).

## Installation

```
pip install xvsix
```

Python 3.10 or later is required.

## Command-line tools

Build a disk image from host files; a leading `_` in a file name is
dropped inside the image:

```
xvsix-mkfs fs.img _cat _echo README
```

List the root directory of an image, or given paths inside it:

```
xvsix-ls fs.img
xvsix-ls fs.img /README
```

Print the lines of files (or standard input) that match a pattern:

```
xvsix-grep '^ab*c$' notes.txt
```

Run `cat`, `echo` or `wc` on host files or standard input:

```
xvsix-coreutils cat notes.txt
xvsix-coreutils echo hello world
xvsix-coreutils wc notes.txt
```

## Library use

Build an image and read a file back through the log and inode layers:

```python
from xvsix.disk import BufferCache, MemDisk
from xvsix.fs import FileSystem
from xvsix.log import Log
from xvsix.mkfs import ImageBuilder

builder = ImageBuilder()
builder.add_file("hello", b"hi there\n")
image = builder.build()

cache = BufferCache(MemDisk(image))
fs = FileSystem(cache, Log(cache))

with fs.log.transaction():
    ip = fs.namei("/hello")
fs.ilock(ip)
data = fs.readi(ip, 0, ip.size)   # b"hi there\n"
fs.iunlock(ip)
with fs.log.transaction():
    fs.iput(ip)
```

Smaller helpers:

```python
from xvsix.fs import skipelem
from xvsix.grep import match
from xvsix.printfmt import format

skipelem("///a//bb")              # ("a", "bb")
match("^ab*c$", "abbbc")          # True
format("%d items at %x\n", 3, 255)  # "3 items at FF\n"
```

## What it does not do

There are no processes and no system-call layer: nothing creates, unlinks
or renames files or directories by path. New entries can be made only
with the inode calls (`ialloc`, `dirlink`, `writei`) or, for a fresh
image, with `ImageBuilder`, which puts regular files in the root
directory only. The console and keyboard are simulations fed from Python
code; they are not attached to a real terminal.

## Running the tests

```
pip install "xvsix[test]"
pytest
```