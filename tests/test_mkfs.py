import pytest

from xvsix.disk import BufferCache, MemDisk
from xvsix.fs import FileSystem
from xvsix.log import Log
from xvsix.mkfs import NINODES, ImageBuilder, main
from xvsix.params import (
    BSIZE,
    DIRENT_SIZE,
    FSSIZE,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    ROOTINO,
    Dirent,
    InodeType,
    Superblock,
)


def mount(image):
    cache = BufferCache(MemDisk(image))
    return FileSystem(cache, Log(cache))


def read_all(fs, path):
    ip = fs.namei(path)
    fs.ilock(ip)
    try:
        return fs.readi(ip, 0, ip.size)
    finally:
        fs.iunlockput(ip)


def test_superblock_layout():
    builder = ImageBuilder()
    image = builder.build()
    sb = Superblock.unpack(image[BSIZE : 2 * BSIZE])
    assert sb.size == FSSIZE
    assert sb.nlog == LOGSIZE
    assert sb.ninodes == NINODES
    assert sb.logstart == 2
    assert sb.inodestart == sb.logstart + sb.nlog
    assert sb.bmapstart == sb.inodestart + builder.ninodeblocks
    assert sb.nblocks + builder.nmeta == sb.size


def test_image_size_is_whole_disk():
    assert len(ImageBuilder().build()) == FSSIZE * BSIZE


def test_root_directory_entries():
    builder = ImageBuilder()
    builder.add_file("a", b"x")
    fs = mount(builder.build())
    root = fs.namei("/")
    fs.ilock(root)
    try:
        assert root.type == InodeType.DIR
        assert root.inum == ROOTINO
        assert root.size % BSIZE == 0 and root.size > 0
        entries = [
            Dirent.unpack(fs.readi(root, off, DIRENT_SIZE))
            for off in range(0, root.size, DIRENT_SIZE)
        ]
    finally:
        fs.iunlockput(root)
    names = [de.name for de in entries if de.inum]
    assert names == [".", "..", "a"]
    assert entries[0].inum == ROOTINO and entries[1].inum == ROOTINO


def test_file_content_round_trip():
    builder = ImageBuilder()
    builder.add_file("README", b"hello, disk\n")
    fs = mount(builder.build())
    assert read_all(fs, "/README") == b"hello, disk\n"


def test_file_using_indirect_block():
    payload = bytes(range(256)) * ((NDIRECT + 3) * BSIZE // 256)
    builder = ImageBuilder()
    builder.add_file("big", payload)
    fs = mount(builder.build())
    assert read_all(fs, "/big") == payload


def test_bitmap_marks_exactly_used_blocks():
    builder = ImageBuilder()
    builder.add_file("f", b"z" * 3000)
    image = builder.build()
    start = builder.sb.bmapstart * BSIZE
    bitmap = image[start : start + BSIZE]
    bits = [(bitmap[i // 8] >> (i % 8)) & 1 for i in range(BSIZE * 8)]
    used = builder.freeblock
    assert used > builder.nmeta
    assert bits[:used] == [1] * used
    assert bits[used:] == [0] * (BSIZE * 8 - used)
    assert sum(bits) == used


def test_build_is_repeatable():
    builder = ImageBuilder()
    builder.add_file("f", b"abc")
    first = builder.build()
    second = builder.build()
    assert len(first) == FSSIZE * BSIZE
    assert first == second
    assert read_all(mount(second), "/f") == b"abc"


def test_long_name_is_cut_to_dirsiz():
    builder = ImageBuilder()
    builder.add_file("abcdefghijklmnopq", b"data")
    fs = mount(builder.build())
    assert read_all(fs, "/abcdefghijklmn") == b"data"


def test_name_with_slash_rejected():
    with pytest.raises(ValueError):
        ImageBuilder().add_file("a/b", b"")


def test_too_large_file_rejected():
    with pytest.raises(ValueError):
        ImageBuilder().add_file("huge", bytes(MAXFILE * BSIZE + 1))


def test_inodes_run_out():
    builder = ImageBuilder(ninodes=4)
    builder.add_file("a", b"")
    builder.add_file("b", b"")
    with pytest.raises(ValueError):
        builder.add_file("c", b"")


def test_main_strips_underscore(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_cat").write_bytes(b"cat program")
    assert main(["fs.img", "_cat"]) == 0
    assert "balloc: first" in capsys.readouterr().out
    fs = mount((tmp_path / "fs.img").read_bytes())
    assert read_all(fs, "/cat") == b"cat program"
    with pytest.raises(FileNotFoundError):
        fs.namei("/_cat")


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err


def test_main_missing_input(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["fs.img", "nosuchfile"]) == 1
    assert not (tmp_path / "fs.img").exists()