import pytest

from xvsix.disk import BufferCache, MemDisk
from xvsix.fs import FileSystem
from xvsix.log import Log
from xvsix.ls import fmtname, ls, main
from xvsix.mkfs import ImageBuilder
from xvsix.params import BSIZE, DIRSIZ


def _image():
    builder = ImageBuilder()
    builder.add_file("README", b"hello")
    builder.add_file("abcdefghijklmnop", b"x" * 600)
    return builder.build()


@pytest.fixture
def fs():
    cache = BufferCache(MemDisk(_image()))
    return FileSystem(cache, Log(cache))


def test_fmtname_pads_last_element():
    assert fmtname("a/b/README") == "README" + " " * 8
    assert len(fmtname("x")) == DIRSIZ


def test_fmtname_long_name_unpadded():
    assert fmtname("dir/" + "y" * 20) == "y" * 20


def test_fmtname_trailing_slash_is_blank():
    assert fmtname("dir/") == " " * DIRSIZ


def test_ls_file(fs):
    assert ls(fs, "README") == [fmtname("README") + " 2 2 5"]


def test_ls_root_directory(fs):
    lines = ls(fs, ".")
    assert len(lines) == 4
    assert lines[0] == fmtname(".") + f" 1 1 {BSIZE}"
    assert lines[1] == fmtname("..") + f" 1 1 {BSIZE}"
    assert lines[2] == fmtname("README") + " 2 2 5"
    assert lines[3] == "abcdefghijklmn 2 3 600"


def test_ls_absolute_root_matches_relative(fs):
    assert ls(fs, "/") == ls(fs, ".")


def test_ls_missing_raises(fs):
    with pytest.raises(FileNotFoundError):
        ls(fs, "nope")


def test_ls_path_too_long(fs):
    assert ls(fs, "/" * 500) == ["ls: path too long"]


def test_main_lists_image(tmp_path, capsys):
    img = tmp_path / "fs.img"
    img.write_bytes(_image())
    assert main([str(img)]) == 0
    out = capsys.readouterr().out.splitlines()
    assert fmtname("README") + " 2 2 5" in out
    assert len(out) == 4


def test_main_reports_missing_path(tmp_path, capsys):
    img = tmp_path / "fs.img"
    img.write_bytes(_image())
    assert main([str(img), "nope"]) == 1
    assert capsys.readouterr().err == "ls: cannot open nope\n"


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err