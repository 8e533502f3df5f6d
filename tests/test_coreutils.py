import io

import pytest

from xvsix.coreutils import cat, echo, main, wc


class _ShortWriter:
    def write(self, data):
        return 0


def test_echo_joins_with_spaces():
    assert echo(["a", "b"]) == "a b\n"


def test_echo_without_arguments_prints_nothing():
    assert echo([]) == ""


def test_cat_copies_everything():
    data = bytes(range(256)) * 6
    out = io.BytesIO()
    cat(io.BytesIO(data), out)
    assert out.getvalue() == data


def test_cat_short_write_raises():
    with pytest.raises(OSError, match="write error"):
        cat(io.BytesIO(b"data"), _ShortWriter())


def test_wc_counts():
    data = b"hello world\nfoo\n"
    counts = wc(io.BytesIO(data))
    assert counts.chars == len(data)
    assert counts.lines == data.count(b"\n")
    assert counts.words == 3


def test_wc_nul_separates_words():
    assert wc(io.BytesIO(b"a\0b")).words == 2


def test_wc_word_spans_chunks():
    counts = wc(io.BytesIO(b"a" * 600))
    assert counts == (0, 1, 600)


def test_wc_empty():
    assert wc(io.BytesIO(b"")) == (0, 0, 0)


def test_main_wc(tmp_path, capsys):
    path = tmp_path / "f"
    path.write_bytes(b"one two\nthree\n")
    assert main(["wc", str(path)]) == 0
    assert capsys.readouterr().out == f"2 3 14 {path}\n"


def test_main_echo(capsys):
    assert main(["echo", "x", "y"]) == 0
    assert capsys.readouterr().out == "x y\n"


def test_main_cat(tmp_path, capsys):
    path = tmp_path / "f"
    path.write_bytes(b"line\n")
    assert main(["cat", str(path)]) == 0
    assert capsys.readouterr().out == "line\n"


def test_main_cat_cannot_open(tmp_path, capsys):
    missing = str(tmp_path / "nope")
    assert main(["cat", missing]) == 1
    assert capsys.readouterr().out == f"cat: cannot open {missing}\n"


def test_main_unknown_tool():
    assert main(["frobnicate"]) == 2