# Copyright (c) 2020 Leiden University Medical Center
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""Tests for the gzheader command line interface."""

import gzip
import io
import logging
import sys
import zlib

from gzheader import gzheader

import pytest

DATA = b'This is a simple test with gzheader'


def compressed_with_name(name="test.txt", mtime=0):
    buffer = io.BytesIO()
    with gzip.GzipFile(filename=name, mode="wb", fileobj=buffer,
                       mtime=mtime) as f:
        f.write(DATA)
    return buffer.getvalue()


def test_report_infile(tmp_path, capsys):
    test_gz = tmp_path / "test.txt.gz"
    test_gz.write_bytes(compressed_with_name())
    sys.argv = ['', str(test_gz)]
    gzheader.main()
    out, err = capsys.readouterr()
    assert err == ''
    lines = out.splitlines()
    assert lines[0] == "valid gzip file"
    assert 'standard gzip compression method "deflate"' in lines
    assert "flags set: FNAME" in lines
    assert "modification time: not available" in lines
    assert "filename: test.txt" in lines
    assert f"checksum: 0x{zlib.crc32(DATA):08x}" in lines
    assert f"isize: {len(DATA)}" in lines


def test_report_stdin(capsys):
    mock_stdin = io.BytesIO(gzip.compress(DATA, mtime=86400))
    sys.stdin = io.TextIOWrapper(mock_stdin)
    sys.argv = ['']
    gzheader.main()
    out, err = capsys.readouterr()
    assert err == ''
    assert "modification time: 02.01.1970 00:00:00 UTC" in out
    assert f"isize: {len(DATA)}" in out


def test_max_filename(tmp_path, capsys):
    test_gz = tmp_path / "test.gz"
    test_gz.write_bytes(compressed_with_name("a_rather_long_name.txt"))
    sys.argv = ['', '--max-filename', '8', str(test_gz)]
    gzheader.main()
    out, err = capsys.readouterr()
    assert "filename: a_rather (truncated)" in out


def test_invalid_magic(tmp_path, capsys):
    test_file = tmp_path / "test"
    test_file.write_bytes(DATA)
    sys.argv = ['', str(test_file)]
    with pytest.raises(SystemExit) as error:
        gzheader.main()
    error.match("Not a gzipped file")
    out, err = capsys.readouterr()
    assert out == ''


def test_truncated(tmp_path, capsys):
    test_gz = tmp_path / "test.gz"
    test_gz.write_bytes(b"\x1f\x8b\x08\x00\x00")
    sys.argv = ['', str(test_gz)]
    with pytest.raises(SystemExit) as error:
        gzheader.main()
    error.match("test.gz: Gzip file ended while reading the fixed header")
    out, err = capsys.readouterr()
    assert out == ''


def test_truncated_stdin(capsys):
    sys.stdin = io.TextIOWrapper(io.BytesIO(b"\x1f\x8b"))
    sys.argv = ['']
    with pytest.raises(SystemExit) as error:
        gzheader.main()
    error.match("<stdin>")


def test_verbose_logs_fields(tmp_path, capsys, caplog):
    caplog.set_level(logging.DEBUG, logger="gzheader")
    test_gz = tmp_path / "test.gz"
    test_gz.write_bytes(compressed_with_name())
    sys.argv = ['', '-v', str(test_gz)]
    gzheader.main()
    messages = [record.getMessage() for record in caplog.records]
    assert "Read filename b'test.txt'" in messages
    assert "Compressed data starts at offset 19" in messages


class Pipe(io.BytesIO):
    def seekable(self):
        return False


def test_report_stdin_not_seekable(capsys):
    sys.stdin = io.TextIOWrapper(Pipe(compressed_with_name()))
    sys.argv = ['']
    gzheader.main()
    out, err = capsys.readouterr()
    assert "filename: test.txt" in out
    assert f"isize: {len(DATA)}" in out


def test_missing_file(tmp_path, capsys):
    missing = tmp_path / "missing.gz"
    sys.argv = ['', str(missing)]
    with pytest.raises(SystemExit) as error:
        gzheader.main()
    error.match("missing.gz: .*No such file or directory")
    out, err = capsys.readouterr()
    assert out == ''


@pytest.mark.parametrize("option", ["--max-filename", "--max-comment"])
def test_negative_maximum(tmp_path, capsys, option):
    test_gz = tmp_path / "test.gz"
    test_gz.write_bytes(compressed_with_name())
    sys.argv = ['', option, '-1', str(test_gz)]
    with pytest.raises(SystemExit) as error:
        gzheader.main()
    assert error.value.code == 2
    out, err = capsys.readouterr()
    assert out == ''
    assert "should be at least 0, got -1" in err
