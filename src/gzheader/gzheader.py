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

"""Read the header and trailer of a gzip file without decompressing it.

The header fields and optional fields of the first member are read from the
start of the stream, the CRC32 and ISIZE trailer from its last 8 bytes. None
of the checksums are verified.
"""

import argparse
import builtins
import dataclasses
import logging
import shutil
import sys
import tempfile
from gzip import FCOMMENT, FEXTRA, FHCRC, FNAME, FTEXT

from ._reader import (TRAILER_SIZE, _tell, read_fixed_header,
                      read_optional_fields, read_trailer)
from ._types import (BadGzipHeader, GzipHeader, GzipInfo, GzipTrailer,
                     HeaderText, InvalidMagic, OptionalFields, SeekOutOfRange,
                     TruncatedInput)

__all__ = ["parse", "parse_file", "format_report", "GzipInfo", "GzipHeader",
           "OptionalFields", "HeaderText", "GzipTrailer", "BadGzipHeader",
           "InvalidMagic", "TruncatedInput", "SeekOutOfRange",
           "MAX_FILENAME_LENGTH", "MAX_COMMENT_LENGTH", "TRAILER_SIZE",
           "FTEXT", "FHCRC", "FEXTRA", "FNAME", "FCOMMENT"]

logger = logging.getLogger(__name__)

# The longest filename and comment that are stored. Reading a longer string
# stops after one byte more and the text is marked as truncated.
MAX_FILENAME_LENGTH = 127
MAX_COMMENT_LENGTH = 8191


def parse(fileobj, *, max_filename_length: int = MAX_FILENAME_LENGTH,
          max_comment_length: int = MAX_COMMENT_LENGTH) -> GzipInfo:
    """Parse the header of the gzip member starting at the current position
    of `fileobj` and the trailer in the last 8 bytes of `fileobj`.

    `fileobj` must be a seekable binary file object. It is not closed.

    Raises InvalidMagic when the stream does not start with a gzip magic,
    TruncatedInput when it ends before a field is complete and
    SeekOutOfRange when the trailer cannot be reached.
    """
    if max_filename_length < 0 or max_comment_length < 0:
        raise ValueError(
            f"Maximum lengths should be at least 0, got "
            f"{max_filename_length} and {max_comment_length}.")
    header = read_fixed_header(fileobj)
    extra_length, optional = read_optional_fields(
        fileobj, header.flags,
        max_filename_length=max_filename_length,
        max_comment_length=max_comment_length)
    if extra_length is not None:
        header = dataclasses.replace(header, extra_length=extra_length)
    data_offset = _tell(fileobj)
    logger.debug("Compressed data starts at offset %s", data_offset)
    trailer = read_trailer(fileobj)
    return GzipInfo(header=header, optional=optional, trailer=trailer,
                    data_offset=data_offset)


def parse_file(filename, **kwargs) -> GzipInfo:
    """Open `filename`, parse it with `parse` and close it again.

    The filename argument can be a str or bytes object or an os.PathLike.
    Keyword arguments are passed on to `parse`.
    """
    # __fspath__ method is os.PathLike
    if not (isinstance(filename, (str, bytes))
            or hasattr(filename, "__fspath__")):
        raise TypeError("filename must be a str or bytes object, or a "
                        "path-like object")
    with builtins.open(filename, "rb") as fileobj:
        return parse(fileobj, **kwargs)


def _hexdump(data: bytes) -> str:
    return " ".join(f"0x{byte:02x}" for byte in data)


def _format_text(label, header_text):
    line = f"{label}: {header_text.text}"
    if header_text.truncated:
        line += " (truncated)"
    return line


def format_report(info: GzipInfo) -> str:
    """Return a human readable, multi-line description of `info`."""
    header = info.header
    optional = info.optional
    lines = ["valid gzip file"]
    if header.is_deflate:
        lines.append('standard gzip compression method "deflate"')
    else:
        lines.append(f"compression method: {header.compression_method_name} "
                     f"({header.compression_method})")
    if header.flags:
        names = header.flag_names
        if header.unknown_flags:
            names.append(f"reserved 0x{header.unknown_flags:02x}")
        lines.append("flags set: " + " | ".join(names))
    mtime = header.mtime_datetime
    if mtime is None:
        lines.append("modification time: not available")
    else:
        lines.append("modification time: "
                     + mtime.strftime("%d.%m.%Y %H:%M:%S UTC"))
    lines.append(f"XFL: 0x{header.extra_flags:x}")
    lines.append(f"OS: {header.os_name} ({header.os})")

    if optional.extra is not None:
        lines.append(f"extra field ({header.extra_length} bytes): "
                     f"{_hexdump(optional.extra)}")
        try:
            subfields = optional.extra_subfields()
        except TruncatedInput as error:
            lines.append(f"extra subfields: malformed ({error})")
        else:
            for subfield_id, data in subfields:
                lines.append(f"extra subfield {subfield_id.decode('latin-1')}"
                             f": {_hexdump(data)}")
    if optional.filename is not None:
        lines.append(_format_text("filename", optional.filename))
    if optional.comment is not None:
        lines.append(_format_text("comment", optional.comment))
    if optional.header_crc is not None:
        lines.append(f"header checksum: 0x{optional.header_crc:04x}")

    lines.append(f"checksum: 0x{info.trailer.crc32:08x}")
    lines.append(f"isize: {info.trailer.uncompressed_size}")
    return "\n".join(lines)


def _non_negative_int(value):
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(
            f"should be at least 0, got {number}")
    return number


def _argument_parser():
    parser = argparse.ArgumentParser()
    parser.description = (
        "Show the header and trailer fields of a gzip file without "
        "decompressing it.")
    parser.add_argument("file", nargs="?",
                        help="gzip file to inspect. Reads standard input "
                             "when omitted, which is copied to a temporary "
                             "file first.")
    parser.add_argument("--max-filename", type=_non_negative_int,
                        default=MAX_FILENAME_LENGTH,
                        help=f"Store at most this many bytes of the original "
                             f"filename. Default: {MAX_FILENAME_LENGTH}.")
    parser.add_argument("--max-comment", type=_non_negative_int,
                        default=MAX_COMMENT_LENGTH,
                        help=f"Store at most this many bytes of the comment. "
                             f"Default: {MAX_COMMENT_LENGTH}.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every field as it is read.")
    return parser


def main():
    args = _argument_parser().parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(name)s: %(message)s")
    kwargs = dict(max_filename_length=args.max_filename,
                  max_comment_length=args.max_comment)
    try:
        if args.file is None:
            # Standard input is usually a pipe, which can not seek to the
            # trailer. Spool it to disk rather than memory.
            with tempfile.TemporaryFile() as spool:
                shutil.copyfileobj(sys.stdin.buffer, spool)
                spool.seek(0)
                info = parse(spool, **kwargs)
        else:
            info = parse_file(args.file, **kwargs)
    except OSError as error:
        # BadGzipHeader is an OSError, as are missing or unreadable files.
        sys.exit(f"{args.file or '<stdin>'}: {error}")
    print(format_report(info))


if __name__ == "__main__":  # pragma: no cover
    main()
