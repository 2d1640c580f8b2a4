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

"""
The readers for the three parts of a gzip member that can be decoded without
inflating anything: the fixed header, the optional header fields and the
trailer.

The readers work on any binary file object. Only the trailer reader needs a
seekable stream. The fixed header is read up to and including the OS byte.
The XLEN field is read as part of the optional fields, and only when FEXTRA
is set, so the cursor never has to move backwards.
"""

import io
import logging
import struct
from gzip import FCOMMENT, FEXTRA, FHCRC, FNAME, FTEXT

from ._types import (GzipHeader, GzipTrailer, HeaderText, InvalidMagic,
                     OptionalFields, SeekOutOfRange, TruncatedInput)

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\037\213"
DEFLATED = 8
KNOWN_FLAGS = FTEXT | FHCRC | FEXTRA | FNAME | FCOMMENT
TRAILER_SIZE = 8


def _tell(fp):
    try:
        return fp.tell()
    except OSError:  # io.UnsupportedOperation on pipes.
        return None


def _read_exact(fp, n, field):
    '''Read exactly *n* bytes from `fp`

    This method is required because fp may be unbuffered,
    i.e. return short reads.
    '''
    offset = _tell(fp)
    data = fp.read(n)
    while len(data) < n:
        b = fp.read(n - len(data))
        if not b:
            raise TruncatedInput(
                f"Gzip file ended while reading the {field}: needed {n} "
                f"bytes, got {len(data)}", field=field, offset=offset)
        data += b
    return data


def _read_null_terminated(fp, max_length, field):
    """Read a zero-terminated string and return it as a HeaderText.

    At most *max_length* + 1 bytes are read, the size of a buffer holding
    *max_length* characters and the terminator. When no terminator is found
    within that many bytes, reading stops there and the first *max_length*
    bytes are returned as truncated text. The cursor is then left directly
    after the last byte read.
    """
    buffer = bytearray()
    while True:
        s = _read_exact(fp, 1, field)
        if s == b"\000":
            return HeaderText(bytes(buffer), False)
        if len(buffer) == max_length:
            break
        buffer += s
    logger.debug("%s longer than %d bytes, truncated", field, max_length)
    return HeaderText(bytes(buffer), True)


def read_fixed_header(fp):
    '''Read the 10 byte fixed part of a gzip header from `fp`.

    Raises InvalidMagic when the first two bytes are not the gzip magic.
    In that case nothing after the magic is read.
    '''
    magic = _read_exact(fp, 2, "magic")
    if magic != GZIP_MAGIC:
        raise InvalidMagic('Not a gzipped file (%r)' % magic)
    (method, flag, mtime, xfl, os_flag
     ) = struct.unpack("<BBIBB", _read_exact(fp, 8, "fixed header"))
    if method != DEFLATED:
        logger.debug("Compression method %d is not deflate", method)
    if flag & ~KNOWN_FLAGS:
        logger.debug("Reserved flag bits set: 0x%02x", flag & ~KNOWN_FLAGS)
    return GzipHeader(id1=magic[0], id2=magic[1], compression_method=method,
                      flags=flag, mtime=mtime, extra_flags=xfl, os=os_flag)


def read_optional_fields(fp, flag, *, max_filename_length,
                         max_comment_length):
    """Read the optional header fields selected by `flag`.

    The fields are read in the order RFC 1952 puts them in: extra field,
    filename, comment and header CRC16. Fields whose flag bit is not set
    consume no bytes. Returns a tuple of the extra field length (None
    without FEXTRA) and an OptionalFields instance.
    """
    extra_len = None
    extra = filename = comment = header_crc = None
    if flag & FEXTRA:
        extra_len, = struct.unpack("<H", _read_exact(fp, 2, "extra length"))
        extra = _read_exact(fp, extra_len, "extra field")
        logger.debug("Read extra field of %d bytes", extra_len)
    if flag & FNAME:
        filename = _read_null_terminated(fp, max_filename_length, "filename")
        logger.debug("Read filename %r", filename.raw)
    if flag & FCOMMENT:
        comment = _read_null_terminated(fp, max_comment_length, "comment")
        logger.debug("Read comment of %d bytes", len(comment.raw))
    if flag & FHCRC:
        # Verification would need the raw header bytes and is not done.
        header_crc, = struct.unpack("<H", _read_exact(fp, 2, "header crc"))
        logger.debug("Read header crc 0x%04x", header_crc)
    return extra_len, OptionalFields(extra=extra, filename=filename,
                                     comment=comment, header_crc=header_crc)


def read_trailer(fp):
    """Read CRC32 and ISIZE from the last 8 bytes of `fp`.

    The cursor position left by the header readers does not matter. The
    stream must be seekable.
    """
    if not fp.seekable():
        raise SeekOutOfRange("Cannot read the gzip trailer from a stream "
                             "that is not seekable")
    try:
        size = fp.seek(0, io.SEEK_END)
        if size >= TRAILER_SIZE:
            fp.seek(size - TRAILER_SIZE, io.SEEK_SET)
    except OSError as error:
        raise SeekOutOfRange(
            f"Could not seek to the gzip trailer: {error}") from error
    if size < TRAILER_SIZE:
        # BytesIO clamps negative positions to 0, so check explicitly.
        raise SeekOutOfRange(
            f"Gzip file is {size} bytes, too short to hold the "
            f"{TRAILER_SIZE} byte trailer")
    crc, isize = struct.unpack("<II", _read_exact(fp, TRAILER_SIZE,
                                                  "trailer"))
    logger.debug("Read trailer crc32 0x%08x, isize %d", crc, isize)
    return GzipTrailer(crc32=crc, uncompressed_size=isize)
