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

"""Result and exception types for gzip header parsing."""

import datetime
import gzip
import struct
from dataclasses import dataclass
from gzip import FCOMMENT, FEXTRA, FHCRC, FNAME, FTEXT
from typing import List, Optional, Tuple

# Names from RFC 1952 section 2.3.1. Values 0 to 7 are reserved, but the
# historical gzip implementation used the first four.
COMPRESSION_METHODS = {
    0: "stored",
    1: "compress",
    2: "packed",
    3: "lzh",
    8: "deflate",
}

OPERATING_SYSTEMS = {
    0: "FAT filesystem (MS-DOS, OS/2, NT/Win32)",
    1: "Amiga",
    2: "VMS (or OpenVMS)",
    3: "Unix",
    4: "VM/CMS",
    5: "Atari TOS",
    6: "HPFS filesystem (OS/2, NT)",
    7: "Macintosh",
    8: "Z-System",
    9: "CP/M",
    10: "TOPS-20",
    11: "NTFS filesystem (NT)",
    12: "QDOS",
    13: "Acorn RISCOS",
    255: "unknown",
}
OS_UNIX = 3

FLAG_NAMES = (
    (FTEXT, "FTEXT"),
    (FHCRC, "FHCRC"),
    (FEXTRA, "FEXTRA"),
    (FNAME, "FNAME"),
    (FCOMMENT, "FCOMMENT"),
)
RESERVED_FLAGS = 0xE0


class BadGzipHeader(gzip.BadGzipFile):
    """Base class for all errors raised while parsing a gzip header or
    trailer."""


class InvalidMagic(BadGzipHeader):
    pass


class TruncatedInput(BadGzipHeader):
    """The input ended before a field was complete.

    ``field`` names the field that was being read and ``offset`` is the
    stream position where that read started, or None when the stream could
    not report its position.
    """
    def __init__(self, message, *, field=None, offset=None):
        super().__init__(message)
        self.field = field
        self.offset = offset


class SeekOutOfRange(BadGzipHeader):
    pass


@dataclass(frozen=True)
class GzipHeader:
    id1: int
    id2: int
    compression_method: int
    flags: int
    mtime: int
    extra_flags: int
    os: int
    extra_length: Optional[int] = None

    @property
    def is_deflate(self) -> bool:
        return self.compression_method == 8

    @property
    def compression_method_name(self) -> str:
        return COMPRESSION_METHODS.get(self.compression_method, "unknown")

    @property
    def flag_names(self) -> List[str]:
        return [name for bit, name in FLAG_NAMES if self.flags & bit]

    @property
    def unknown_flags(self) -> int:
        """The reserved flag bits that are set. RFC 1952 requires these to
        be zero, but they are reported rather than rejected."""
        return self.flags & RESERVED_FLAGS

    @property
    def mtime_datetime(self) -> Optional[datetime.datetime]:
        if self.mtime == 0:
            return None
        return datetime.datetime.fromtimestamp(self.mtime,
                                               datetime.timezone.utc)

    @property
    def is_unix(self) -> bool:
        return self.os == OS_UNIX

    @property
    def os_name(self) -> str:
        return OPERATING_SYSTEMS.get(self.os, "unknown")


@dataclass(frozen=True)
class HeaderText:
    """A zero-terminated header string. ``raw`` excludes the terminator."""
    raw: bytes
    truncated: bool = False

    @property
    def text(self) -> str:
        # RFC 1952 specifies ISO 8859-1 for both FNAME and FCOMMENT.
        return self.raw.decode("latin-1")


@dataclass(frozen=True)
class OptionalFields:
    extra: Optional[bytes] = None
    filename: Optional[HeaderText] = None
    comment: Optional[HeaderText] = None
    header_crc: Optional[int] = None

    def extra_subfields(self) -> List[Tuple[bytes, bytes]]:
        """Split the extra field into (SI1 SI2, data) pairs as described in
        RFC 1952 section 2.3.1.1. BGZF files for instance carry a b"BC"
        subfield with the block size."""
        if self.extra is None:
            return []
        subfields = []
        pos = 0
        while pos < len(self.extra):
            if pos + 4 > len(self.extra):
                raise TruncatedInput(
                    "Extra field ended inside a subfield header",
                    field="extra subfield", offset=pos)
            subfield_id = self.extra[pos:pos + 2]
            length, = struct.unpack_from("<H", self.extra, pos + 2)
            start = pos + 4
            if start + length > len(self.extra):
                raise TruncatedInput(
                    f"Extra subfield {subfield_id!r} claims {length} bytes, "
                    f"only {len(self.extra) - start} left",
                    field="extra subfield", offset=pos)
            subfields.append((subfield_id, self.extra[start:start + length]))
            pos = start + length
        return subfields


@dataclass(frozen=True)
class GzipTrailer:
    crc32: int
    uncompressed_size: int


@dataclass(frozen=True)
class GzipInfo:
    header: GzipHeader
    optional: OptionalFields
    trailer: GzipTrailer
    # Offset of the first compressed block.
    data_offset: Optional[int]
