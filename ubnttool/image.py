# Copyright 2026 The ubnttool authors
#
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
UBNT firmware image layout and sequential decoding.

An image is a header magic, a fixed header record, any number of
descriptor/payload/checksum section triples and a signature record that
follows the end magic.  All integers are big-endian u32.  Sections are
found by scanning forward: the first four bytes of a section name double
as the tag that is compared against the end magic.
"""
import io
import os
import struct
import zlib
from collections import namedtuple

from intelhex import IntelHex, IntelHexError

MAGIC_HEADER = b"UBNT"
MAGIC_END = b"END."
MAGIC_LEN = 4
HEADER_VERSION_MAXLEN = 256
SECTION_NAME_MAXLEN = 16
SECTION_PAD_LEN = 12

# Room a section needs below the destination directory: "/" + name + ".bin"
FILE_SECTION_MAXLEN = SECTION_NAME_MAXLEN + 5
FILE_PATH_MAXLEN = 255

COPY_CHUNK_SIZE = 64 * 1024
# Intel HEX output addresses are 32-bit
HEX_ADDRESS_LIMIT = 0x100000000
BIN_EXT = "bin"
INTEL_HEX_EXT = "hex"

HEADER_FMT = '>{}sII'.format(HEADER_VERSION_MAXLEN)
SECTION_FMT = '>{}s{}s6I'.format(SECTION_NAME_MAXLEN, SECTION_PAD_LEN)
CRC_FMT = '>II'

HEADER_SIZE = struct.calcsize(HEADER_FMT)
SECTION_SIZE = struct.calcsize(SECTION_FMT)
SECTION_CRC_SIZE = struct.calcsize(CRC_FMT)
SIGNATURE_SIZE = struct.calcsize(CRC_FMT)


class ImageError(Exception):
    pass


class MalformedImage(ImageError):
    pass


class NotAnImage(MalformedImage):
    pass


class TruncatedStream(MalformedImage):
    pass


class PathTooLong(ImageError):
    pass


class UnsafeSectionName(ImageError):
    pass


class AddressOutOfRange(ImageError):
    pass


class _Checksummed:
    __slots__ = ()

    @property
    def crc_ok(self):
        """False only when a CRC was computed and it differs"""
        return self.computed_crc is None or self.computed_crc == self.crc


class Header(_Checksummed,
             namedtuple('Header', ['version', 'crc', 'pad', 'computed_crc'],
                        defaults=(None,))):
    __slots__ = ()


class SectionCrc(_Checksummed,
                 namedtuple('SectionCrc', ['crc', 'pad', 'computed_crc'],
                            defaults=(None,))):
    __slots__ = ()


class Signature(_Checksummed,
                namedtuple('Signature', ['crc', 'pad', 'computed_crc'],
                           defaults=(None,))):
    __slots__ = ()


class Section(namedtuple('Section', ['name', 'pad', 'memaddr', 'index',
                                     'baseaddr', 'entryaddr', 'data_size',
                                     'part_size', 'offset'])):
    __slots__ = ()

    @property
    def payload_offset(self):
        return self.offset + SECTION_SIZE


def display_text(buf):
    """Render a NUL padded byte buffer for display.

    Trailing padding is dropped and every byte that is not an ASCII letter
    or digit, embedded NULs included, is shown as '.'.
    """
    return ''.join(chr(b) if bytes([b]).isalnum() else '.'
                   for b in buf.rstrip(b'\0'))


def to_kb(size):
    return size // 1024


def to_mb(size):
    # Computed from the truncated KB value, not from the byte count.
    return to_kb(size) / 1024


def format_size(size):
    return "{} bytes (KB = {:.1f}) (MB = {:.1f})".format(
        size, to_kb(size), to_mb(size))


def format_crc(record):
    text = "0x{:08x}".format(record.crc)
    if record.computed_crc is None:
        return text
    if record.crc_ok:
        return text + " (OK)"
    return text + " (BAD, computed 0x{:08x})".format(record.computed_crc)


def open_image(path):
    """Open an image for reading; Intel HEX files are decoded in memory"""
    ext = os.path.splitext(path)[1][1:].lower()
    if ext == INTEL_HEX_EXT:
        try:
            return io.BytesIO(IntelHex(path).tobinstr())
        except IntelHexError as e:
            raise MalformedImage(
                "Invalid Intel HEX image ({}): {}".format(path, e))
    return open(path, 'rb')


def _remaining_size(f):
    if not f.seekable():
        return None
    pos = f.tell()
    end = f.seek(0, os.SEEK_END)
    f.seek(pos)
    return end - pos


class ImageReader:
    """Forward-only cursor over an image stream.

    Every read is exact: fewer bytes than a record or payload needs raises
    TruncatedStream.  With checksum=True the reader keeps the CRC-32 of
    everything consumed so far and of the current section, so that stored
    CRCs can be compared against the bytes actually read.
    """

    def __init__(self, f, checksum=False):
        self.f = f
        self.checksum = checksum
        self.offset = 0
        self.size = _remaining_size(f)
        self.stream_crc = 0
        self.part_crc = 0
        self._tag_crc = 0

    def _account(self, data):
        self.offset += len(data)
        if self.checksum:
            self.stream_crc = zlib.crc32(data, self.stream_crc)
            self.part_crc = zlib.crc32(data, self.part_crc)

    def _truncated(self, what, offset, size, got):
        return TruncatedStream(
            "Truncated image: {} at offset {:#x} needs {} bytes, "
            "only {} available".format(what, offset, size, got))

    def read(self, size, what):
        offset = self.offset
        chunks = []
        remaining = size
        while remaining:
            chunk = self.f.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b''.join(chunks)
        self._account(data)
        if remaining:
            raise self._truncated(what, offset, size, len(data))
        return data

    def read_header(self):
        magic = self.read(MAGIC_LEN, "image magic")
        if magic != MAGIC_HEADER:
            raise NotAnImage(
                "Invalid image magic {!r}; is this a UBNT image?".format(magic))
        version, crc, pad = struct.unpack(
            HEADER_FMT, self.read(HEADER_SIZE, "image header"))
        computed = zlib.crc32(magic + version) if self.checksum else None
        return Header(version, crc, pad, computed)

    def read_tag(self):
        self._tag_crc = self.stream_crc
        self.part_crc = 0
        return self.read(MAGIC_LEN, "section tag")

    def read_section(self, tag):
        """Read the rest of a descriptor whose first bytes are tag"""
        offset = self.offset - len(tag)
        rest = self.read(SECTION_SIZE - len(tag), "section descriptor")
        return Section(*struct.unpack(SECTION_FMT, tag + rest), offset=offset)

    def iter_payload(self, section, hasher=None):
        """Yield the payload of section in chunks of at most COPY_CHUNK_SIZE.

        The caller must exhaust the iterator before reading further.
        """
        offset = self.offset
        remaining = section.data_size
        while remaining:
            chunk = self.f.read(min(remaining, COPY_CHUNK_SIZE))
            if not chunk:
                raise self._truncated("section payload", offset,
                                      section.data_size,
                                      section.data_size - remaining)
            self._account(chunk)
            if hasher is not None:
                hasher.update(chunk)
            remaining -= len(chunk)
            yield chunk

    def skip_payload(self, section, hasher=None):
        size = section.data_size
        if hasher is None and not self.checksum and self.size is not None:
            available = self.size - self.offset
            if size > available:
                raise self._truncated("section payload", self.offset, size,
                                      available)
            self.f.seek(size, os.SEEK_CUR)
            self.offset += size
            return
        for _ in self.iter_payload(section, hasher):
            pass

    def read_section_crc(self):
        computed = self.part_crc if self.checksum else None
        crc, pad = struct.unpack(
            CRC_FMT, self.read(SECTION_CRC_SIZE, "section checksum"))
        return SectionCrc(crc, pad, computed)

    def read_signature(self):
        # The signature covers everything before the end magic.
        computed = self._tag_crc if self.checksum else None
        crc, pad = struct.unpack(
            CRC_FMT, self.read(SIGNATURE_SIZE, "signature"))
        return Signature(crc, pad, computed)


class ImageDecoder:
    """Walk an image from its header magic to its signature.

    Subclasses override the on_* hooks.  on_section() must consume exactly
    section.data_size payload bytes through self.reader; the default skips
    them.
    """

    def __init__(self, f, verify=False):
        self.reader = ImageReader(f, checksum=verify)
        self.verify = verify
        self.sections = 0
        self.crc_errors = []

    def run(self):
        header = self.reader.read_header()
        self._check(header, "header")
        self.on_header(header)

        while True:
            tag = self.reader.read_tag()
            if tag == MAGIC_END:
                signature = self.reader.read_signature()
                self._check(signature, "signature")
                self.on_signature(signature)
                return

            section = self.reader.read_section(tag)
            self.sections += 1
            self.on_section(section)
            crc = self.reader.read_section_crc()
            self._check(crc, "section " + display_text(section.name))
            self.on_section_crc(section, crc)

    def _check(self, record, what):
        if not record.crc_ok:
            self.crc_errors.append(what)

    def on_header(self, header):
        pass

    def on_section(self, section):
        self.reader.skip_payload(section)

    def on_section_crc(self, section, crc):
        pass

    def on_signature(self, signature):
        pass
