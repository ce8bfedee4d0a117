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
Write section payloads of an image to individual files.
"""
import os

import click
from intelhex import IntelHex

from ubnttool.image import (
    BIN_EXT, FILE_PATH_MAXLEN, FILE_SECTION_MAXLEN, HEX_ADDRESS_LIMIT,
    INTEL_HEX_EXT, AddressOutOfRange, ImageDecoder, ImageError, PathTooLong,
    TruncatedStream, UnsafeSectionName, display_text, open_image)


def check_location(location):
    """Make sure location is an existing directory with room for a section"""
    if len(os.fsencode(location)) > FILE_PATH_MAXLEN - FILE_SECTION_MAXLEN:
        raise PathTooLong("location path too long ({})".format(location))
    # Raises the usual OSError when the directory cannot be opened.
    with os.scandir(location):
        pass


def section_filename(name):
    """File name of a section: its name field up to the first NUL"""
    raw = name.split(b'\0', 1)[0]
    for sep in (os.sep, os.altsep):
        if sep and os.fsencode(sep) in raw:
            raise UnsafeSectionName(
                "Section name {!r} contains a path separator".format(raw))
    return os.fsdecode(raw)


def section_path(section, location=None, ext=BIN_EXT):
    filename = "{}.{}".format(section_filename(section.name), ext)
    path = os.path.join(location, filename) if location else filename
    if len(os.fsencode(path)) > FILE_PATH_MAXLEN:
        raise PathTooLong("Output path too long ({})".format(path))
    return path


class Extractor(ImageDecoder):
    """Stream each section payload into <location>/<name>.<ext>.

    Sections sharing a name overwrite each other; the last one wins.
    """

    def __init__(self, f, location=None, fmt=BIN_EXT, verify=False):
        super().__init__(f, verify)
        self.location = location
        self.fmt = fmt
        self.extracted = {}

    def on_section(self, section):
        path = section_path(section, self.location, self.fmt)
        name = display_text(section.name)
        if path in self.extracted:
            print("Warning: section {} at offset {:#x} overwrites {} "
                  "from offset {:#x}".format(name, section.offset, path,
                                             self.extracted[path]))

        print("Extracting {} to {}...".format(name, path), end="")
        try:
            if self.fmt == INTEL_HEX_EXT:
                self._write_hex(section, path)
            else:
                self._write_bin(section, path)
        except (ImageError, OSError):
            print("failed")
            raise
        print("done")
        self.extracted[path] = section.offset

    def _write_bin(self, section, path):
        try:
            with open(path, 'wb') as out:
                for chunk in self.reader.iter_payload(section):
                    out.write(chunk)
        except TruncatedStream:
            os.remove(path)
            raise

    def _write_hex(self, section, path):
        # Grows with the bytes actually present, not with data_size.
        data = bytearray()
        for chunk in self.reader.iter_payload(section):
            data += chunk
        if section.memaddr + len(data) > HEX_ADDRESS_LIMIT:
            raise AddressOutOfRange(
                "Section {} at {:#x} with {} bytes does not fit a 32-bit "
                "Intel HEX address space".format(display_text(section.name),
                                                 section.memaddr, len(data)))
        h = IntelHex()
        h.frombytes(bytes=data, offset=section.memaddr)
        try:
            h.tofile(path, 'hex')
        except OSError:
            if os.path.exists(path):
                os.remove(path)
            raise

    def on_section_crc(self, section, crc):
        if not crc.crc_ok:
            print("Warning: section {} CRC mismatch (stored 0x{:08x}, "
                  "computed 0x{:08x})".format(display_text(section.name),
                                              crc.crc, crc.computed_crc))

    def on_header(self, header):
        if not header.crc_ok:
            print("Warning: header CRC mismatch (stored 0x{:08x}, "
                  "computed 0x{:08x})".format(header.crc, header.computed_crc))

    def on_signature(self, signature):
        if not signature.crc_ok:
            print("Warning: signature CRC mismatch (stored 0x{:08x}, "
                  "computed 0x{:08x})".format(signature.crc,
                                              signature.computed_crc))


def extract_image(imgfile, location=None, fmt=BIN_EXT, verify=False):
    """Extract every section of an image, failing on the first error."""
    try:
        f = open_image(imgfile)
    except FileNotFoundError:
        raise click.UsageError("Image file not found ({})".format(imgfile))

    with f:
        if location is not None:
            check_location(location)
        print("\nImage file: {}\n".format(imgfile))
        extractor = Extractor(f, location=location, fmt=fmt, verify=verify)
        extractor.run()

    return extractor
