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
Parse and print header, section and signature information of an image.
"""
import click
import yaml
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes

from ubnttool.extract import check_location
from ubnttool.image import (
    ImageDecoder, display_text, format_crc, format_size, open_image)


class InfoDumper(ImageDecoder):
    """Report every record of an image without buffering payloads."""

    def __init__(self, f, verify=False, digest=False, silent=False):
        super().__init__(f, verify)
        self.digest = digest
        self.silent = silent
        self.imgdata = {"header": {},
                        "sections": [],
                        "signature": {}}

    def echo(self, *args):
        if not self.silent:
            print(*args)

    def on_header(self, header):
        version = display_text(header.version)
        self.echo("Version:", version)
        self.echo("Header CRC:", format_crc(header))
        self.echo()
        self.imgdata["header"] = {"version": version, "crc": header.crc}

    def on_section(self, section):
        name = display_text(section.name)
        self.echo("section:", name)
        self.echo("Mem addr: 0x{:08x}".format(section.memaddr))
        self.echo("Index: 0x{:08x}".format(section.index))
        self.echo("Base addr: 0x{:08x}".format(section.baseaddr))
        self.echo("Entry addr: 0x{:08x}".format(section.entryaddr))
        self.echo("Data size:", format_size(section.data_size))
        self.echo("Part size:", format_size(section.part_size))

        entry = {"name": name,
                 "offset": section.offset,
                 "memaddr": section.memaddr,
                 "index": section.index,
                 "baseaddr": section.baseaddr,
                 "entryaddr": section.entryaddr,
                 "data_size": section.data_size,
                 "part_size": section.part_size}

        hasher = None
        if self.digest:
            hasher = hashes.Hash(hashes.SHA256(), backend=default_backend())
        self.reader.skip_payload(section, hasher)
        if hasher is not None:
            digest = hasher.finalize().hex()
            self.echo("Payload SHA256:", digest)
            entry["sha256"] = digest
        self.imgdata["sections"].append(entry)

    def on_section_crc(self, section, crc):
        self.echo("Section CRC:", format_crc(crc))
        self.echo()
        self.imgdata["sections"][-1]["crc"] = crc.crc

    def on_signature(self, signature):
        self.echo("Sign CRC:", format_crc(signature))
        self.echo()
        self.imgdata["signature"] = {"crc": signature.crc}


def dump_imginfo(imgfile, outfile=None, silent=False, verify=False,
                 digest=False, location=None):
    """Parse an image and print/save the available information."""
    try:
        f = open_image(imgfile)
    except FileNotFoundError:
        raise click.UsageError("Image file not found ({})".format(imgfile))

    with f:
        if location is not None:
            check_location(location)
        if not silent:
            print("\nImage file: {}\n".format(imgfile))
        dumper = InfoDumper(f, verify=verify, digest=digest, silent=silent)
        dumper.run()

    if outfile is not None:
        with open(outfile, "w") as outf:
            # sort_keys - from pyyaml 5.1
            yaml.dump(dumper.imgdata, outf, sort_keys=False)

    return dumper
