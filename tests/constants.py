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

import struct
import zlib

from ubnttool.image import MAGIC_END, MAGIC_HEADER

VERSION = b"1.2.3"
KERNEL_PAYLOAD = bytes(i % 256 for i in range(1024))


def section(name, payload, memaddr=0x80002000, index=1, baseaddr=0x80002000,
            entryaddr=0x80002000, part_size=None, crc=None):
    """Descriptor, payload and checksum record of one section"""
    if part_size is None:
        part_size = len(payload)
    descriptor = struct.pack('>16s12s6I', name, b'\0' * 12, memaddr, index,
                             baseaddr, entryaddr, len(payload), part_size)
    if crc is None:
        crc = zlib.crc32(descriptor + payload)
    return descriptor + payload + struct.pack('>II', crc, 0)


def build_image(sections=(), version=VERSION, header_crc=None,
                sign_crc=None):
    if header_crc is None:
        header_crc = zlib.crc32(MAGIC_HEADER + version.ljust(256, b'\0'))
    b = MAGIC_HEADER + struct.pack('>256sII', version, header_crc, 0)
    b += b''.join(sections)
    if sign_crc is None:
        sign_crc = zlib.crc32(b)
    return b + MAGIC_END + struct.pack('>II', sign_crc, 0)


def kernel_image():
    return build_image([section(b"kernel", KERNEL_PAYLOAD)])


def write_image(tmp_path, data, name="image.bin"):
    path = tmp_path / name
    path.write_bytes(data)
    return path
