#! /usr/bin/env python3
#
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

import sys

import click

from ubnttool import ubnttool_version
from ubnttool.dumpinfo import dump_imginfo
from ubnttool.extract import extract_image
from ubnttool.image import BIN_EXT, INTEL_HEX_EXT, ImageError

MIN_PYTHON_VERSION = (3, 7)
if sys.version_info < MIN_PYTHON_VERSION:
    sys.exit("Python %s.%s or newer is required by ubnttool."
             % MIN_PYTHON_VERSION)

valid_formats = [BIN_EXT, INTEL_HEX_EXT]


def describe_oserror(e):
    if e.filename is not None and e.strerror:
        return "{}: {}".format(e.filename, e.strerror)
    return str(e)


@click.argument('imgfile')
@click.option('-s', '--silent', default=False, is_flag=True,
              help='Do not print image information to output')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save image information to outfile in YAML format')
@click.option('--digest', default=False, is_flag=True,
              help='Print the SHA256 digest of each section payload')
@click.option('--verify', default=False, is_flag=True,
              help='Check the header, section and signature CRC-32 values')
@click.option('-f', '--format', 'fmt', type=click.Choice(valid_formats),
              help='Format of extracted sections: {}. Default value is {}.'
                   .format(', '.join(valid_formats), valid_formats[0]))
@click.option('-C', '--location', metavar='location',
              help='Directory to extract sections into; checked in both '
                   'modes')
@click.option('-x', '--extract', default=False, is_flag=True,
              help='Extract image content')
@click.option('-i', '--info', default=False, is_flag=True,
              help='Print image info [default option]')
@click.version_option(ubnttool_version, '--version', message='%(version)s',
                      help='Print ubnttool version information')
@click.command(help='Print information about a UBNT firmware image or '
                    'extract its sections',
               context_settings=dict(help_option_names=['-h', '--help']))
def ubnttool(info, extract, location, fmt, verify, digest, outfile, silent,
             imgfile):
    if info and extract:
        raise click.UsageError('Please use only one of `--info/-i` '
                               'or `--extract/-x`')
    if extract:
        if outfile or silent or digest:
            raise click.UsageError('`--outfile`, `--silent` and `--digest` '
                                   'only apply to `--info/-i`')
    elif fmt is not None:
        raise click.UsageError('`--format/-f` only applies to '
                               '`--extract/-x`')

    try:
        if extract:
            decoder = extract_image(imgfile, location, fmt or BIN_EXT, verify)
        else:
            decoder = dump_imginfo(imgfile, outfile, silent, verify, digest,
                                   location)
    except ImageError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise click.ClickException(describe_oserror(e))

    if decoder.crc_errors:
        raise click.ClickException("Image failed CRC verification: {}"
                                   .format(", ".join(decoder.crc_errors)))


if __name__ == '__main__':
    ubnttool()
