#!/usr/bin/env python3
################################################################################
# MIT License
#
# Copyright (c) 2023, 2024 Hajime Nakagami<nakagami@gmail.com>
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
################################################################################
"""print page header fields of relation file blocks
"""
import sys
import logging
import argparse

import pgheader
from pgheader import fields, ranges, errors


def _block_size(s):
    try:
        n = int(s, 0)
    except ValueError:
        raise argparse.ArgumentTypeError("invalid block size: {!r}".format(s))
    if n <= 0:
        raise argparse.ArgumentTypeError("block size must be positive: {!r}".format(s))
    return n


def get_parser():
    parser = argparse.ArgumentParser(
        prog="printheader",
        description="Print page header fields of relation file blocks",
    )
    parser.add_argument("paths", nargs="+", metavar="PATH", help="relation file")
    parser.add_argument(
        "-b", "--block-size", type=_block_size, default=pgheader.DEFAULT_BLOCK_SIZE,
        help="block size in bytes (default: %(default)s)",
    )
    parser.add_argument(
        "-f", "--fields", action="append", default=[], metavar="LIST",
        help="comma separated field names or abbreviations, `-` prefix excludes, `all` for every field",
    )
    parser.add_argument(
        "-r", "--range", action="append", default=[], dest="ranges", metavar="RANGE",
        help="block range N, N-, -N or N-M, numbers in decimal or 0x hex",
    )
    parser.add_argument("-x", "--hex-index", action="store_true", help="print block numbers in hex")
    parser.add_argument("-X", "--hex-fields", action="store_true", help="print field values in hex")
    parser.add_argument("-c", "--compress", action="store_true", help="collapse repeated identical blocks")
    parser.add_argument("-s", "--stats", action="store_true", help="print page size statistics only")
    parser.add_argument("-d", "--debug", action="store_true", help="print debug trace")
    return parser


def main(argv=None):
    args = get_parser().parse_args(argv)
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        pgheader.check_block_size(args.block_size)
        plan = fields.build_plan(fields.resolve(args.fields), args.hex_fields)
        block_ranges = ranges.parse(args.ranges)
        pgheader.scan_files(
            args.paths,
            block_ranges,
            plan,
            stats=args.stats,
            compress=args.compress,
            hex_index=args.hex_index,
            block_size=args.block_size,
        )
    except errors.Error as e:
        print("printheader: {}".format(e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
