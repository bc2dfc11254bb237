#!/usr/bin/env python3
import io
import os
import struct
import tempfile
import unittest
import contextlib

import pgheader
import printheader
from pgheader import fields, ranges, pager, output, errors


BLOCK_SIZE = 8192


def make_page(lsn_seg=1, lsn_off=2, tli=3, flags=4, lower=28, upper=8000, special=8192,
              pagesize_version=0x2004, prune_xid=9, block_size=BLOCK_SIZE):
    header = struct.pack(
        "<IIHHHHHHI", lsn_seg, lsn_off, tli, flags, lower, upper, special, pagesize_version, prune_xid
    )
    return header + b'\x00' * (block_size - len(header))


ALL_FIELDS_LINE = (
    " lsn_seg=1 lsn_off=2 tli=3 flags=4 lower=28 upper=8000 special=8192"
    " pagesize_version=8196 prune_xid=9"
)


class ShortReadIO(io.BytesIO):
    def read(self, size=-1):
        offset = self.tell()
        data = super().read(size)
        if offset >= BLOCK_SIZE:
            return data[:-1]
        return data


class TestFields(unittest.TestCase):
    def test_catalog(self):
        self.assertEqual(len(fields.CATALOG), 9)
        self.assertEqual(fields.CATALOG.header_size, 24)
        self.assertEqual(fields.CATALOG.expand("v"), ["pagesize_version"])
        self.assertEqual(fields.CATALOG.expand("all"), list(fields.CATALOG.names))

    def test_resolve_empty(self):
        self.assertEqual(fields.resolve([]), fields.resolve(["all"]))
        self.assertEqual(fields.resolve(None).names(), list(fields.CATALOG.names))

    def test_first_negated(self):
        plan = fields.resolve(["-lsn_seg"])
        self.assertEqual(
            plan.names(),
            ["lsn_off", "tli", "flags", "lower", "upper", "special", "pagesize_version", "prune_xid"]
        )

    def test_negated_not_first(self):
        self.assertEqual(fields.resolve(["tli", "-lsn_seg"]).names(), ["tli"])
        self.assertEqual(fields.resolve(["tli,lsn_seg", "-lsn_seg"]).names(), ["tli"])

    def test_later_token_wins(self):
        self.assertEqual(fields.resolve(["all,-tli,tli"]).names(), list(fields.CATALOG.names))
        self.assertEqual(fields.resolve(["-all", "x"]).names(), ["prune_xid"])

    def test_abbreviation(self):
        self.assertEqual(fields.resolve(["u,l"]).names(), ["lower", "upper"])
        self.assertEqual(fields.resolve(["-s,-o"]).names()[0], "tli")

    def test_unknown(self):
        with self.assertRaises(errors.UnknownFieldError) as cm:
            fields.resolve(["bogus"])
        self.assertEqual(cm.exception.names, ["bogus"])
        self.assertIn("bogus", str(cm.exception))

        with self.assertRaises(errors.UnknownFieldError) as cm:
            fields.resolve(["tli,bogus", "-nope", "bogus"])
        self.assertEqual(cm.exception.names, ["bogus", "nope"])
        self.assertIsInstance(cm.exception, errors.FatalConfigError)

    def test_canonical_order(self):
        data = make_page()
        for tokens in (["prune_xid,tli,lsn_seg"], ["lsn_seg", "tli", "prune_xid"], ["x,t,s"]):
            plan = fields.build_plan(fields.resolve(tokens))
            self.assertEqual(plan.render(pager.decode(data, plan)), " lsn_seg=1 tli=3 prune_xid=9")

    def test_build_plan(self):
        plan = fields.build_plan(fields.resolve(["tli"]))
        self.assertEqual(plan.size, 24)
        self.assertEqual(
            [type(step).__name__ for step in plan.steps],
            ["Skip", "Skip", "Decode", "Skip", "Skip", "Skip", "Skip", "Skip", "Skip"]
        )
        self.assertEqual([step.width for step in plan.steps], [4, 4, 2, 2, 2, 2, 2, 2, 4])
        self.assertEqual([name for name, _ in plan.template], ["tli"])

    def test_hex_fields(self):
        plan = fields.build_plan(fields.resolve(["s,t,v"]), hex_fields=True)
        self.assertEqual(
            plan.render(pager.decode(make_page(), plan)),
            " lsn_seg=00000001 tli=0003 pagesize_version=2004"
        )


class TestRanges(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(ranges.parse(["100"]), [ranges.Range(100, 100)])
        self.assertEqual(ranges.parse(["50-"]), [ranges.Range(50, None)])
        self.assertEqual(ranges.parse(["-10"]), [ranges.Range(None, 10)])
        self.assertEqual(ranges.parse(["0x10-0X20"]), [ranges.Range(16, 32)])
        self.assertEqual(ranges.parse(["-"]), [ranges.Range(None, None)])
        self.assertEqual(
            ranges.parse(["1,3-4", " 7 "]),
            [ranges.Range(1, 1), ranges.Range(3, 4), ranges.Range(7, 7)]
        )

    def test_parse_empty(self):
        self.assertEqual(ranges.parse([]), [ranges.Range(None, None)])
        self.assertEqual(ranges.parse(None), [ranges.Range(None, None)])
        self.assertEqual(ranges.parse([""]), [])
        self.assertEqual(ranges.parse(["", "5,,"]), [ranges.Range(5, 5)])

    def test_parse_order_kept(self):
        self.assertEqual(
            ranges.parse(["9", "1-2", "1-2"]),
            [ranges.Range(9, 9), ranges.Range(1, 2), ranges.Range(1, 2)]
        )

    def test_parse_error(self):
        for s in ("abc", "1-2-3", "0x", "20-10", "1 - 2", "0xg"):
            with self.assertRaises(errors.RangeSyntaxError, msg=s):
                ranges.parse([s])

    def test_resolve(self):
        self.assertEqual(ranges.parse(["50-"])[0].resolve(1000), (50, 999))
        self.assertEqual(ranges.parse(["-10"])[0].resolve(1000), (0, 10))
        self.assertEqual(ranges.Range(None, None).resolve(3), (0, 2))
        self.assertEqual(ranges.Range(5, 100).resolve(10), (5, 9))
        self.assertIsNone(ranges.Range(20, None).resolve(10))
        self.assertIsNone(ranges.Range(None, None).resolve(0))


class TestDecode(unittest.TestCase):
    def test_decode(self):
        plan = fields.build_plan(fields.resolve([]))
        self.assertEqual(pager.decode(make_page(), plan), (1, 2, 3, 4, 28, 8000, 8192, 0x2004, 9))

    def test_truncated(self):
        plan = fields.build_plan(fields.resolve([]))
        with self.assertRaises(errors.TruncatedPageError):
            pager.decode(make_page()[:23], plan)
        with self.assertRaises(errors.TruncatedPageError):
            pager.sniff_version(b'\x00' * 10)

    def test_sniff_version(self):
        self.assertEqual(pager.sniff_version(make_page(pagesize_version=0x2004)), (4, "8.3 or higher"))
        self.assertEqual(pager.sniff_version(make_page(pagesize_version=0x2000)), (0, "7.2 or lower"))
        self.assertEqual(pager.sniff_version(make_page(pagesize_version=0x2001)), (1, "7.3 or 7.4"))
        self.assertEqual(pager.sniff_version(make_page(pagesize_version=0x2002)), (2, "8.0"))
        self.assertEqual(pager.sniff_version(make_page(pagesize_version=0x2003)), (3, "8.1"))
        self.assertEqual(pager.sniff_version(make_page(pagesize_version=0x2007)), (7, "unknown"))

    def test_page_stats(self):
        stats = pager.PageStats()
        stats.add(0, make_page(pagesize_version=0x2004))
        stats.add(1, make_page(pagesize_version=0x1004))
        stats.add(2, make_page(pagesize_version=0x2004))
        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.items(), [(8192, 2, 0), (4096, 1, 1)])


class TestOutput(unittest.TestCase):
    def test_block_label(self):
        self.assertEqual(output.block_label(0), "       0:")
        self.assertEqual(output.block_label(16, hex_index=True), "00000010:")

    def test_repeat_marker(self):
        self.assertEqual(output.repeat_marker(1), "(repeats 1 time)\n")
        self.assertEqual(output.repeat_marker(2), "(repeats 2 times)\n")

    def test_verbose(self):
        compressor = output.OutputCompressor()
        self.assertEqual(compressor.feed(0, False, " a=1"), ["       0: a=1\n"])
        self.assertEqual(compressor.feed(1, True, " a=1"), ["       1: a=1\n"])
        compressor.finish()

    def test_compress(self):
        compressor = output.OutputCompressor(compress=True)
        out = []
        for blkno in range(5, 10):
            out.extend(compressor.feed(blkno, False, " a=1"))
        out.extend(compressor.feed(10, True, " a=2"))
        compressor.finish()
        self.assertEqual(out, ["       5: a=1\n", "(repeats 4 times)\n", "      10: a=2\n"])

    def test_compress_singular(self):
        compressor = output.OutputCompressor(compress=True)
        out = []
        out.extend(compressor.feed(0, False, " a=1"))
        out.extend(compressor.feed(1, False, " a=1"))
        out.extend(compressor.feed(2, True, " a=2"))
        self.assertEqual(out, ["       0: a=1\n", "(repeats 1 time)\n", "       2: a=2\n"])

    def test_compress_last_block(self):
        compressor = output.OutputCompressor(compress=True, hex_index=True)
        out = []
        for blkno in range(4):
            out.extend(compressor.feed(blkno, blkno == 3, " a=1"))
        compressor.finish()
        self.assertEqual(out, ["00000000: a=1\n", "(repeats 2 times)\n", "00000003: a=1\n"])

    def test_finish_residual(self):
        compressor = output.OutputCompressor(compress=True)
        compressor.feed(0, False, " a=1")
        compressor.feed(1, False, " a=1")
        with self.assertRaises(errors.CompressorStateError):
            compressor.finish()

    def test_format_stats(self):
        stats = pager.PageStats()
        stats.add(0, make_page())
        self.assertEqual(
            output.format_stats(stats),
            ["page size 8192: 1 pages, first seen at block 0\n", "total pages: 1\n"]
        )


class TestBase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_file(self, name, data):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "wb") as f:
            f.write(data)
        return path


class TestScan(TestBase):
    def test_three_blocks(self):
        relation = pgheader.open(io.BytesIO(make_page() * 3))
        out = io.StringIO()
        plan = fields.build_plan(fields.resolve([]))
        relation.scan(ranges.parse([]), plan, out.write)
        relation.close()

        lines = out.getvalue().splitlines()
        self.assertEqual(len(lines), 3)
        self.assertEqual([line.split(":")[0].strip() for line in lines], ["0", "1", "2"])
        self.assertEqual({line.split(":", 1)[1] for line in lines}, {ALL_FIELDS_LINE})

    def test_mapped_file(self):
        path = self.write_file("16385", make_page() + make_page(tli=7) + make_page())
        plan = fields.build_plan(fields.resolve(["tli"]))
        out = io.StringIO()
        with pgheader.open(path) as relation:
            self.assertIsNotNone(relation.pager.map)
            self.assertEqual(relation.block_count, 3)
            relation.scan(ranges.parse(["2,0-1"]), plan, out.write)
            self.assertEqual(relation.version, (4, "8.3 or higher"))
        self.assertEqual(out.getvalue(), "       2: tli=3\n       0: tli=3\n       1: tli=7\n")

    def test_clamped_range(self):
        relation = pgheader.open(io.BytesIO(make_page() * 2))
        out = io.StringIO()
        plan = fields.build_plan(fields.resolve(["t"]))
        relation.scan(ranges.parse(["1-100"]), plan, out.write)
        self.assertEqual(out.getvalue(), "       1: tli=3\n")

    def test_range_outside(self):
        relation = pgheader.open(io.BytesIO(make_page() * 2))
        out = io.StringIO()
        plan = fields.build_plan(fields.resolve(["t"]))
        with self.assertLogs("pgheader", level="WARNING"):
            relation.scan(ranges.parse(["5-"]), plan, out.write)
        self.assertEqual(out.getvalue(), "")

    def test_compress_per_range(self):
        data = make_page() * 4 + make_page(tli=9)
        relation = pgheader.open(io.BytesIO(data))
        out = io.StringIO()
        plan = fields.build_plan(fields.resolve(["tli"]))
        relation.scan(ranges.parse(["0-4", "1-2"]), plan, out.write, compress=True)
        self.assertEqual(
            out.getvalue(),
            "       0: tli=3\n(repeats 3 times)\n       4: tli=9\n"
            "       1: tli=3\n       2: tli=3\n"
        )

    def test_stats(self):
        data = make_page() + make_page(pagesize_version=0x1004) + make_page()
        path = self.write_file("16386", data)
        out = io.StringIO()
        skipped = pgheader.scan_files([path], ranges.parse([]), stats=True, out=out)
        self.assertEqual(skipped, [])
        self.assertEqual(
            out.getvalue(),
            "page size 8192: 2 pages, first seen at block 0\n"
            "page size 4096: 1 pages, first seen at block 1\n"
            "total pages: 3\n"
        )

    def test_skip_files(self):
        bad_size = self.write_file("bad_size", make_page() + b'\x00')
        missing = os.path.join(self.tmpdir.name, "missing")
        good = self.write_file("good", make_page())
        plan = fields.build_plan(fields.resolve(["tli"]))
        out = io.StringIO()
        with self.assertLogs("pgheader", level="WARNING") as cm:
            skipped = pgheader.scan_files([bad_size, missing, good], ranges.parse([]), plan, out=out)
        self.assertEqual(skipped, [bad_size, missing])
        self.assertEqual(len(cm.records), 2)
        self.assertEqual(out.getvalue(), "       0: tli=3\n")

    def test_short_read(self):
        fileobj = ShortReadIO(make_page() * 3)
        plan = fields.build_plan(fields.resolve(["tli"]))
        out = io.StringIO()
        with self.assertLogs("pgheader", level="WARNING"):
            skipped = pgheader.scan_files([fileobj], ranges.parse([]), plan, out=out)
        self.assertEqual(skipped, [fileobj])
        self.assertEqual(out.getvalue(), "       0: tli=3\n")

    def test_block_size(self):
        self.assertEqual(pgheader.check_block_size(4096), 4096)
        with self.assertRaises(errors.BlockSizeError):
            pgheader.check_block_size(16)
        relation = pgheader.open(io.BytesIO(make_page(block_size=1024) * 8), 1024)
        self.assertEqual(relation.block_count, 8)


class TestMain(TestBase):
    def run_main(self, argv):
        out = io.StringIO()
        err = io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            status = printheader.main(argv)
        return status, out.getvalue(), err.getvalue()

    def test_main(self):
        path = self.write_file("16387", make_page() * 3)
        status, out, _ = self.run_main([path, "-f", "tli,-tli", "-f", "upper,lower", "-X", "-x", "-c"])
        self.assertEqual(status, 0)
        self.assertEqual(
            out,
            "00000000: lower=001c upper=1f40\n(repeats 1 time)\n00000002: lower=001c upper=1f40\n"
        )

    def test_main_stats(self):
        path = self.write_file("16388", make_page() * 2)
        status, out, _ = self.run_main([path, "--stats", "-r", "1"])
        self.assertEqual(status, 0)
        self.assertEqual(out, "page size 8192: 1 pages, first seen at block 1\ntotal pages: 1\n")

    def test_main_fatal(self):
        path = self.write_file("16389", make_page())
        status, out, err = self.run_main([path, "-f", "bogus,tli,nope"])
        self.assertEqual(status, 1)
        self.assertEqual(out, "")
        self.assertIn("bogus, nope", err)

        status, out, err = self.run_main([path, "-r", "abc"])
        self.assertEqual(status, 1)
        self.assertEqual(out, "")

        status, out, err = self.run_main([path, "-b", "8"])
        self.assertEqual(status, 1)


if __name__ == "__main__":
    unittest.main()
