import sys
import builtins
import logging
from .fields import CATALOG
from .pager import Pager, PageStats, sniff_version
from .output import OutputCompressor, format_stats
from .errors import BlockSizeError, RecoverableFileError


__all__ = ("RelationFile", "open", "scan_files", "check_block_size", "DEFAULT_BLOCK_SIZE")

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 8192


def check_block_size(block_size):
    if block_size < CATALOG.header_size:
        raise BlockSizeError(
            "block size {} is smaller than page header size {}".format(block_size, CATALOG.header_size)
        )
    return block_size


class RelationFile:
    def __init__(self, fileobj, block_size=DEFAULT_BLOCK_SIZE, name=None):
        self.fileobj = fileobj
        self.name = name or getattr(fileobj, "name", "<file>")
        self.pager = Pager(fileobj, block_size)
        # (code, label) of the first decoded page
        self.version = None

    def __enter__(self):
        return self

    def __exit__(self, exc, value, traceback):
        self.close()

    @property
    def block_count(self):
        return self.pager.block_count

    def _sniff_version(self, page):
        if self.version is None:
            self.version = sniff_version(page.data)
            logger.info("%s: page layout version %d (%s)", self.name, *self.version)

    def _blocks(self, ranges):
        "Yield (page, is_last_of_range) and None at the end of every range"
        for r in ranges:
            resolved = r.resolve(self.block_count)
            if resolved is None:
                logger.warning("%s: range %r is outside of %d blocks", self.name, r, self.block_count)
                continue
            start, end = resolved
            logger.debug("%s: scan blocks %d-%d", self.name, start, end)
            for blkno in range(start, end + 1):
                page = self.pager.get_page(blkno)
                self._sniff_version(page)
                yield page, blkno == end
            yield None

    def scan(self, ranges, plan, write, compress=False, hex_index=False):
        "Write one rendered line per block of ranges"
        compressor = OutputCompressor(compress, hex_index)
        for item in self._blocks(ranges):
            if item is None:
                compressor.finish()
                compressor = OutputCompressor(compress, hex_index)
                continue
            page, is_last = item
            line = plan.render(page.decode(plan))
            for s in compressor.feed(page.blkno, is_last, line):
                write(s)

    def collect_stats(self, ranges):
        "Page size histogram of blocks in ranges"
        stats = PageStats()
        for item in self._blocks(ranges):
            if item is not None:
                page, _ = item
                stats.add(page.blkno, page.data)
        return stats

    def close(self):
        if self.pager.fileobj is not None:
            self.pager.close()


def open(fileobj, block_size=DEFAULT_BLOCK_SIZE):
    name = None
    if isinstance(fileobj, str):
        name = fileobj
        try:
            fileobj = builtins.open(fileobj, "rb")
        except OSError as e:
            raise RecoverableFileError("can't open: {}".format(e.strerror or e))
    try:
        return RelationFile(fileobj, block_size, name)
    except RecoverableFileError:
        fileobj.close()
        raise


def scan_files(paths, ranges, plan=None, stats=False, compress=False, hex_index=False,
               block_size=DEFAULT_BLOCK_SIZE, out=None):
    """Scan relation files one by one and write to out.
    A file which can't be read is skipped with a warning.
    Returns the list of skipped paths.
    """
    if out is None:
        out = sys.stdout
    skipped = []
    for path in paths:
        try:
            with open(path, block_size) as relation:
                if stats:
                    out.writelines(format_stats(relation.collect_stats(ranges)))
                else:
                    relation.scan(ranges, plan, out.write, compress, hex_index)
        except RecoverableFileError as e:
            logger.warning("%s: %s, skipped", path, e)
            skipped.append(path)
    return skipped
