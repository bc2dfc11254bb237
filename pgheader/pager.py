import io
import mmap
import struct
import logging

from .fields import CATALOG, resolve, build_plan
from .errors import RecoverableFileError, TruncatedPageError


__all__ = ("Page", "Pager", "decode", "sniff_version", "PageStats", "VERSION_LABELS")

logger = logging.getLogger(__name__)

# lsn_seg, lsn_off, tli, flags, lower, upper, special, pagesize_version
_VERSION_STRUCT = struct.Struct("<IIHHHHHH")

VERSION_LABELS = {
    0: "7.2 or lower",
    1: "7.3 or 7.4",
    2: "8.0",
    3: "8.1",
    4: "8.3 or higher",
}

PAGE_SIZE_MASK = 0xFF00

_FULL_PLAN = build_plan(resolve(["all"]))
_PAGESIZE_VERSION_INDEX = CATALOG.names.index("pagesize_version")


def decode(data, plan):
    "Decode header field values of page data by DecodePlan"
    if len(data) < plan.size:
        raise TruncatedPageError("page has {} bytes, header needs {}".format(len(data), plan.size))
    return plan.unpack(data)


def sniff_version(data):
    "Get (layout version code, label) from the page header"
    if len(data) < _VERSION_STRUCT.size:
        raise TruncatedPageError("page has {} bytes, header needs {}".format(len(data), _VERSION_STRUCT.size))
    code = _VERSION_STRUCT.unpack_from(data, 0)[-1] & 0xFF
    return code, VERSION_LABELS.get(code, "unknown")


class PageStats:
    """Page count and page size histogram of visited blocks.
    The page size is the high byte part of pagesize_version.
    """
    def __init__(self):
        self.total = 0
        self.sizes = {}         # page size -> [count, first block]

    def add(self, blkno, data):
        values = decode(data, _FULL_PLAN)
        size = values[_PAGESIZE_VERSION_INDEX] & PAGE_SIZE_MASK
        self.total += 1
        if size in self.sizes:
            self.sizes[size][0] += 1
        else:
            self.sizes[size] = [1, blkno]

    def items(self):
        "(page size, count, first block) in first seen order"
        return [(size, count, first) for size, (count, first) in self.sizes.items()]


class Page:
    def __init__(self, pager, blkno, data):
        self.pager = pager
        self.blkno = blkno
        self.data = bytes(data)

    def decode(self, plan):
        return decode(self.data, plan)

    def __str__(self):
        return "block{}".format(self.blkno)


class Pager:
    """Read only block access to a relation file.
    Real files are memory mapped, other file objects are read by seek().
    """
    def __init__(self, fileobj, block_size):
        self.fileobj = fileobj
        self.block_size = block_size
        self.map = None

        self.fileobj.seek(0, 2)
        file_size = self.fileobj.tell()
        if file_size % self.block_size != 0:
            raise RecoverableFileError(
                "file size {} is not a multiple of block size {}".format(file_size, self.block_size)
            )
        self.block_count = file_size // self.block_size

        if file_size:
            try:
                fileno = self.fileobj.fileno()
            except (AttributeError, io.UnsupportedOperation):
                fileno = None
            if fileno is not None:
                try:
                    self.map = mmap.mmap(fileno, 0, access=mmap.ACCESS_READ)
                except OSError as e:
                    raise RecoverableFileError("can't map file: {}".format(e))
        logger.debug("%d blocks of %d bytes", self.block_count, self.block_size)

    def get_page(self, blkno):
        "get blkno page"
        if not 0 <= blkno < self.block_count:
            raise IndexError("block {} out of range".format(blkno))
        offset = blkno * self.block_size
        if self.map is not None:
            data = self.map[offset:offset + self.block_size]
        else:
            try:
                self.fileobj.seek(offset, 0)
                data = self.fileobj.read(self.block_size)
            except OSError as e:
                raise RecoverableFileError("read error at block {}: {}".format(blkno, e))
        if len(data) != self.block_size:
            raise RecoverableFileError(
                "short read at block {}: {} of {} bytes".format(blkno, len(data), self.block_size)
            )
        return Page(self, blkno, data)

    def close(self):
        if self.map is not None:
            self.map.close()
            self.map = None
        self.fileobj.close()
        self.fileobj = None
