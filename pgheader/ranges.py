import re
import logging
from collections import namedtuple

from .errors import RangeSyntaxError


__all__ = ("Range", "parse")

logger = logging.getLogger(__name__)

_NUMBER = r"(0[xX][0-9a-fA-F]+|[0-9]+)"
_RANGE_RE = re.compile(r"^{0}?(-)?{0}?$".format(_NUMBER))


def _to_int(s):
    if s is None:
        return None
    if s[:2] in ("0x", "0X"):
        return int(s[2:], 16)
    return int(s)


class Range(namedtuple("Range", ["start", "end"])):
    "Inclusive block range, None means start or end of the file"

    def resolve(self, block_count):
        """Get concrete (start, end) in the file.
        Returns None if the range lies outside the file.
        """
        last = block_count - 1
        start = 0 if self.start is None else self.start
        end = last if self.end is None else min(self.end, last)
        if start > end:
            return None
        return start, end


def _parse1(s):
    m = _RANGE_RE.match(s)
    if not m:
        raise RangeSyntaxError("invalid block range: {!r}".format(s))
    start, hyphen, end = m.groups()
    if hyphen is None:
        if start is None:
            raise RangeSyntaxError("invalid block range: {!r}".format(s))
        n = _to_int(start)
        return Range(n, n)
    r = Range(_to_int(start), _to_int(end))
    if r.start is not None and r.end is not None and r.start > r.end:
        raise RangeSyntaxError("block range start is after end: {!r}".format(s))
    return r


def parse(exprs):
    """Parse block range expressions to a list of Range.
    `n`, `n-`, `-n`, `n-m`, numbers in decimal or 0x hex.
    No expressions means the whole file.
    """
    if not exprs:
        return [Range(None, None)]
    ranges = []
    for expr in exprs:
        for s in expr.split(","):
            s = s.strip()
            if s:
                ranges.append(_parse1(s))
    logger.debug("block ranges %r", ranges)
    return ranges
