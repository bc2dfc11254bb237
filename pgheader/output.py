from .errors import CompressorStateError


__all__ = ("block_label", "repeat_marker", "OutputCompressor", "format_stats")


def block_label(blkno, hex_index=False):
    if hex_index:
        return "{:08x}:".format(blkno)
    return "{:>8d}:".format(blkno)


def repeat_marker(n):
    return "(repeats {} time{})\n".format(n, "" if n == 1 else "s")


class OutputCompressor:
    """Turn rendered block lines of one range into output lines.
    With compress, runs of identical lines collapse to the first block,
    a `(repeats N times)` line and the next differing (or last) block.
    """
    def __init__(self, compress=False, hex_index=False):
        self.compress = compress
        self.hex_index = hex_index
        self.last_line = None
        self.pending = 0

    def _record(self, blkno, line):
        return block_label(blkno, self.hex_index) + line + "\n"

    def feed(self, blkno, is_last, line):
        "Feed a block line and return the lines to write"
        if not self.compress:
            return [self._record(blkno, line)]

        if line != self.last_line or is_last:
            out = []
            if self.last_line is not None and self.pending > 0:
                out.append(repeat_marker(self.pending))
            out.append(self._record(blkno, line))
            self.pending = 0
            self.last_line = line
            return out

        self.pending += 1
        return []

    def finish(self):
        if self.pending:
            raise CompressorStateError("{} repeated blocks were not written".format(self.pending))


def format_stats(stats):
    "Statistics report lines of PageStats"
    lines = [
        "page size {}: {} pages, first seen at block {}\n".format(size, count, first)
        for size, count, first in stats.items()
    ]
    lines.append("total pages: {}\n".format(stats.total))
    return lines
