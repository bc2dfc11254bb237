__all__ = (
    "Error",
    "FatalConfigError",
    "UnknownFieldError",
    "RangeSyntaxError",
    "BlockSizeError",
    "CompressorStateError",
    "RecoverableFileError",
    "TruncatedPageError",
)


class Error(Exception):
    pass


class FatalConfigError(Error):
    "Abort the whole run"


class UnknownFieldError(FatalConfigError):
    def __init__(self, names):
        self.names = list(names)
        super().__init__("unknown field name(s): {}".format(", ".join(self.names)))


class RangeSyntaxError(FatalConfigError):
    pass


class BlockSizeError(FatalConfigError):
    pass


class CompressorStateError(Error):
    "Run-length state left unflushed at the end of a range"


class RecoverableFileError(Error):
    "Skip the current file and continue with the next one"


class TruncatedPageError(RecoverableFileError):
    pass
