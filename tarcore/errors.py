"""Error types raised by the archive mutation engine."""


class RetarError(Exception):
    """Base class for every failure reported by retar."""


class MalformedArchiveError(RetarError):
    """Corrupt or truncated tar header or member content."""


class CodecError(RetarError):
    """Compression or decompression failed (init, stream or trailer)."""


class ArchiveIOError(RetarError):
    """Open/create/truncate/seek/write failure on the filesystem."""


class PatternError(RetarError):
    """Invalid glob syntax in a match pattern."""


class NameCollisionError(RetarError):
    """An added name collides and the collision policy says to fail."""

    def __init__(self, name: str):
        super().__init__(f"File with the same name already exists in the tarball: {name}")
        self.name = name
