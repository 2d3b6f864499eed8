"""
Whole-stream compression adapters for tar archives.

A codec wraps the entire serialized archive, never individual members.
Every algorithm is exposed through the same two calls:

- open_writer(raw, algorithm, level, concurrency) -> CodecWriter
  write() compresses into raw, close() flushes and writes the codec trailer.
  Closing the writer never closes raw.
- open_reader(raw, algorithm) -> CodecReader
  read() returns decompressed bytes.

Algorithm.NONE is a pass-through in both directions. Any failure raised by
a compression library is reported as CodecError.

Supported algorithms:
  gzip, zlib, bzip2, xz, lzma (legacy .lzma container), lz4 (frame format),
  zstd, s2 (snappy framing, readable by S2 decoders), brotli
"""

import bz2
import gzip
import io
import lzma
import os
import zlib
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Optional, Union

import brotli
import cramjam
import lz4.frame
import zstandard

from tarcore.errors import CodecError

# Default level (1 = fastest, 9 = best), reinterpreted per algorithm
DEFAULT_LEVEL = 4

# Brotli window and mode (quality comes from the level)
BROTLI_LGWIN = 24
BROTLI_MODE = brotli.MODE_GENERIC

# Library exceptions that mean the codec stream itself failed
CODEC_FAILURES = (
    OSError,
    EOFError,
    RuntimeError,
    zlib.error,
    lzma.LZMAError,
    brotli.error,
    zstandard.ZstdError,
    cramjam.CompressionError,
    cramjam.DecompressionError,
)


class Algorithm(str, Enum):
    NONE = "none"
    GZIP = "gzip"
    ZLIB = "zlib"
    BZIP2 = "bzip2"
    XZ = "xz"
    LZMA = "lzma"
    LZ4 = "lz4"
    ZSTD = "zstd"
    S2 = "s2"
    BROTLI = "brotli"

    @classmethod
    def parse(cls, value: Union[str, 'Algorithm', None]) -> 'Algorithm':
        """Map a user supplied identifier to an Algorithm (empty means none)."""
        if isinstance(value, Algorithm):
            return value
        if not value:
            return cls.NONE
        try:
            return cls(value.lower())
        except ValueError:
            raise CodecError(f"unsupported compression algorithm: {value}") from None


@dataclass(frozen=True)
class CodecConfig:
    """Compression settings for one operation, passed explicitly to the engine."""
    algorithm: Algorithm = Algorithm.NONE
    level: int = DEFAULT_LEVEL
    concurrency: int = 0  # codec worker threads, 0 = CPU count

    def __post_init__(self):
        object.__setattr__(self, 'algorithm', Algorithm.parse(self.algorithm))

    @property
    def compressed(self) -> bool:
        return self.algorithm is not Algorithm.NONE


# ============== LEVEL MAPPING ==============

def _clamp(level: int, low: int, high: int) -> int:
    return max(low, min(high, level))


def zstd_level(level: int) -> int:
    """Bucket a 1-9 level into zstd fastest/default/better/best."""
    if level <= 1:
        return 1
    if level == 2:
        return 3
    if level == 3:
        return 7
    return 11


def worker_count(concurrency: int) -> int:
    if concurrency > 0:
        return concurrency
    return os.cpu_count() or 4


# ============== WRITERS ==============

class CodecWriter:
    """
    Compressing write side of a codec.

    `feed` compresses a chunk and returns the bytes to emit, `finish` returns
    the trailer. For file-like library writers (gzip, bz2, ...) `stream` is
    written directly and closed on close().
    """

    def __init__(self, raw: BinaryIO, algorithm: Algorithm,
                 feed: Optional[Callable[[bytes], bytes]] = None,
                 finish: Optional[Callable[[], bytes]] = None,
                 stream=None):
        self.raw = raw
        self.algorithm = algorithm
        self._feed = feed
        self._finish = finish
        self._stream = stream
        self._written = 0
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed codec writer")
        try:
            if self._stream is not None:
                self._stream.write(data)
            elif self._feed is not None:
                out = self._feed(data)
                if out:
                    self.raw.write(out)
            else:
                self.raw.write(data)
        except CODEC_FAILURES as e:
            raise CodecError(f"{self.algorithm.value} compression failed: {e}") from e
        self._written += len(data)
        return len(data)

    def tell(self) -> int:
        return self._written

    def flush(self) -> None:
        """
        Push pending compressed bytes to raw for file-like codec streams
        (gzip, bzip2, xz, lzma, lz4, zstd). zlib and brotli emit as they go;
        s2 is one-shot and only writes on close().
        """
        if self.closed:
            return
        try:
            if self._stream is not None:
                self._stream.flush()
            self.raw.flush()
        except CODEC_FAILURES as e:
            raise CodecError(f"{self.algorithm.value} flush failed: {e}") from e

    def close(self) -> None:
        """Finalize the codec stream. The raw stream stays open."""
        if self.closed:
            return
        self.closed = True
        try:
            if self._stream is not None:
                self._stream.close()
            elif self._finish is not None:
                tail = self._finish()
                if tail:
                    self.raw.write(tail)
        except CODEC_FAILURES as e:
            raise CodecError(f"{self.algorithm.value} stream finalization failed: {e}") from e

    def __enter__(self) -> 'CodecWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class _Buffered:
    """Collects the whole stream for codecs that only offer one-shot compression."""

    def __init__(self, compress: Callable[[bytes], bytes]):
        self._compress = compress
        self._buf = bytearray()

    def feed(self, data: bytes) -> bytes:
        self._buf += data
        return b''

    def finish(self) -> bytes:
        return self._compress(bytes(self._buf))


def _s2_compress(data: bytes) -> bytes:
    return bytes(cramjam.snappy.compress(data))


def _s2_decompress(data: bytes) -> bytes:
    return bytes(cramjam.snappy.decompress(data))


def open_writer(raw: BinaryIO, algorithm: Union[str, Algorithm] = Algorithm.NONE,
                level: int = DEFAULT_LEVEL, concurrency: int = 0) -> CodecWriter:
    """
    Wrap raw in a compressing writer.

    Args:
        raw: Destination stream (left open on close)
        algorithm: Algorithm identifier
        level: Speed/size trade-off, clamped per algorithm
        concurrency: Worker hint for codecs with internal parallelism

    Returns:
        CodecWriter; call close() once every byte has been written.
    """
    algorithm = Algorithm.parse(algorithm)
    try:
        if algorithm is Algorithm.NONE:
            return CodecWriter(raw, algorithm)
        if algorithm is Algorithm.GZIP:
            stream = gzip.GzipFile(fileobj=raw, mode='wb', compresslevel=_clamp(level, 0, 9), mtime=0)
            return CodecWriter(raw, algorithm, stream=stream)
        if algorithm is Algorithm.ZLIB:
            comp = zlib.compressobj(_clamp(level, 0, 9))
            return CodecWriter(raw, algorithm, feed=comp.compress, finish=comp.flush)
        if algorithm is Algorithm.BZIP2:
            stream = bz2.BZ2File(raw, mode='wb', compresslevel=_clamp(level, 1, 9))
            return CodecWriter(raw, algorithm, stream=stream)
        if algorithm is Algorithm.XZ:
            stream = lzma.LZMAFile(raw, mode='wb', format=lzma.FORMAT_XZ, preset=_clamp(level, 0, 9))
            return CodecWriter(raw, algorithm, stream=stream)
        if algorithm is Algorithm.LZMA:
            stream = lzma.LZMAFile(raw, mode='wb', format=lzma.FORMAT_ALONE, preset=_clamp(level, 0, 9))
            return CodecWriter(raw, algorithm, stream=stream)
        if algorithm is Algorithm.LZ4:
            stream = lz4.frame.LZ4FrameFile(raw, mode='wb', compression_level=_clamp(level, 0, 9))
            return CodecWriter(raw, algorithm, stream=stream)
        if algorithm is Algorithm.ZSTD:
            compressor = zstandard.ZstdCompressor(level=zstd_level(level), threads=worker_count(concurrency))
            return CodecWriter(raw, algorithm, stream=compressor.stream_writer(raw, closefd=False))
        if algorithm is Algorithm.BROTLI:
            comp = brotli.Compressor(mode=BROTLI_MODE, quality=_clamp(level, 0, 11), lgwin=BROTLI_LGWIN)
            return CodecWriter(raw, algorithm, feed=comp.process, finish=comp.finish)
        # S2: snappy framing has no levels
        buffered = _Buffered(_s2_compress)
        return CodecWriter(raw, algorithm, feed=buffered.feed, finish=buffered.finish)
    except CODEC_FAILURES as e:
        raise CodecError(f"cannot initialize {algorithm.value} writer: {e}") from e


# ============== READERS ==============

class CodecReader:
    """Decompressing read side of a codec."""

    def __init__(self, algorithm: Algorithm, open_stream: Callable[[], BinaryIO]):
        self.algorithm = algorithm
        self._open_stream = open_stream
        self._stream: Optional[BinaryIO] = None

    def read(self, size: int = -1) -> bytes:
        try:
            if self._stream is None:
                self._stream = self._open_stream()
            return self._stream.read(size)
        except CODEC_FAILURES as e:
            raise CodecError(f"{self.algorithm.value} decompression failed: {e}") from e

    def close(self) -> None:
        if self._stream is not None and self.algorithm is not Algorithm.NONE:
            self._stream.close()

    def __enter__(self) -> 'CodecReader':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _one_shot(raw: BinaryIO, decompress: Callable[[bytes], bytes]) -> Callable[[], BinaryIO]:
    return lambda: io.BytesIO(decompress(raw.read()))


def open_reader(raw: BinaryIO, algorithm: Union[str, Algorithm] = Algorithm.NONE) -> CodecReader:
    """Wrap raw in a decompressing reader for the given algorithm."""
    algorithm = Algorithm.parse(algorithm)

    if algorithm is Algorithm.NONE:
        opener = lambda: raw
    elif algorithm is Algorithm.GZIP:
        opener = lambda: gzip.GzipFile(fileobj=raw, mode='rb')
    elif algorithm is Algorithm.ZLIB:
        opener = _one_shot(raw, zlib.decompress)
    elif algorithm is Algorithm.BZIP2:
        opener = lambda: bz2.BZ2File(raw, mode='rb')
    elif algorithm is Algorithm.XZ:
        opener = lambda: lzma.LZMAFile(raw, mode='rb', format=lzma.FORMAT_XZ)
    elif algorithm is Algorithm.LZMA:
        opener = lambda: lzma.LZMAFile(raw, mode='rb', format=lzma.FORMAT_ALONE)
    elif algorithm is Algorithm.LZ4:
        opener = lambda: lz4.frame.LZ4FrameFile(raw, mode='rb')
    elif algorithm is Algorithm.ZSTD:
        opener = lambda: zstandard.ZstdDecompressor().stream_reader(raw, read_across_frames=True, closefd=False)
    elif algorithm is Algorithm.BROTLI:
        opener = _one_shot(raw, brotli.decompress)
    else:
        opener = _one_shot(raw, _s2_decompress)

    return CodecReader(algorithm, opener)
