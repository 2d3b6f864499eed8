"""
Tar container decoding and encoding.

decode() materializes every member (headers and content) into an Archive;
encode() writes an ordered member list back as a PAX tar stream, optionally
through a codec. Sizes are always recomputed from the in-memory content.
"""

import io
import tarfile
from typing import BinaryIO, Iterable, Union

from tarcore.codecs import Algorithm, CodecConfig, open_reader, open_writer
from tarcore.entries import Archive, Entry
from tarcore.errors import MalformedArchiveError


def decode_bytes(data: bytes) -> Archive:
    """
    Parse an uncompressed tar image.

    Members are read sequentially; each regular member's content is read
    fully before the next header. Corrupt or truncated headers and content,
    and any non-zero bytes after the last member, raise MalformedArchiveError.
    """
    archive: Archive = {}
    if not data:
        return archive

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode='r:') as tar:
            for info in tar:
                content = None
                if not info.isdir():
                    content = b''
                    if info.isreg():
                        content = tar.extractfile(info).read()
                entry = Entry.from_tarinfo(info, content)
                archive[entry.name] = entry
            end = tar.offset
    except tarfile.TarError as e:
        raise MalformedArchiveError(f"error reading from the tarball: {e}") from e

    if data[end:].strip(b'\0'):
        raise MalformedArchiveError(f"corrupt tar header at offset {end}")
    return archive


def decode(stream: BinaryIO, algorithm: Union[str, Algorithm] = Algorithm.NONE) -> Archive:
    """Decode a (possibly compressed) archive stream. Empty input is an empty archive."""
    payload = stream.read()
    if not payload:
        return {}
    with open_reader(io.BytesIO(payload), algorithm) as reader:
        data = reader.read()
    return decode_bytes(data)


def encode(entries: Iterable[Entry], sink: BinaryIO, config: CodecConfig = CodecConfig()) -> None:
    """
    Write entries, in the given order, as a tar stream into sink.

    Directory entries are header-only. With a codec configured, the codec
    writer is closed after the last entry so the compressed trailer is
    complete when this returns. sink itself is left open.
    """
    writer = open_writer(sink, config.algorithm, config.level, config.concurrency)
    with tarfile.open(fileobj=writer, mode='w|', format=tarfile.PAX_FORMAT) as tar:
        for entry in entries:
            info = entry.to_tarinfo()
            try:
                tar.addfile(info, io.BytesIO(entry.content) if info.size else None)
            except (tarfile.TarError, ValueError) as e:
                raise MalformedArchiveError(f"error writing header for {entry.name}: {e}") from e
    writer.close()


def render(entries: Iterable[Entry], config: CodecConfig = CodecConfig()) -> bytes:
    """Encode entries into an in-memory buffer and return its bytes."""
    buffer = io.BytesIO()
    encode(entries, buffer, config)
    return buffer.getvalue()
