"""Extracting members from a decoded archive to disk or to a stream."""

import os
from typing import BinaryIO, Callable, List, Optional, Sequence

from tarcore.entries import Archive, Entry, EntryKind
from tarcore.errors import ArchiveIOError
from tarcore.matching import compile_patterns
from tarcore.ordering import reorder


def select(archive: Archive, patterns: Sequence[str] = ()) -> List[Entry]:
    """Members matching any pattern (all members when none are given), in canonical order."""
    entries = reorder(archive)
    if not patterns:
        return entries
    matchers = compile_patterns(patterns)
    return [e for e in entries if any(m.matches(e.name) for m in matchers)]


def _inside(root: str, path: str) -> bool:
    return os.path.commonpath([root, path]) == root


def destination(dest_dir: str, name: str) -> str:
    """
    Path for a member under dest_dir; refuses names that escape it.

    The parent directory is checked with symlinks resolved, so a member
    cannot be written through a link (e.g. one extracted earlier) that
    points outside dest_dir.
    """
    root = os.path.abspath(dest_dir)
    target = os.path.abspath(os.path.join(root, name))
    if os.path.isabs(name) or not _inside(root, target):
        raise ArchiveIOError(f"refusing to extract {name!r} outside {dest_dir}")
    if target != root:
        real_root = os.path.realpath(root)
        if not _inside(real_root, os.path.realpath(os.path.dirname(target))):
            raise ArchiveIOError(f"refusing to extract {name!r} through a link leaving {dest_dir}")
    return target


def extract_to_disk(entries: Sequence[Entry], dest_dir: str = '.',
                    report: Optional[Callable[[str], None]] = None) -> None:
    """
    Write entries below dest_dir.

    Parent directories are created as needed, file modes are restored.
    Directory modes are applied last so read-only directories can be filled.
    """
    dir_modes = []
    try:
        for entry in entries:
            path = destination(dest_dir, entry.name)
            if entry.kind is EntryKind.DIRECTORY:
                if os.path.islink(path):
                    raise ArchiveIOError(f"refusing to extract {entry.name!r} through a link")
                os.makedirs(path, exist_ok=True)
                dir_modes.append((path, entry.mode))
                continue

            os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
            if entry.kind is EntryKind.SYMLINK:
                if os.path.lexists(path):
                    os.remove(path)
                os.symlink(entry.linkname, path)
            elif entry.kind is EntryKind.FILE:
                # replace a link rather than write through it
                if os.path.islink(path):
                    os.remove(path)
                with open(path, 'wb') as f:
                    f.write(entry.content or b'')
                os.chmod(path, entry.mode)
            else:
                if report is not None:
                    report(f"Skipping special file: {entry.name}")
                continue
            if report is not None:
                report(path)

        for path, mode in reversed(dir_modes):
            os.chmod(path, mode)
    except OSError as e:
        raise ArchiveIOError(f"error extracting {e.filename}: {e.strerror or e}") from e


def extract_to_stream(entries: Sequence[Entry], out: BinaryIO) -> None:
    """Concatenate the content of every non-directory entry into out."""
    for entry in entries:
        if entry.content:
            out.write(entry.content)
    out.flush()
