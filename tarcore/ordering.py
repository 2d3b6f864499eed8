"""Canonical member order: path segments compared lexicographically."""

from typing import List, Tuple

from tarcore.entries import Archive, Entry


def canonical_key(name: str) -> Tuple[Tuple[str, ...], bool]:
    """
    Sort key for a member name.

    Segments are compared one by one; when one path is a pure prefix of
    the other the shorter one sorts first ("a/b" < "a/b/c" < "a/c").
    A file and a directory with the same path ("logs", "logs/") keep a
    fixed order: the file first.
    """
    return tuple(name.rstrip('/').split('/')), name.endswith('/')


def reorder(archive: Archive) -> List[Entry]:
    """Return the members in canonical order, independent of insertion history."""
    return sorted(archive.values(), key=lambda entry: canonical_key(entry.name))
