"""Listing and statistics for an existing archive."""

import stat
import time
from dataclasses import dataclass
from typing import Iterable, List

from tarcore.entries import Archive, Entry, EntryKind

_UNITS = ['bytes', 'KB', 'MB', 'GB']


def format_size(size_bytes: float) -> str:
    """Format bytes to human readable size (whole values without decimals)."""
    value = float(size_bytes)
    unit = _UNITS[0]
    for next_unit in _UNITS[1:]:
        if value < 1024:
            break
        value /= 1024
        unit = next_unit
    if value == int(value):
        return f"{int(value)} {unit}"
    return f"{value:.2f} {unit}"


_KIND_CHAR = {
    EntryKind.DIRECTORY: 'd',
    EntryKind.SYMLINK: 'l',
    EntryKind.FILE: '-',
}


def format_entry(entry: Entry) -> str:
    """One listing line: mode, mtime, name and size."""
    mode = _KIND_CHAR.get(entry.kind, '?') + stat.filemode(entry.mode)[1:]
    mtime = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(entry.mtime))
    name = entry.name
    if entry.kind is EntryKind.SYMLINK:
        name = f"{name} -> {entry.linkname}"
    return f"{mode} {mtime} {name} ({format_size(entry.size)})"


def list_entries(archive: Archive) -> List[str]:
    return [format_entry(entry) for entry in archive.values()]


@dataclass
class ArchiveStats:
    files: int = 0
    directories: int = 0
    symlinks: int = 0
    other: int = 0
    total_size: int = 0

    @classmethod
    def collect(cls, entries: Iterable[Entry]) -> 'ArchiveStats':
        stats = cls()
        for entry in entries:
            if entry.kind is EntryKind.FILE:
                stats.files += 1
                stats.total_size += entry.size
            elif entry.kind is EntryKind.DIRECTORY:
                stats.directories += 1
            elif entry.kind is EntryKind.SYMLINK:
                stats.symlinks += 1
            else:
                stats.other += 1
        return stats

    def lines(self, archive_path: str) -> List[str]:
        return [
            f"Statistics for tarball : {archive_path}",
            f"Total files            : {self.files}",
            f"Total directories      : {self.directories}",
            f"Total symbolic links   : {self.symlinks}",
            f"Total other entries    : {self.other}",
            f"Total size             : {format_size(self.total_size)}",
        ]


def archive_stats(archive: Archive) -> ArchiveStats:
    return ArchiveStats.collect(archive.values())
