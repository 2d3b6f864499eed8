"""
Mutation planning: apply add, update and delete requests to a working set.

Requests are applied left to right on a copy of the archive, so a later
request sees the effect of an earlier one (a delete after an add removes
what was just added).
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Union

from tarcore.collisions import CollisionPolicy, Decide, Resolution, resolve
from tarcore.entries import Archive, Entry, archive_name, entry_from_path, walk_path
from tarcore.errors import ArchiveIOError
from tarcore.matching import Matcher, compile_pattern

# Receives one human readable line per added/updated/deleted member
Report = Callable[[str], None]


@dataclass(frozen=True)
class Add:
    """Add a filesystem path (and its subtree), renaming on collision."""
    path: str
    recursive: bool = True


@dataclass(frozen=True)
class Update:
    """Add a filesystem path, replacing members with the same name."""
    path: str
    recursive: bool = True


@dataclass(frozen=True)
class DeleteMatching:
    """Remove every member selected by the pattern (exact, glob or subtree)."""
    pattern: str


MutationRequest = Union[Add, Update, DeleteMatching]


def _silent(line: str) -> None:
    pass


def validate(requests: Sequence[MutationRequest]) -> List[Matcher]:
    """Compile every delete pattern up front; raises PatternError."""
    return [compile_pattern(r.pattern) for r in requests if isinstance(r, DeleteMatching)]


def collect_entries(path: str, recursive: bool = True) -> Iterable[Entry]:
    """Yield entries for path and its subtree, translating OS errors."""
    try:
        for fs_path in walk_path(path, recursive):
            entry = entry_from_path(fs_path, archive_name(fs_path))
            if entry is not None:
                yield entry
    except OSError as e:
        raise ArchiveIOError(f"error reading {e.filename or path}: {e.strerror or e}") from e


def _apply_add(archive: Archive, request: Add, policy: CollisionPolicy,
               decide: Optional[Decide], report: Report) -> None:
    for entry in collect_entries(request.path, request.recursive):
        outcome = resolve(entry.name, archive, entry.kind, policy, decide)
        if outcome.resolution is Resolution.ABANDON:
            report(f"Skipping file: {entry.name}")
            continue
        if outcome.resolution is Resolution.RENAME:
            report(f"Duplicated file renamed to: {outcome.name}")
        entry.name = outcome.name
        archive[entry.name] = entry
        report(f"Appended: {entry.name} ({entry.size} bytes)")


def _apply_update(archive: Archive, request: Update, report: Report) -> None:
    for entry in collect_entries(request.path, request.recursive):
        outcome = resolve(entry.name, archive, entry.kind, update=True)
        entry.name = outcome.name
        archive[entry.name] = entry
        report(f"Added or updated: {entry.name} ({entry.size} bytes)")


def _apply_delete(archive: Archive, matcher: Matcher, report: Report) -> None:
    doomed = [name for name, entry in archive.items() if matcher.matches(name)]
    for name in doomed:
        del archive[name]
        report(f"Deleted: {name}")


def plan(archive: Archive, requests: Sequence[MutationRequest],
         policy: CollisionPolicy = CollisionPolicy.ASK,
         decide: Optional[Decide] = None,
         report: Optional[Report] = None) -> Archive:
    """
    Compute the member set that results from applying requests to archive.

    Args:
        archive: Existing members (not modified)
        requests: Add / Update / DeleteMatching, applied in order
        policy: Collision policy for Add requests
        decide: Yes/no callback for CollisionPolicy.ASK
        report: Progress line sink

    Returns:
        New Archive mapping.
    """
    report = report or _silent
    matchers = iter(validate(requests))
    result: Archive = dict(archive)

    for request in requests:
        if isinstance(request, Add):
            _apply_add(result, request, policy, decide, report)
        elif isinstance(request, Update):
            _apply_update(result, request, report)
        elif isinstance(request, DeleteMatching):
            _apply_delete(result, next(matchers), report)
        else:
            raise TypeError(f"unknown mutation request: {request!r}")
    return result
