"""
Name collision handling for appended members.

A proposed name collides when a member of that exact name exists, or when
a previously suffixed variant exists: for "report.txt" that is any
"report_<n>.txt" where <n> is a non-negative decimal integer. Accepted
collisions are renamed to the first free "report_1.txt", "report_2.txt", ...
"""

import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from tarcore.entries import Archive, EntryKind, directory_name
from tarcore.errors import NameCollisionError

_DIGITS = re.compile(r'[0-9]+')

# Answers "append <name> anyway?" for one colliding name
Decide = Callable[[str], bool]


class Resolution(str, Enum):
    PROCEED = "proceed"
    RENAME = "rename"
    ABANDON = "abandon"


class CollisionPolicy(str, Enum):
    ASK = "ask"        # consult the decide callback once per colliding name
    RENAME = "rename"  # always keep both, renaming the new member
    SKIP = "skip"      # always keep the existing member
    FAIL = "fail"      # raise NameCollisionError


@dataclass(frozen=True)
class Outcome:
    resolution: Resolution
    name: str


def _split(name: str):
    return posixpath.splitext(name)


def collides(name: str, archive: Archive) -> bool:
    if name in archive:
        return True
    base, ext = _split(name)
    prefix = base + '_'
    for existing in archive:
        if not existing.startswith(prefix) or not existing.endswith(ext):
            continue
        suffix = existing[len(prefix):len(existing) - len(ext)]
        if _DIGITS.fullmatch(suffix):
            return True
    return False


def alternate_name(name: str, archive: Archive) -> str:
    """First base_<n><ext> (n = 1, 2, ...) that does not collide."""
    base, ext = _split(name)
    count = 1
    while True:
        candidate = f"{base}_{count}{ext}"
        if not collides(candidate, archive):
            return candidate
        count += 1


def resolve(name: str, archive: Archive, kind: EntryKind = EntryKind.FILE,
            policy: CollisionPolicy = CollisionPolicy.ASK,
            decide: Optional[Decide] = None, update: bool = False) -> Outcome:
    """
    Decide what to do with a proposed member name.

    Args:
        name: Proposed member name
        archive: Current working set
        kind: Directories are exempt from collision handling and keep a trailing "/"
        policy: What to do on collision under append semantics
        decide: Yes/no callback used by CollisionPolicy.ASK
        update: Update semantics always replace in place

    Returns:
        Outcome with the resolution and the name to use.
    """
    if kind is EntryKind.DIRECTORY:
        return Outcome(Resolution.PROCEED, directory_name(name))
    if update or not collides(name, archive):
        return Outcome(Resolution.PROCEED, name)

    policy = CollisionPolicy(policy)
    if policy is CollisionPolicy.FAIL:
        raise NameCollisionError(name)
    if policy is CollisionPolicy.SKIP:
        return Outcome(Resolution.ABANDON, name)
    if policy is CollisionPolicy.ASK:
        if decide is None:
            raise ValueError("CollisionPolicy.ASK requires a decide callback")
        if not decide(name):
            return Outcome(Resolution.ABANDON, name)
    return Outcome(Resolution.RENAME, alternate_name(name, archive))
