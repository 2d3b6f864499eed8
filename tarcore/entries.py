"""
Archive members and the in-memory working set.

An Archive is a plain dict keyed by member name. Directory members keep
their trailing "/" in the key, so a directory "logs/" and a regular file
"logs" are two distinct members; the "/" is dropped only when the header is
built and tarfile adds it back on write.
"""

import os
import stat
import tarfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional

try:
    import grp
    import pwd
except ImportError:
    grp = pwd = None


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


# pax records that are carried as Entry attributes instead of extra_headers
FIELD_RECORDS = frozenset(tarfile.PAX_FIELDS) | {"atime", "ctime"}

_KIND_TYPES = {
    EntryKind.FILE: tarfile.REGTYPE,
    EntryKind.DIRECTORY: tarfile.DIRTYPE,
    EntryKind.SYMLINK: tarfile.SYMTYPE,
}


@dataclass
class Entry:
    """One archive member: header metadata plus content (None for directories)."""
    name: str
    kind: EntryKind
    content: Optional[bytes] = None
    mode: int = 0o644
    uid: int = 0
    gid: int = 0
    uname: str = ''
    gname: str = ''
    mtime: float = 0
    atime: Optional[float] = None
    ctime: Optional[float] = None
    linkname: str = ''
    type_flag: Optional[bytes] = None  # exact tar type for OTHER (hardlink, fifo, device)
    devmajor: int = 0
    devminor: int = 0
    extra_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        """Size always follows the in-memory content, never a stored header value."""
        if self.content is None:
            return 0
        return len(self.content)

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @classmethod
    def from_tarinfo(cls, info: tarfile.TarInfo, content: Optional[bytes]) -> 'Entry':
        if info.isdir():
            kind = EntryKind.DIRECTORY
        elif info.issym():
            kind = EntryKind.SYMLINK
        elif info.isreg():
            kind = EntryKind.FILE
        else:
            kind = EntryKind.OTHER

        pax = info.pax_headers
        return cls(
            name=directory_name(info.name) if kind is EntryKind.DIRECTORY else info.name,
            kind=kind,
            content=None if kind is EntryKind.DIRECTORY else (content or b''),
            mode=info.mode,
            uid=info.uid,
            gid=info.gid,
            uname=info.uname,
            gname=info.gname,
            mtime=info.mtime,
            atime=_parse_time(pax.get('atime')),
            ctime=_parse_time(pax.get('ctime')),
            linkname=info.linkname,
            type_flag=info.type if kind is EntryKind.OTHER else None,
            devmajor=info.devmajor,
            devminor=info.devminor,
            extra_headers={k: v for k, v in pax.items() if k not in FIELD_RECORDS},
        )

    def to_tarinfo(self) -> tarfile.TarInfo:
        """Build a header with size recomputed from content."""
        info = tarfile.TarInfo(self.name.rstrip('/') if self.is_dir else self.name)
        info.type = _KIND_TYPES.get(self.kind) or self.type_flag or tarfile.REGTYPE
        info.size = 0 if self.is_dir else self.size
        info.mode = self.mode
        info.uid = self.uid
        info.gid = self.gid
        info.uname = self.uname
        info.gname = self.gname
        info.mtime = self.mtime
        info.linkname = self.linkname
        info.devmajor = self.devmajor
        info.devminor = self.devminor

        pax = dict(self.extra_headers)
        if self.atime is not None:
            pax['atime'] = _format_time(self.atime)
        if self.ctime is not None:
            pax['ctime'] = _format_time(self.ctime)
        info.pax_headers = pax
        return info


Archive = Dict[str, Entry]


def directory_name(name: str) -> str:
    """Archive key for a directory member: the name with exactly one trailing '/'."""
    return name.rstrip('/') + '/'


def _parse_time(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _format_time(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(float(value))


# ============== FILESYSTEM ==============

def archive_name(path: str) -> str:
    """Member name for a filesystem path: normalized, '/'-separated, no leading '/'."""
    name = os.path.normpath(path).replace(os.sep, '/')
    return name.lstrip('/') or '.'


def walk_path(path: str, recursive: bool = True) -> Iterator[str]:
    """Yield path and, for directories, every path below it in lexical order."""
    yield path
    if recursive and os.path.isdir(path) and not os.path.islink(path):
        for child in sorted(os.listdir(path)):
            yield from walk_path(os.path.join(path, child))


def _owner_names(st: os.stat_result):
    uname = gname = ''
    if pwd is not None:
        try:
            uname = pwd.getpwuid(st.st_uid).pw_name
        except KeyError:
            pass
        try:
            gname = grp.getgrgid(st.st_gid).gr_name
        except KeyError:
            pass
    return uname, gname


def entry_from_path(path: str, name: Optional[str] = None) -> Optional[Entry]:
    """
    Build an Entry from a filesystem object (symlinks are not followed).

    Regular file content is read fully into memory. Returns None for
    sockets, which tar cannot store. Raises OSError on unreadable paths.
    Directory names get their trailing '/'.
    """
    if name is None:
        name = archive_name(path)
    st = os.lstat(path)
    mode = st.st_mode
    type_flag = None
    linkname = ''
    content: Optional[bytes] = b''

    if stat.S_ISDIR(mode):
        kind = EntryKind.DIRECTORY
        content = None
    elif stat.S_ISLNK(mode):
        kind = EntryKind.SYMLINK
        linkname = os.readlink(path)
    elif stat.S_ISREG(mode):
        kind = EntryKind.FILE
        with open(path, 'rb') as f:
            content = f.read()
    elif stat.S_ISFIFO(mode):
        kind, type_flag = EntryKind.OTHER, tarfile.FIFOTYPE
    elif stat.S_ISCHR(mode):
        kind, type_flag = EntryKind.OTHER, tarfile.CHRTYPE
    elif stat.S_ISBLK(mode):
        kind, type_flag = EntryKind.OTHER, tarfile.BLKTYPE
    else:
        return None

    devmajor = devminor = 0
    if type_flag in (tarfile.CHRTYPE, tarfile.BLKTYPE):
        devmajor, devminor = os.major(st.st_rdev), os.minor(st.st_rdev)

    uname, gname = _owner_names(st)
    return Entry(
        name=directory_name(name) if kind is EntryKind.DIRECTORY else name,
        kind=kind,
        content=content,
        mode=stat.S_IMODE(mode),
        uid=st.st_uid,
        gid=st.st_gid,
        uname=uname,
        gname=gname,
        mtime=st.st_mtime,
        atime=st.st_atime,
        ctime=st.st_ctime,
        linkname=linkname,
        type_flag=type_flag,
        devmajor=devmajor,
        devminor=devminor,
    )
